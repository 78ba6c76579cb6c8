import json
import unittest

from animal_feed.channel import InMemoryChannel
from animal_feed.errors import PublishError
from animal_feed.image_pool import ImagePoolService
from animal_feed.producer import StreamProducer
from animal_feed.store import InMemoryStore
from tests.fakes import FailingChannel, make_urls

CATALOG = make_urls(4)


class TestStreamProducer(unittest.TestCase):
    def setUp(self):
        self.channel = InMemoryChannel()
        self.pool = ImagePoolService(InMemoryStore(), "animal:pool", catalog=CATALOG)
        self.producer = StreamProducer(self.channel, self.pool, publish_timeout_seconds=1.0)

    def test_random_tick_publishes_event_keyed_by_id(self):
        future = self.producer.stream_random_image()
        self.assertIsNotNone(future)
        message = self.channel.poll("c", block_ms=0)[0]
        payload = json.loads(message.payload)
        self.assertEqual(message.key, payload["id"])
        self.assertEqual(payload["type"], "animal_image")
        self.assertIn(payload["imageUrl"], CATALOG)
        self.assertTrue(payload["timestamp"].endswith("Z"))

    def test_random_tick_without_images_publishes_nothing(self):
        pool = ImagePoolService(InMemoryStore(), "animal:pool", catalog=())
        producer = StreamProducer(self.channel, pool)
        self.assertIsNone(producer.stream_random_image())
        self.assertEqual(self.channel.pending(), 0)

    def test_random_tick_swallows_publish_failure(self):
        channel = FailingChannel()
        producer = StreamProducer(channel, self.pool)
        future = producer.stream_random_image()
        self.assertIsNotNone(future.exception())
        self.assertEqual(len(channel.sent), 1)

    def test_stream_image_returns_event_id(self):
        event_id = self.producer.stream_image("https://img.example/manual.jpg")
        message = self.channel.poll("c", block_ms=0)[0]
        self.assertEqual(message.key, event_id)
        self.assertEqual(json.loads(message.payload)["imageUrl"], "https://img.example/manual.jpg")

    def test_stream_image_raises_publish_error(self):
        producer = StreamProducer(FailingChannel(), self.pool)
        with self.assertRaises(PublishError) as ctx:
            producer.stream_image("https://img.example/manual.jpg")
        self.assertIsNotNone(ctx.exception.event_id)

    def test_batch_returns_ids_of_successful_publishes(self):
        ids = self.producer.stream_image_batch(CATALOG[:3])
        self.assertEqual(len(ids), 3)
        self.assertEqual(len(set(ids)), 3)
        self.assertEqual(self.channel.pending(), 3)

    def test_batch_with_failing_channel_returns_empty(self):
        producer = StreamProducer(FailingChannel(), self.pool)
        self.assertEqual(producer.stream_image_batch(CATALOG), [])


if __name__ == "__main__":
    unittest.main()
