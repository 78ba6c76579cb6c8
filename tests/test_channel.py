import unittest

from animal_feed.channel import ChannelMessage, InMemoryChannel, RedisStreamChannel


class FakeStreamClient:
    """Records stream commands and replays queued XREADGROUP results."""

    def __init__(self, group_error=None):
        self.added = []
        self.groups = []
        self.reads = []
        self.results = []
        self.group_error = group_error

    def xadd(self, stream, fields, maxlen=None, approximate=False):
        self.added.append((stream, fields, maxlen, approximate))
        return f"{len(self.added)}-0".encode()

    def xgroup_create(self, stream, group, id="$", mkstream=False):
        self.groups.append((stream, group, id, mkstream))
        if self.group_error is not None:
            raise self.group_error

    def xreadgroup(self, group, consumer, streams, count=None, block=None, noack=False):
        self.reads.append((group, consumer, streams, count, block, noack))
        if self.results:
            return self.results.pop(0)
        return []


class TestRedisStreamChannel(unittest.TestCase):
    def setUp(self):
        self.client = FakeStreamClient()
        self.channel = RedisStreamChannel(self.client, stream="animal-stream", group="animal-feed-group", maxlen=500)

    def tearDown(self):
        self.channel.close()

    def test_send_adds_key_and_payload_to_stream(self):
        msg_id = self.channel.send("evt-1", '{"id": "evt-1"}').result(timeout=5)
        self.assertEqual(msg_id, "1-0")
        stream, fields, maxlen, approximate = self.client.added[0]
        self.assertEqual(stream, "animal-stream")
        self.assertEqual(fields, {"key": "evt-1", "payload": '{"id": "evt-1"}'})
        self.assertEqual(maxlen, 500)
        self.assertTrue(approximate)

    def test_poll_creates_group_once_and_reads_without_ack(self):
        self.channel.poll("feed-consumer", block_ms=10)
        self.channel.poll("feed-consumer", block_ms=10)
        self.assertEqual(self.client.groups, [("animal-stream", "animal-feed-group", "0", True)])
        group, consumer, streams, count, block, noack = self.client.reads[0]
        self.assertEqual((group, consumer), ("animal-feed-group", "feed-consumer"))
        self.assertEqual(streams, {"animal-stream": ">"})
        self.assertEqual(count, 1)
        self.assertEqual(block, 10)
        self.assertTrue(noack)

    def test_poll_decodes_entries(self):
        self.client.results.append(
            [[b"animal-stream", [(b"7-0", {b"key": b"evt-7", b"payload": b'{"id": "evt-7"}'})]]]
        )
        messages = self.channel.poll("feed-consumer")
        self.assertEqual(messages, [ChannelMessage(message_id="7-0", key="evt-7", payload='{"id": "evt-7"}')])

    def test_existing_group_is_accepted(self):
        client = FakeStreamClient(group_error=Exception("BUSYGROUP Consumer Group name already exists"))
        channel = RedisStreamChannel(client, stream="s", group="g")
        self.assertEqual(channel.poll("c"), [])
        channel.close()

    def test_other_group_errors_propagate(self):
        client = FakeStreamClient(group_error=Exception("WRONGTYPE"))
        channel = RedisStreamChannel(client, stream="s", group="g")
        with self.assertRaises(Exception):
            channel.poll("c")
        channel.close()


class TestInMemoryChannel(unittest.TestCase):
    def test_send_resolves_immediately_and_poll_delivers_in_order(self):
        channel = InMemoryChannel()
        first = channel.send("a", "payload-a")
        channel.send("b", "payload-b")
        self.assertEqual(first.result(), "1-0")
        self.assertEqual(channel.pending(), 2)

        messages = channel.poll("c", max_messages=5, block_ms=0)
        self.assertEqual([m.key for m in messages], ["a", "b"])
        self.assertEqual(channel.pending(), 0)

    def test_poll_on_empty_channel_returns_nothing(self):
        self.assertEqual(InMemoryChannel().poll("c", block_ms=0), [])

    def test_poll_respects_max_messages(self):
        channel = InMemoryChannel()
        for i in range(3):
            channel.send(str(i), "p")
        self.assertEqual(len(channel.poll("c", max_messages=2, block_ms=0)), 2)
        self.assertEqual(channel.pending(), 1)


if __name__ == "__main__":
    unittest.main()
