import fnmatch
import unittest

from animal_feed.store.redis import RedisStore


class FakeRedis:
    """Just enough of redis-py (bytes responses) for RedisStore."""

    def __init__(self):
        self.store = {}
        self.expires = {}

    def _list(self, key):
        return self.store.setdefault(key, [])

    def lpush(self, key, value):
        items = self._list(key)
        items.insert(0, value.encode() if isinstance(value, str) else value)
        return len(items)

    def rpush(self, key, *values):
        items = self._list(key)
        items.extend(v.encode() if isinstance(v, str) else v for v in values)
        return len(items)

    def lrange(self, key, start, end):
        items = self.store.get(key, [])
        end = len(items) - 1 if end == -1 else end
        return items[start:end + 1]

    def ltrim(self, key, start, end):
        self.store[key] = self.store.get(key, [])[start:end + 1]

    def llen(self, key):
        return len(self.store.get(key, []))

    def lindex(self, key, index):
        items = self.store.get(key, [])
        return items[index] if -len(items) <= index < len(items) else None

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value.encode() if isinstance(value, str) else value
        if ex is None:
            self.expires.pop(key, None)
        else:
            self.expires[key] = ex

    def incr(self, key):
        value = int(self.store.get(key, b"0")) + 1
        self.store[key] = str(value).encode()
        return value

    def expire(self, key, ttl):
        if key not in self.store:
            return False
        self.expires[key] = ttl
        return True

    def ttl(self, key):
        if key not in self.store:
            return -2
        return self.expires.get(key, -1)

    def exists(self, key):
        return 1 if key in self.store else 0

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.expires.pop(key, None)
        return removed

    def scan_iter(self, match=None):
        return [k.encode() for k in list(self.store) if fnmatch.fnmatchcase(k, match or "*")]

    def ping(self):
        return True


class TestRedisStore(unittest.TestCase):
    def setUp(self):
        self.client = FakeRedis()
        self.store = RedisStore(self.client)

    def test_list_values_are_decoded_to_text(self):
        self.store.list_push_left("feed", "a")
        self.store.list_push_left("feed", "b")
        self.assertEqual(self.store.list_range("feed", 0, -1), ["b", "a"])
        self.assertEqual(self.store.list_index("feed", 0), "b")
        self.assertEqual(self.store.list_size("feed"), 2)

    def test_push_right_all_with_no_values_does_not_call_rpush(self):
        self.assertEqual(self.store.list_push_right_all("pool", []), 0)
        self.assertNotIn("pool", self.client.store)

    def test_set_passes_ttl_as_ex(self):
        self.store.set("image_data:d:x", b"\x89PNG", ttl_seconds=90000)
        self.assertEqual(self.client.expires["image_data:d:x"], 90000)
        self.assertEqual(self.store.get("image_data:d:x"), b"\x89PNG")
        self.assertEqual(self.store.ttl("image_data:d:x"), 90000)

    def test_ttl_none_for_missing_or_persistent(self):
        self.store.set("k", "v")
        self.assertIsNone(self.store.ttl("k"))
        self.assertIsNone(self.store.ttl("missing"))

    def test_keys_and_delete(self):
        self.store.set("image_data:d:a", b"1")
        self.store.set("image_data:d:b", b"2")
        keys = self.store.keys("image_data:d:*")
        self.assertEqual(sorted(keys), ["image_data:d:a", "image_data:d:b"])
        self.assertEqual(self.store.delete(*keys), 2)
        self.assertEqual(self.store.delete(), 0)

    def test_incr_and_exists(self):
        self.assertEqual(self.store.incr("c"), 1)
        self.assertEqual(self.store.incr("c"), 2)
        self.assertTrue(self.store.exists("c"))
        self.assertTrue(self.store.expire("c", 10))
        self.assertTrue(self.store.ping())


if __name__ == "__main__":
    unittest.main()
