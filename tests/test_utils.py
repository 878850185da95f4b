import threading
import unittest
from collections import OrderedDict
from datetime import date

from relay.adapters.utils import (
    QuotaGuard,
    ResponseCache,
    canonical_params,
    canonical_url,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeToday:
    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


class ResponseCacheTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = ResponseCache(ttl_seconds=3600, clock=self.clock)

    def test_lookup_missing_key(self):
        self.assertIsNone(self.cache.lookup("nope"))

    def test_none_payload_is_distinct_from_missing(self):
        missing = object()
        self.cache.store("k", None)
        self.assertIsNone(self.cache.lookup("k", missing))
        self.assertIs(self.cache.lookup("other", missing), missing)

    def test_entry_valid_up_to_and_including_ttl(self):
        self.cache.store("k", {"a": 1}, ttl=10)
        self.clock.now += 10
        self.assertEqual(self.cache.lookup("k"), {"a": 1})

    def test_expired_entry_is_absent_and_purged(self):
        self.cache.store("k", {"a": 1}, ttl=10)
        self.clock.now += 10.5
        self.assertIsNone(self.cache.lookup("k"))
        self.assertEqual(len(self.cache), 0)

    def test_default_ttl_is_one_hour(self):
        cache = ResponseCache(clock=self.clock)
        cache.store("k", [1, 2])
        self.clock.now += 3600
        self.assertEqual(cache.lookup("k"), [1, 2])
        self.clock.now += 1
        self.assertIsNone(cache.lookup("k"))

    def test_store_overwrites_and_resets_age(self):
        self.cache.store("k", "old", ttl=10)
        self.clock.now += 8
        self.cache.store("k", "new", ttl=10)
        self.clock.now += 8
        self.assertEqual(self.cache.lookup("k"), "new")
        self.assertEqual(len(self.cache), 1)

    def test_entries_accumulate_without_eviction(self):
        for i in range(50):
            self.cache.store(f"k{i}", i)
        self.assertEqual(len(self.cache), 50)


class QuotaGuardTests(unittest.TestCase):
    def setUp(self):
        self.today = FakeToday(date(2024, 5, 1))
        self.guard = QuotaGuard(daily_limit=3, today=self.today)

    def test_rejects_non_positive_limit(self):
        with self.assertRaises(ValueError):
            QuotaGuard(daily_limit=0)

    def test_consume_until_limit(self):
        remaining = [self.guard.try_consume().remaining for _ in range(3)]
        self.assertEqual(remaining, [2, 1, 0])

        denied = self.guard.try_consume()
        self.assertFalse(denied.allowed)
        self.assertEqual(denied.remaining, 0)
        self.assertEqual(denied.day, "2024-05-01")
        self.assertEqual(denied.used, 3)
        self.assertEqual(self.guard.peek().used, 3)

    def test_peek_does_not_consume(self):
        self.guard.try_consume()
        status = self.guard.peek()
        self.guard.peek()
        self.assertEqual(status.used, 1)
        self.assertEqual(status.remaining, 2)
        self.assertEqual(self.guard.peek().used, 1)

    def test_rollover_on_try_consume(self):
        for _ in range(3):
            self.guard.try_consume()
        self.today.day = date(2024, 5, 2)
        decision = self.guard.try_consume()
        self.assertTrue(decision.allowed)
        self.assertEqual(decision.remaining, 2)
        self.assertEqual(decision.day, "2024-05-02")

    def test_rollover_on_peek(self):
        self.guard.try_consume()
        self.today.day = date(2024, 5, 2)
        status = self.guard.peek()
        self.assertEqual(status.day, "2024-05-02")
        self.assertEqual(status.used, 0)
        self.assertEqual(status.remaining, 3)

    def test_concurrent_callers_never_exceed_limit(self):
        guard = QuotaGuard(daily_limit=25, today=self.today)
        granted = []
        lock = threading.Lock()
        start = threading.Barrier(10)

        def worker():
            start.wait()
            for _ in range(10):
                if guard.try_consume().allowed:
                    with lock:
                        granted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(granted), 25)
        self.assertEqual(guard.peek().used, 25)


class KeyDerivationTests(unittest.TestCase):
    def test_insertion_order_does_not_matter(self):
        a = OrderedDict([("sort", "name"), ("page", "2"), ("search", "box")])
        b = OrderedDict([("search", "box"), ("sort", "name"), ("page", "2")])
        self.assertEqual(
            canonical_url("https://h", "/products", a),
            canonical_url("https://h", "/products", b),
        )

    def test_repeated_values_keep_their_order(self):
        pairs = canonical_params({"z": "1", "tag": ["b", "a"]})
        self.assertEqual(pairs, [("tag", "b"), ("tag", "a"), ("z", "1")])

    def test_none_values_dropped(self):
        self.assertEqual(canonical_params({"a": None, "b": "x"}), [("b", "x")])

    def test_url_without_params(self):
        self.assertEqual(canonical_url("https://h/", "/products/1"), "https://h/products/1")

    def test_values_are_encoded(self):
        url = canonical_url("https://h", "/products/search", {"search": "booster box"})
        self.assertEqual(url, "https://h/products/search?search=booster+box")


if __name__ == "__main__":
    unittest.main()
