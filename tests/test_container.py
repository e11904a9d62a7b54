import os
import sys
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

# Ensure root dir is in sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from lazy_services.container import Container
from lazy_services.errors import CircularDependencyError, InvalidKeyError, UnboundKeyError


class TestResolve(unittest.TestCase):
    def setUp(self):
        self.container = Container()

    def test_factory_invoked_once(self):
        factory = MagicMock(side_effect=lambda: object())
        self.container.bind("svc", factory)
        factory.assert_not_called()

        first = self.container.resolve("svc")
        second = self.container.resolve("svc")
        self.assertIs(first, second)
        self.assertEqual(factory.call_count, 1)

    def test_unbound_key(self):
        with self.assertRaises(UnboundKeyError) as ctx:
            self.container.resolve("missing")
        self.assertEqual(ctx.exception.key, "missing")
        self.assertIsInstance(ctx.exception, KeyError)
        self.assertFalse(self.container.resolved("missing"))
        self.assertFalse(self.container.has("missing"))

    def test_bind_instance(self):
        obj = object()
        self.container.bind_instance("svc", obj)
        self.assertTrue(self.container.resolved("svc"))
        self.assertIs(self.container.resolve("svc"), obj)

    def test_factory_receives_container(self):
        self.container.bind_instance("dsn", "sqlite://")
        self.container.bind("db", lambda c: {"dsn": c.resolve("dsn")})
        self.assertEqual(self.container.resolve("db"), {"dsn": "sqlite://"})

    def test_class_factory_with_defaults_called_bare(self):
        class Service:
            def __init__(self, retries=3):
                self.retries = retries

        self.container.bind("svc", Service)
        self.assertEqual(self.container.resolve("svc").retries, 3)

    def test_failing_factory_not_cached(self):
        attempts = {"n": 0}

        def factory():
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise RuntimeError("boom")
            return "ok"

        self.container.bind("svc", factory)
        with self.assertRaises(RuntimeError):
            self.container.resolve("svc")
        self.assertFalse(self.container.resolved("svc"))
        self.assertEqual(self.container.resolve("svc"), "ok")
        self.assertEqual(attempts["n"], 2)

    def test_getitem_and_contains(self):
        self.container.bind("svc", lambda: 1)
        self.assertIn("svc", self.container)
        self.assertNotIn("other", self.container)
        self.assertEqual(self.container["svc"], 1)

    def test_invalid_key(self):
        with self.assertRaises(InvalidKeyError):
            self.container.resolve("")


class TestForget(unittest.TestCase):
    def setUp(self):
        self.container = Container()
        self.factory = MagicMock(side_effect=lambda: object())
        self.container.bind("svc", self.factory)

    def test_forget_rebuilds_once(self):
        first = self.container.resolve("svc")
        self.container.forget("svc")
        self.assertFalse(self.container.resolved("svc"))
        self.assertTrue(self.container.has("svc"))

        second = self.container.resolve("svc")
        third = self.container.resolve("svc")
        self.assertIsNot(first, second)
        self.assertIs(second, third)
        self.assertEqual(self.factory.call_count, 2)

    def test_rebind_evicts_cached_instance(self):
        self.container.resolve("svc")
        self.container.bind("svc", lambda: "replacement")
        self.assertEqual(self.container.resolve("svc"), "replacement")

    def test_flush(self):
        self.container.bind_instance("fixed", "value")
        self.container.resolve("svc")
        self.container.flush()
        self.assertFalse(self.container.resolved("svc"))
        self.assertEqual(self.container.resolve("fixed"), "value")
        self.container.resolve("svc")
        self.assertEqual(self.factory.call_count, 2)


class TestAliasesAndCallbacks(unittest.TestCase):
    def setUp(self):
        self.container = Container()

    def test_alias_shares_instance(self):
        self.container.bind("cache.store", lambda: object())
        self.container.alias("cache", "cache.store")
        self.assertIs(self.container.resolve("cache"), self.container.resolve("cache.store"))
        self.container.forget("cache")
        self.assertFalse(self.container.resolved("cache.store"))

    def test_self_alias_rejected(self):
        with self.assertRaises(InvalidKeyError):
            self.container.alias("a", "a")

    def test_alias_loop_detected(self):
        self.container.alias("a", "b")
        self.container.alias("b", "a")
        with self.assertRaises(InvalidKeyError):
            self.container.resolve("a")

    def test_on_resolved_runs_after_build_only(self):
        seen = []
        self.container.bind("svc", lambda: "built")
        self.container.on_resolved("svc", seen.append)
        self.container.resolve("svc")
        self.container.resolve("svc")
        self.assertEqual(seen, ["built"])

    def test_circular_dependency(self):
        self.container.bind("a", lambda c: c.resolve("b"))
        self.container.bind("b", lambda c: c.resolve("a"))
        with self.assertRaises(CircularDependencyError) as ctx:
            self.container.resolve("a")
        self.assertEqual(ctx.exception.chain, ("a", "b", "a"))
        self.assertFalse(self.container.resolved("a"))
        self.assertFalse(self.container.resolved("b"))


class TestConcurrency(unittest.TestCase):
    def test_concurrent_resolve_builds_once(self):
        container = Container()
        workers = 16
        barrier = threading.Barrier(workers)
        calls = []
        lock = threading.Lock()

        def factory():
            with lock:
                calls.append(1)
            return object()

        container.bind("svc", factory)

        def worker(_):
            barrier.wait()
            return container.resolve("svc")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(worker, range(workers)))

        self.assertEqual(len(calls), 1)
        self.assertEqual(len({id(r) for r in results}), 1)

    def test_different_keys_do_not_serialize(self):
        container = Container()
        slow_started = threading.Event()
        release = threading.Event()

        def slow():
            slow_started.set()
            release.wait(timeout=5)
            return "slow"

        container.bind("slow", slow)
        container.bind("fast", lambda: "fast")

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(container.resolve, "slow")
            self.assertTrue(slow_started.wait(timeout=5))
            self.assertEqual(container.resolve("fast"), "fast")
            release.set()
            self.assertEqual(future.result(timeout=5), "slow")


class TestRebindDuringConstruction(unittest.TestCase):
    def setUp(self):
        self.container = Container()
        self.started = threading.Event()
        self.release = threading.Event()

        def slow():
            self.started.set()
            self.release.wait(timeout=5)
            return "old"

        self.container.bind("svc", slow)

    def test_swap_wins_over_in_flight_factory(self):
        from lazy_services.accessor import Accessor

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(self.container.resolve, "svc")
            self.assertTrue(self.started.wait(timeout=5))
            Accessor(self.container, key="svc").swap("fake")
            self.release.set()
            self.assertEqual(future.result(timeout=5), "old")

        self.assertEqual(self.container.resolve("svc"), "fake")

    def test_rebound_factory_used_after_in_flight_build(self):
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(self.container.resolve, "svc")
            self.assertTrue(self.started.wait(timeout=5))
            self.container.bind("svc", lambda: "new")
            self.release.set()
            future.result(timeout=5)

        self.assertEqual(self.container.resolve("svc"), "new")
        self.assertIs(self.container.resolve("svc"), self.container.resolve("svc"))


class TestLockBookkeeping(unittest.TestCase):
    def test_unbound_keys_do_not_leave_locks(self):
        container = Container()
        for i in range(50):
            with self.assertRaises(UnboundKeyError):
                container.resolve(f"missing.{i}")
        self.assertEqual(container._key_locks, {})

        container.bind("svc", object)
        container.resolve("svc")
        self.assertEqual(list(container._key_locks), ["svc"])


if __name__ == '__main__':
    unittest.main()
