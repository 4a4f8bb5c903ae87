"""Tests for the single-use correlation store."""

import threading

import pytest

from oauth.stores import IssuedCode, PendingCallback, SessionStore, generate_id


class TestCreate:
    def test_create_and_peek(self, store):
        record = PendingCallback(redirect_uri="https://app.example/cb", state="abc")

        assert store.create("k1", record) is True
        assert store.peek("k1") == record
        assert "k1" in store
        assert len(store) == 1

    def test_collision_is_rejected_without_overwrite(self, store):
        first = PendingCallback(redirect_uri="https://app.example/cb", state="first")
        second = PendingCallback(redirect_uri="https://evil.example/cb", state="second")

        store.create("k1", first)

        assert store.create("k1", second) is False
        assert store.peek("k1") == first

    def test_generated_ids_are_unique_and_long(self):
        ids = {generate_id() for _ in range(1000)}

        assert len(ids) == 1000
        # 32 random bytes, urlsafe base64
        assert all(len(i) >= 43 for i in ids)


class TestTake:
    def test_take_removes_record(self, store):
        record = IssuedCode(identity="1", state="s")
        store.create("code", record)

        assert store.take("code") == record
        assert store.take("code") is None
        assert store.peek("code") is None

    def test_take_unknown_key(self, store):
        assert store.take("nope") is None

    def test_take_with_wrong_variant_leaves_record(self, store):
        pending = PendingCallback(redirect_uri="https://app.example/cb", state="s")
        store.create("k1", pending)

        assert store.take("k1", IssuedCode) is None
        assert store.take("k1", PendingCallback) == pending

    def test_concurrent_take_yields_record_once(self):
        store = SessionStore(ttl_seconds=0)
        store.create("k1", IssuedCode(identity="1", state="s"))
        barrier = threading.Barrier(16)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            got = store.take("k1")
            with lock:
                results.append(got)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(r is not None for r in results) == 1


class TestRemoveAndClear:
    def test_remove(self, store):
        store.create("k1", IssuedCode(identity="1", state="s"))

        assert store.remove("k1") is True
        assert store.remove("k1") is False

    def test_clear(self, store):
        store.create("a", IssuedCode(identity="1", state="s"))
        store.create("b", IssuedCode(identity="2", state="s"))

        store.clear()

        assert len(store) == 0


class TestExpiry:
    def test_expired_record_is_absent(self, store, clock):
        store.create("k1", IssuedCode(identity="1", state="s"))

        clock.advance(599)
        assert store.peek("k1") is not None

        clock.advance(1)
        assert store.peek("k1") is None
        assert store.take("k1") is None

    def test_expired_key_can_be_reused(self, store, clock):
        store.create("k1", IssuedCode(identity="1", state="old"))
        clock.advance(600)

        assert store.create("k1", IssuedCode(identity="2", state="new")) is True
        assert store.take("k1").state == "new"

    def test_purge_expired_counts(self, store, clock):
        store.create("a", IssuedCode(identity="1", state="s"))
        clock.advance(300)
        store.create("b", IssuedCode(identity="2", state="s"))
        clock.advance(300)

        assert store.purge_expired() == 1
        assert "b" in store

    @pytest.mark.parametrize("elapsed", [0, 10_000, 10**9])
    def test_zero_ttl_never_expires(self, clock, elapsed):
        store = SessionStore(ttl_seconds=0, clock=clock)
        store.create("k1", IssuedCode(identity="1", state="s"))

        clock.advance(elapsed)

        assert store.peek("k1") is not None
