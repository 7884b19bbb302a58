import threading
from datetime import datetime, timedelta, timezone

from kisaan_auth.domains.identity.models import OTPSession
from kisaan_auth.domains.identity.store import InMemorySessionStore


def _session(phone="9876543210", code="123456"):
    return OTPSession.open(phone=phone, code=code, ttl_seconds=600, max_attempts=3)


def test_put_get_delete():
    store = InMemorySessionStore()
    assert store.get("9876543210") is None

    store.put("9876543210", _session())
    assert store.get("9876543210").code == "123456"

    store.delete("9876543210")
    assert store.get("9876543210") is None
    store.delete("9876543210")


def test_put_replaces_prior_session():
    store = InMemorySessionStore()
    first = _session(code="111111")
    second = _session(code="222222")
    store.put(first.phone, first)
    store.put(second.phone, second)
    assert store.get(first.phone).session_id == second.session_id
    assert len(store) == 1


def test_reads_are_isolated_until_put():
    store = InMemorySessionStore()
    store.put("9876543210", _session())

    copy = store.get("9876543210")
    copy.attempts += 1
    assert store.get("9876543210").attempts == 0

    store.put("9876543210", copy)
    assert store.get("9876543210").attempts == 1


def test_open_session_defaults():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    session = OTPSession.open(phone="9876543210", code="123456", ttl_seconds=600, max_attempts=3, now=now)
    assert session.attempts == 0
    assert session.max_attempts == 3
    assert session.expires_at == now + timedelta(minutes=10)
    assert not session.verified
    assert not session.is_expired(now + timedelta(minutes=10))
    assert session.is_expired(now + timedelta(minutes=10, seconds=1))


def test_locked_serialises_read_modify_write():
    store = InMemorySessionStore()
    store.put("9876543210", _session())
    barrier = threading.Barrier(8)

    def bump():
        barrier.wait()
        for _ in range(50):
            with store.locked("9876543210"):
                s = store.get("9876543210")
                s.attempts += 1
                store.put("9876543210", s)

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get("9876543210").attempts == 400
    assert len(store._key_locks) == 0


def test_key_locks_released_after_use():
    store = InMemorySessionStore()
    for i in range(100):
        with store.locked(f"98765{i:05d}"):
            pass
    assert len(store._key_locks) == 0

    with store.locked("9876543210"):
        with store.locked("9876543210"):
            assert store._key_locks["9876543210"].holders == 2
        assert "9876543210" in store._key_locks
    assert len(store._key_locks) == 0


def test_purge_expired_keeps_live_and_locked_sessions():
    store = InMemorySessionStore()
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    old = OTPSession.open(phone="9000000001", code="111111", ttl_seconds=600, max_attempts=3, now=now)
    busy = OTPSession.open(phone="9000000002", code="222222", ttl_seconds=600, max_attempts=3, now=now)
    live = OTPSession.open(phone="9000000003", code="333333", ttl_seconds=600, max_attempts=3, now=now + timedelta(minutes=9))
    for s in (old, busy, live):
        store.put(s.phone, s)

    later = now + timedelta(minutes=11)
    with store.locked(busy.phone):
        assert store.purge_expired(later) == 1

    assert store.get(old.phone) is None
    assert store.get(busy.phone) is not None
    assert store.get(live.phone) is not None
    assert store.purge_expired(later) == 1
    assert len(store) == 1
