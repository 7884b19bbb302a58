import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterator, Protocol

from kisaan_auth.domains.identity.models import OTPSession


class SessionStore(Protocol):
    def put(self, phone: str, session: OTPSession) -> None:
        ...

    def get(self, phone: str) -> OTPSession | None:
        ...

    def delete(self, phone: str) -> None:
        ...

    def purge_expired(self, now: datetime) -> int:
        ...

    def locked(self, phone: str):
        """Context manager serialising every read-modify-write for one phone."""
        ...


class _KeyLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.RLock()
        self.holders = 0


class InMemorySessionStore:
    """
    Process-local phone -> OTPSession table.

    Readers get copies, so an in-flight mutation is only visible once it is
    written back with ``put``. Callers that read, decide and write hold
    ``locked(phone)`` for the whole sequence; phones never block each other.
    A phone's lock lives only while someone holds or waits on it.
    """

    def __init__(self):
        self._data: dict[str, OTPSession] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    @contextmanager
    def locked(self, phone: str) -> Iterator[None]:
        with self._lock:
            entry = self._key_locks.get(phone)
            if entry is None:
                entry = self._key_locks[phone] = _KeyLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._key_locks[phone]

    def put(self, phone: str, session: OTPSession) -> None:
        with self._lock:
            self._data[phone] = replace(session)

    def get(self, phone: str) -> OTPSession | None:
        with self._lock:
            session = self._data.get(phone)
            return replace(session) if session is not None else None

    def delete(self, phone: str) -> None:
        with self._lock:
            self._data.pop(phone, None)

    def purge_expired(self, now: datetime) -> int:
        """Drop sessions past their expiry that nobody is verifying right now."""
        with self._lock:
            stale = [p for p, s in self._data.items() if s.is_expired(now) and p not in self._key_locks]
            for phone in stale:
                del self._data[phone]
            return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
