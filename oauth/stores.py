"""In-memory store for correlation records.

Records thread state across the Steam login round trip:
- PendingCallback: created by /authorize, consumed by /callback
- IssuedCode: created by /callback, consumed by /token

Access tokens are JWT-based (stateless) and never stored here.
Every record is single-use: take() removes it atomically.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600  # 10 minutes


@dataclass(frozen=True)
class PendingCallback:
    """Waiting for the browser to come back from Steam."""

    redirect_uri: str
    state: str
    created_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class IssuedCode:
    """Verified identity waiting to be exchanged for a token."""

    identity: str
    state: str
    created_at: float = field(default_factory=time.time)


CorrelationRecord = Union[PendingCallback, IssuedCode]


def generate_id() -> str:
    """Opaque correlation identifier (256 random bits)."""
    return secrets.token_urlsafe(32)


class SessionStore:
    """Thread-safe single-use keyed store.

    A ttl_seconds of 0 disables expiry. Expired records are swept lazily
    on every access and behave exactly like absent ones.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._records: dict[str, CorrelationRecord] = {}
        self._expires: dict[str, float] = {}
        self._lock = threading.Lock()

    def _sweep(self) -> int:
        # Caller holds the lock
        if not self._expires:
            return 0
        now = self._clock()
        expired = [key for key, deadline in self._expires.items() if deadline <= now]
        for key in expired:
            self._records.pop(key, None)
            self._expires.pop(key, None)
        if expired:
            logger.debug(f"[STORE] Swept {len(expired)} expired record(s)")
        return len(expired)

    def create(self, key: str, record: CorrelationRecord) -> bool:
        """Store a record. Returns False (and keeps the old one) if key is taken."""
        with self._lock:
            self._sweep()
            if key in self._records:
                return False
            self._records[key] = record
            if self.ttl_seconds:
                self._expires[key] = self._clock() + self.ttl_seconds
            return True

    def peek(self, key: str) -> Optional[CorrelationRecord]:
        with self._lock:
            self._sweep()
            return self._records.get(key)

    def take(self, key: str, expected: Optional[type] = None) -> Optional[CorrelationRecord]:
        """Atomically retrieve and delete a record.

        If expected is given and the stored record is another variant,
        nothing is removed and None is returned.
        """
        with self._lock:
            self._sweep()
            record = self._records.get(key)
            if record is None:
                return None
            if expected is not None and not isinstance(record, expected):
                return None
            del self._records[key]
            self._expires.pop(key, None)
            return record

    def remove(self, key: str) -> bool:
        with self._lock:
            self._expires.pop(key, None)
            return self._records.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._expires.clear()

    def purge_expired(self) -> int:
        """Drop expired records now. Returns how many were removed."""
        with self._lock:
            return self._sweep()

    def __len__(self) -> int:
        with self._lock:
            self._sweep()
            return len(self._records)

    def __contains__(self, key: str) -> bool:
        return self.peek(key) is not None


# Process-wide default store shared by the bridge endpoints
session_store = SessionStore()
