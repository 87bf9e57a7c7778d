"""Short-lived in-memory cache of user identities."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from chromeservice.models import UserIdentity

DEFAULT_TTL = 30.0


@dataclass
class CacheEntry:
    expire_at: float
    identity: UserIdentity


class UserIdentityCache:
    """Thread-safe identity cache whose entries expire after ``ttl`` seconds."""

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        self.ttl = ttl
        self.identities: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, account_id: str) -> UserIdentity | None:
        """Return the cached identity, or None when missing or expired."""
        with self._lock:
            entry = self.identities.get(account_id)
            if entry is None:
                return None
            if entry.expire_at < time.monotonic():
                del self.identities[account_id]
                return None
            return entry.identity

    def set(self, account_id: str, identity: UserIdentity) -> None:
        with self._lock:
            self.identities[account_id] = CacheEntry(
                expire_at=time.monotonic() + self.ttl, identity=identity
            )

    def delete(self, account_id: str) -> None:
        with self._lock:
            self.identities.pop(account_id, None)