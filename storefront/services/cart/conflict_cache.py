"""Short-lived cache of guest/user cart existence checks."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from storefront.models.cart import CartPresence

IdentityPair = tuple[str | None, str | None]


@dataclass(frozen=True)
class ConflictCheck:
    guest: CartPresence
    user: CartPresence
    checked_at: float


class ConflictCheckCache:
    """TTL cache keyed by the ``(guest_token, user_id)`` identity pair."""

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[IdentityPair, ConflictCheck] = {}

    def get(self, key: IdentityPair) -> ConflictCheck | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.checked_at >= self._ttl:
            del self._entries[key]
            return None
        return entry

    def put(self, key: IdentityPair, guest: CartPresence, user: CartPresence) -> ConflictCheck:
        entry = ConflictCheck(guest=guest, user=user, checked_at=self._clock())
        self._entries[key] = entry
        return entry

    def invalidate(self, key: IdentityPair | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
