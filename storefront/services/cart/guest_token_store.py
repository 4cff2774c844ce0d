"""Redis-backed persistence for the guest cart token of each shopper session."""

from __future__ import annotations

import logging

import redis.asyncio as redis

from storefront.config import settings

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a singleton Redis client for the current process."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class GuestTokenStore:
    """Write-once storage of guest tokens, keyed by session id.

    A token is written on first guest cart creation and only read afterwards.
    A successful merge/replace retires it; a copy detaches it so the guest
    cart stays queryable without being the active cart.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._prefix = settings.GUEST_TOKEN_KEY_PREFIX
        self._ttl = settings.GUEST_TOKEN_TTL_SECONDS

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def _detached_key(self, session_id: str) -> str:
        return f"{self._prefix}detached:{session_id}"

    async def get(self, session_id: str) -> str | None:
        return _as_text(await self._client.get(self._key(session_id)))

    async def remember(self, session_id: str, token: str) -> str:
        """Persist ``token`` unless one is already stored; return the stored token."""

        created = await self._client.set(
            self._key(session_id), token, ex=self._ttl, nx=True
        )
        if created:
            logger.info("Stored guest cart token", extra={"session_id": session_id})
            return token

        existing = await self.get(session_id)
        if existing != token:
            logger.warning(
                "Ignoring new guest token for session with an existing token",
                extra={"session_id": session_id},
            )
        return existing or token

    async def retire(self, session_id: str) -> None:
        await self._client.delete(self._key(session_id))
        logger.info("Retired guest cart token", extra={"session_id": session_id})

    async def detach(self, session_id: str) -> str | None:
        """Move the active token aside, keeping it available via :meth:`detached`."""

        token = await self.get(session_id)
        if token is None:
            return None
        await self._client.set(self._detached_key(session_id), token, ex=self._ttl)
        await self._client.delete(self._key(session_id))
        logger.info("Detached guest cart token", extra={"session_id": session_id})
        return token

    async def detached(self, session_id: str) -> str | None:
        return _as_text(await self._client.get(self._detached_key(session_id)))


def _as_text(value: str | bytes | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def get_guest_token_store() -> GuestTokenStore:
    """FastAPI dependency factory."""

    return GuestTokenStore(get_redis_client())
