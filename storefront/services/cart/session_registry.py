"""In-memory registry of cart facades, one per shopper session."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from threading import RLock

from storefront.config import settings
from storefront.services.cart.facade import CartFacade
from storefront.services.cart.guest_token_store import (
    GuestTokenStore,
    get_guest_token_store,
)
from storefront.services.cart.reconciler import CartReconciler
from storefront.services.clients.cart_store_client import (
    CartStoreClient,
    get_cart_store_client,
)
from storefront.services.clients.catalog_client import CatalogClient, get_catalog_client

logger = logging.getLogger(__name__)

FacadeFactory = Callable[[str], CartFacade]


class CartSessionRegistry:
    """Keeps the cart facade of each session alive between requests.

    Sessions idle for ``idle_seconds`` are dropped, and past ``max_sessions``
    the least recently used one goes first. Dropped facades are closed.
    """

    def __init__(
        self,
        factory: FacadeFactory,
        *,
        idle_seconds: float | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = RLock()
        self._factory = factory
        self._idle_seconds = (
            settings.CART_SESSION_IDLE_SECONDS if idle_seconds is None else idle_seconds
        )
        self._max_sessions = (
            settings.CART_SESSION_MAX if max_sessions is None else max_sessions
        )
        self._clock = clock
        # least recently used first
        self._sessions: OrderedDict[str, CartFacade] = OrderedDict()
        self._last_seen: dict[str, float] = {}

    def get(self, session_id: str) -> CartFacade | None:
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create(self, session_id: str) -> tuple[CartFacade, bool]:
        """Return the session's facade and whether it was just created."""

        with self._lock:
            now = self._clock()
            evicted = self._pop_idle(now)
            facade = self._sessions.get(session_id)
            created = facade is None
            if created:
                facade = self._factory(session_id)
                self._sessions[session_id] = facade
            self._sessions.move_to_end(session_id)
            self._last_seen[session_id] = now
            while len(self._sessions) > max(self._max_sessions, 1):
                evicted.append(self._pop_oldest())

        for stale in evicted:
            stale.close()
        if evicted:
            logger.info("Evicted %d cart sessions", len(evicted))
        if created:
            logger.info("Opened cart session %s", session_id)
        return facade, created

    def close(self, session_id: str) -> None:
        with self._lock:
            facade = self._sessions.pop(session_id, None)
            self._last_seen.pop(session_id, None)
        if facade is not None:
            facade.close()
            logger.info("Closed cart session %s", session_id)

    def close_all(self) -> None:
        with self._lock:
            facades = list(self._sessions.values())
            self._sessions.clear()
            self._last_seen.clear()
        for facade in facades:
            facade.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _pop_idle(self, now: float) -> list[CartFacade]:
        evicted: list[CartFacade] = []
        while self._sessions:
            oldest = next(iter(self._sessions))
            if now - self._last_seen[oldest] < self._idle_seconds:
                break
            evicted.append(self._pop_oldest())
        return evicted

    def _pop_oldest(self) -> CartFacade:
        session_id, facade = self._sessions.popitem(last=False)
        self._last_seen.pop(session_id, None)
        return facade


def build_facade_factory(
    *,
    store: CartStoreClient,
    catalog: CatalogClient,
    tokens: GuestTokenStore,
) -> FacadeFactory:
    """Factory wiring a fresh reconciler into every new session's facade."""

    def _factory(session_id: str) -> CartFacade:
        return CartFacade(
            session_id=session_id,
            store=store,
            catalog=catalog,
            reconciler=CartReconciler(store=store),
            tokens=tokens,
        )

    return _factory


_registry: CartSessionRegistry | None = None


def get_session_registry() -> CartSessionRegistry:
    """FastAPI dependency returning the process-wide session registry."""

    global _registry
    if _registry is None:
        _registry = CartSessionRegistry(
            build_facade_factory(
                store=get_cart_store_client(),
                catalog=get_catalog_client(),
                tokens=get_guest_token_store(),
            )
        )
    return _registry


def close_session_registry() -> None:
    global _registry
    if _registry is not None:
        _registry.close_all()
        _registry = None
