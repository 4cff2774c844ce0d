"""Guest/user cart reconciliation state machine."""

from __future__ import annotations

import asyncio
import logging

from storefront.config import settings
from storefront.errors import ConflictCheckFailed, NoConflictToResolve, TransferFailed
from storefront.models.cart import (
    TRANSFER_ACTIONS,
    Cart,
    CartPresence,
    ConflictState,
    ConflictStatus,
    OwnerKind,
    ShopperIdentity,
    TransferAction,
    TransferIntent,
)
from storefront.services.cart.conflict_cache import ConflictCheckCache
from storefront.services.clients.cart_store_client import CartStoreClient

logger = logging.getLogger(__name__)

# the user cart is empty or missing, so merge and replace give the same lines
GUEST_ADOPTION_ACTION: TransferAction = "merge"


class CartReconciler:
    """Arbitrates which cart is active and executes guest-to-user transfers.

    ``NO_CONFLICT -> CONFLICT_DETECTED -> RESOLVING -> NO_CONFLICT``. A failed
    transfer drops back to ``CONFLICT_DETECTED`` with ``last_error`` set, so the
    shopper can retry with the same or another strategy.
    """

    def __init__(
        self,
        *,
        store: CartStoreClient,
        cache: ConflictCheckCache | None = None,
        check_retries: int | None = None,
    ) -> None:
        self._store = store
        self._cache = cache or ConflictCheckCache(settings.CONFLICT_CHECK_TTL_SECONDS)
        self._check_retries = (
            settings.CONFLICT_CHECK_RETRIES if check_retries is None else check_retries
        )
        self.state = ConflictState.NO_CONFLICT
        self.active_owner: OwnerKind | None = None
        self.active_cart: Cart | None = None
        self.last_error: str | None = None
        self._guest = CartPresence()
        self._user = CartPresence()

    @property
    def has_conflict(self) -> bool:
        return self.state != ConflictState.NO_CONFLICT

    @property
    def is_resolving(self) -> bool:
        return self.state == ConflictState.RESOLVING

    @property
    def status(self) -> ConflictStatus:
        return ConflictStatus(
            state=self.state,
            guest_item_count=self._guest.item_count,
            user_item_count=self._user.item_count,
            active_owner=self.active_owner,
            error=self.last_error,
        )

    async def check_conflicts(
        self,
        identity: ShopperIdentity,
        force: bool = False,
    ) -> ConflictState:
        """Detect whether both a guest cart and a user cart hold items."""

        if self.is_resolving:
            return self.state

        if not identity.is_authenticated:
            self._guest, self._user = CartPresence(), CartPresence()
            self.state = ConflictState.NO_CONFLICT
            self.active_owner = "guest" if identity.guest_token else None
            return self.state

        key = identity.cache_key
        cached = None if force else self._cache.get(key)
        if cached is None:
            try:
                guest, user = await self._fetch_presence(identity)
            except ConflictCheckFailed:
                logger.warning(
                    "Cart conflict check failed, continuing without conflict",
                    extra={"session_id": identity.session_id},
                    exc_info=True,
                )
                self._guest, self._user = CartPresence(), CartPresence()
                self.state = ConflictState.NO_CONFLICT
                self.active_owner = "user"
                return self.state
            cached = self._cache.put(key, guest, user)

        return self._apply(cached.guest, cached.user)

    async def resolve(
        self,
        identity: ShopperIdentity,
        action: TransferAction,
    ) -> Cart | None:
        """Run one transfer strategy; returns ``None`` if a transfer is already running."""

        if action not in TRANSFER_ACTIONS:
            raise ValueError(f"Unknown cart transfer action: {action}")

        if self.is_resolving:
            logger.info(
                "Ignoring cart %s while a transfer is in flight",
                action,
                extra={"session_id": identity.session_id},
            )
            return None

        if self.state != ConflictState.CONFLICT_DETECTED or not identity.user_id:
            raise NoConflictToResolve()

        return await self._transfer(identity, action)

    @property
    def needs_guest_transfer(self) -> bool:
        """A signed-in shopper still has items only in the guest cart."""
        return (
            self.state == ConflictState.NO_CONFLICT
            and self.active_owner == "guest"
            and self._guest.has_items
        )

    async def adopt_guest_cart(self, identity: ShopperIdentity) -> Cart | None:
        """Move a guest-only cart into the user's account without prompting.

        Returns ``None`` when there is nothing to move. A failed transfer
        leaves a detected conflict so the shopper can retry explicitly.
        """

        if not identity.user_id or not self.needs_guest_transfer:
            return None

        logger.info(
            "Only the guest cart has items, moving it to the user",
            extra={"session_id": identity.session_id, "user_id": identity.user_id},
        )
        return await self._transfer(identity, GUEST_ADOPTION_ACTION)

    def reset(self) -> None:
        self.state = ConflictState.NO_CONFLICT
        self.active_owner = None
        self.active_cart = None
        self.last_error = None
        self._guest, self._user = CartPresence(), CartPresence()
        self._cache.invalidate()

    async def _transfer(self, identity: ShopperIdentity, action: TransferAction) -> Cart:
        intent = TransferIntent(
            guest_cart=self._guest,
            user_cart=self._user,
            action=action,
            target_user_id=identity.user_id,
        )
        self.state = ConflictState.RESOLVING
        self.last_error = None
        logger.info(
            "Transferring guest cart with %s",
            action,
            extra={
                "session_id": identity.session_id,
                "guest_items": intent.guest_cart.item_count,
                "user_items": intent.user_cart.item_count,
            },
        )

        try:
            cart = await self._execute(identity, intent)
        except asyncio.CancelledError:
            self.state = ConflictState.CONFLICT_DETECTED
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            self.state = ConflictState.CONFLICT_DETECTED
            self.active_owner = None
            self.last_error = f"Failed to {action} carts: {exc}"
            logger.warning(
                "Cart %s failed, conflict left open: %s",
                action,
                exc,
                extra={"session_id": identity.session_id},
            )
            raise TransferFailed(self.last_error) from exc

        self.active_cart = cart
        self.active_owner = "user"
        self._guest = CartPresence()
        self._user = CartPresence(
            exists=True,
            item_count=len(cart.items),
            total=cart.total_price,
            cart_id=cart.id,
        )
        self.state = ConflictState.NO_CONFLICT
        self._cache.invalidate()
        logger.info(
            "Cart %s completed",
            action,
            extra={"session_id": identity.session_id, "cart_id": cart.id},
        )
        return cart

    async def _execute(self, identity: ShopperIdentity, intent: TransferIntent) -> Cart:
        source_cart_id = intent.guest_cart.cart_id
        if source_cart_id is None:
            guest_cart = await self._store.get_cart(identity.as_guest())
            source_cart_id = guest_cart.id
        intent.source_cart_id = source_cart_id

        return await self._store.transfer(
            identity,
            intent.source_cart_id,
            intent.target_user_id,
            intent.action,
        )

    async def _fetch_presence(
        self, identity: ShopperIdentity
    ) -> tuple[CartPresence, CartPresence]:
        last_error: Exception | None = None
        for attempt in range(self._check_retries + 1):
            try:
                guest, user = await asyncio.gather(
                    self._guest_presence(identity),
                    self._store.user_cart_exists(identity),
                )
                return guest, user
            except Exception as exc:  # pylint: disable=broad-exception-caught
                last_error = exc
                logger.debug("Conflict check attempt %d failed: %s", attempt + 1, exc)
        raise ConflictCheckFailed(str(last_error)) from last_error

    async def _guest_presence(self, identity: ShopperIdentity) -> CartPresence:
        if not identity.guest_token:
            return CartPresence()
        return await self._store.guest_cart_exists(identity)

    def _apply(self, guest: CartPresence, user: CartPresence) -> ConflictState:
        self._guest, self._user = guest, user

        if guest.has_items and user.has_items:
            if self.state != ConflictState.CONFLICT_DETECTED:
                logger.info(
                    "Guest cart (%d items) and user cart (%d items) both exist",
                    guest.item_count,
                    user.item_count,
                )
            self.state = ConflictState.CONFLICT_DETECTED
            self.active_owner = None
            return self.state

        self.state = ConflictState.NO_CONFLICT
        self.last_error = None
        self.active_owner = "guest" if guest.has_items else "user"
        return self.state
