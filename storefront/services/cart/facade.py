"""Per-session cart coordinator the storefront binds to."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from redis.exceptions import RedisError

from storefront.errors import (
    CartError,
    CartOperationFailed,
    CartStoreError,
    InvalidQuantity,
    OutOfStock,
    TransferFailed,
    VariantNotFound,
)
from storefront.models.cart import (
    Cart,
    ConflictState,
    ConflictStatus,
    ShopperIdentity,
    TransferAction,
)
from storefront.models.product import Product
from storefront.services.cart.guest_token_store import GuestTokenStore
from storefront.services.cart.reconciler import GUEST_ADOPTION_ACTION, CartReconciler
from storefront.services.clients.cart_store_client import CartStoreClient
from storefront.services.clients.catalog_client import CatalogClient

logger = logging.getLogger(__name__)


class CartFacade:
    """Forwards cart mutations to the Cart Store and keeps the latest cart.

    Every call that replaces ``cart`` takes a generation number. A response is
    applied only if it belongs to the newest call and the facade is still open,
    so late responses never overwrite newer state.
    """

    def __init__(
        self,
        *,
        session_id: str,
        store: CartStoreClient,
        catalog: CatalogClient,
        reconciler: CartReconciler,
        tokens: GuestTokenStore,
    ) -> None:
        self.session_id = session_id
        self._store = store
        self._catalog = catalog
        self._reconciler = reconciler
        self._tokens = tokens

        self.cart: Cart | None = None
        self.last_error: str | None = None
        self.guest_token: str | None = None
        self.user_id: str | None = None
        self.auth_token: str | None = None

        self._generation = 0
        self._pending = 0
        self._closed = False

    @property
    def identity(self) -> ShopperIdentity:
        return ShopperIdentity(
            session_id=self.session_id,
            guest_token=self.guest_token,
            user_id=self.user_id,
            auth_token=self.auth_token,
        )

    @property
    def is_loading(self) -> bool:
        return self._pending > 0 or self._reconciler.is_resolving

    @property
    def has_conflict(self) -> bool:
        return self._reconciler.has_conflict

    @property
    def conflict_status(self) -> ConflictStatus:
        return self._reconciler.status

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def restore(self) -> None:
        """Pick up the guest token persisted by an earlier request of this session."""

        try:
            self.guest_token = await self._tokens.get(self.session_id)
        except RedisError as exc:
            logger.warning("Could not read guest token: %s", exc)

    async def load(self) -> Cart | None:
        await self.restore()
        return await self.refresh()

    async def refresh(self) -> Cart | None:
        return await self._run("load cart", lambda: self._store.get_cart(self.identity))

    async def add_item(
        self,
        product_id: str,
        quantity: int,
        variant_id: str | None = None,
    ) -> Cart | None:
        """Add ``quantity`` of a product (or one of its variants) after an inventory check."""

        try:
            if quantity < 1:
                raise InvalidQuantity(quantity)
            product = await self._fetch_product(product_id)
            available = _available_inventory(product, variant_id)
            if available < quantity:
                raise OutOfStock(quantity, available)
        except CartError as exc:
            self.last_error = str(exc)
            raise

        logger.info(
            "Adding product %s to cart, quantity: %d",
            product_id,
            quantity,
            extra={"session_id": self.session_id, "variant_id": variant_id},
        )
        return await self._run(
            "add item to cart",
            lambda: self._store.add_item(self.identity, product.id, quantity, variant_id),
        )

    async def update_quantity(self, item_id: str, quantity: int) -> Cart | None:
        """Set the absolute quantity of a line; the server response replaces ``cart``."""

        if quantity < 1:
            error = InvalidQuantity(quantity)
            self.last_error = str(error)
            raise error
        return await self._run(
            "update cart item",
            lambda: self._store.update_item(self.identity, item_id, quantity),
        )

    async def remove_item(self, item_id: str) -> Cart | None:
        return await self._run(
            "remove cart item",
            lambda: self._store.remove_item(self.identity, item_id),
        )

    async def clear(self) -> Cart | None:
        return await self._run("clear cart", lambda: self._store.clear(self.identity))

    async def sign_in(self, user_id: str, auth_token: str | None = None) -> ConflictStatus:
        """Auth transition to a signed-in user: look for a cart conflict, then reload.

        A guest cart that is the only one holding items is moved into the
        user's cart right away. Its token is retired only once the Cart Store
        confirms the transfer.
        """

        if user_id == self.user_id and auth_token == self.auth_token:
            return self.conflict_status

        logger.info(
            "Shopper signed in, checking for guest cart conflicts",
            extra={"session_id": self.session_id, "user_id": user_id},
        )
        self.user_id = user_id
        self.auth_token = auth_token
        self._generation += 1

        await self._reconciler.check_conflicts(self.identity)
        if self._reconciler.needs_guest_transfer:
            await self._adopt_guest_cart()
        await self.refresh()
        return self.conflict_status

    async def sign_out(self) -> None:
        logger.info(
            "Shopper signed out, resetting cart state",
            extra={"session_id": self.session_id},
        )
        self.user_id = None
        self.auth_token = None
        self._reconciler.reset()
        self._generation += 1
        self.cart = None
        self.last_error = None

    async def check_conflicts(self, force: bool = False) -> ConflictState:
        return await self._reconciler.check_conflicts(self.identity, force=force)

    async def resolve_conflict(self, action: TransferAction) -> Cart | None:
        """Run a transfer strategy; ``None`` means one was already in flight."""

        if self._reconciler.is_resolving:
            return await self._reconciler.resolve(self.identity, action)

        self._generation += 1
        generation = self._generation
        try:
            cart = await self._reconciler.resolve(self.identity, action)
        except TransferFailed as exc:
            self.last_error = str(exc)
            raise
        if cart is None:
            return None

        await self._settle_guest_token(action)
        if self._is_current(generation):
            self.cart = cart
            self.last_error = None
        return cart

    async def _adopt_guest_cart(self) -> None:
        try:
            cart = await self._reconciler.adopt_guest_cart(self.identity)
        except TransferFailed as exc:
            logger.warning(
                "Could not move guest cart on sign-in: %s",
                exc,
                extra={"session_id": self.session_id, "user_id": self.user_id},
            )
            return
        if cart is not None:
            await self._settle_guest_token(GUEST_ADOPTION_ACTION)

    def close(self) -> None:
        """Stop applying results of calls still in flight."""

        self._closed = True
        self._generation += 1

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[Cart]],
    ) -> Cart | None:
        self._generation += 1
        generation = self._generation
        self._pending += 1
        try:
            cart = await call()
        except CartStoreError as exc:
            if self._is_current(generation):
                self.last_error = f"Failed to {operation}: {exc}"
            logger.warning(
                "Failed to %s: %s",
                operation,
                exc,
                extra={"session_id": self.session_id, "status_code": exc.status_code},
            )
            raise CartOperationFailed(f"Failed to {operation}: {exc}") from exc
        finally:
            self._pending -= 1

        if self._closed:
            return None

        await self._capture_guest_token(cart)
        if not self._is_current(generation):
            logger.debug("Discarding stale response to %s", operation)
            return cart

        self.cart = cart
        self.last_error = None
        return cart

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    async def _fetch_product(self, product_id: str) -> Product:
        try:
            return await self._catalog.get_product(product_id)
        except CartStoreError as exc:
            raise CartOperationFailed(f"Failed to look up product: {exc}") from exc

    async def _capture_guest_token(self, cart: Cart) -> None:
        if self.user_id or cart.owner_kind != "guest" or not cart.guest_token:
            return
        if cart.guest_token == self.guest_token:
            return
        try:
            self.guest_token = await self._tokens.remember(self.session_id, cart.guest_token)
        except RedisError as exc:
            logger.warning("Could not persist guest token: %s", exc)
            self.guest_token = self.guest_token or cart.guest_token

    async def _settle_guest_token(self, action: TransferAction) -> None:
        try:
            if action == "copy":
                await self._tokens.detach(self.session_id)
            else:
                await self._tokens.retire(self.session_id)
        except RedisError as exc:
            logger.warning("Could not retire guest token after %s: %s", action, exc)
        self.guest_token = None


def _available_inventory(product: Product, variant_id: str | None) -> int:
    if variant_id is None:
        return product.inventory if product.is_active else 0
    variant = product.find_variant(variant_id)
    if variant is None:
        raise VariantNotFound(product.id, variant_id)
    return variant.inventory if variant.is_active else 0
