"""Cart Store client abstractions and the REST implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Annotated

import httpx
from fastapi import Depends

from storefront.config import settings
from storefront.models.cart import Cart, CartPresence, ShopperIdentity, TransferAction
from storefront.services.clients.http import get_http_client, parse_payload, send


class CartStoreClient(ABC):
    """Abstract interface to the external cart persistence API."""

    @abstractmethod
    async def get_cart(self, identity: ShopperIdentity) -> Cart:
        """Return the current cart for the caller's identity."""

    @abstractmethod
    async def add_item(
        self,
        identity: ShopperIdentity,
        product_id: str,
        quantity: int,
        variant_id: str | None = None,
    ) -> Cart:
        """Add a line (or quantity) and return the updated cart."""

    @abstractmethod
    async def update_item(
        self, identity: ShopperIdentity, item_id: str, quantity: int
    ) -> Cart:
        """Set the absolute quantity of a line and return the updated cart."""

    @abstractmethod
    async def remove_item(self, identity: ShopperIdentity, item_id: str) -> Cart:
        """Remove a line and return the updated cart."""

    @abstractmethod
    async def clear(self, identity: ShopperIdentity) -> Cart:
        """Remove every line and return the emptied cart."""

    @abstractmethod
    async def guest_cart_exists(self, identity: ShopperIdentity) -> CartPresence:
        """Cheap existence check for the guest cart bound to the guest token."""

    @abstractmethod
    async def user_cart_exists(self, identity: ShopperIdentity) -> CartPresence:
        """Cheap existence check for the signed-in user's cart."""

    @abstractmethod
    async def transfer(
        self,
        identity: ShopperIdentity,
        source_cart_id: str,
        target_user_id: str,
        action: TransferAction,
    ) -> Cart:
        """Reconcile the guest cart into the user's cart and return the result."""


class HttpCartStoreClient(CartStoreClient):
    """Cart Store implementation speaking JSON over HTTP."""

    def __init__(self, *, http_client: httpx.AsyncClient, base_url: str) -> None:
        if not base_url:
            raise ValueError("Cart Store base URL is required")
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def get_cart(self, identity: ShopperIdentity) -> Cart:
        data = await send(self._http, "GET", self._url("/cart"), identity=identity)
        return parse_payload(Cart, data)

    async def add_item(
        self,
        identity: ShopperIdentity,
        product_id: str,
        quantity: int,
        variant_id: str | None = None,
    ) -> Cart:
        body: dict = {"productId": product_id, "quantity": quantity}
        if variant_id is not None:
            body["variantId"] = variant_id
        data = await send(
            self._http, "POST", self._url("/cart/items"), identity=identity, json=body
        )
        return parse_payload(Cart, data)

    async def update_item(
        self, identity: ShopperIdentity, item_id: str, quantity: int
    ) -> Cart:
        data = await send(
            self._http,
            "PATCH",
            self._url(f"/cart/items/{item_id}"),
            identity=identity,
            json={"quantity": quantity},
        )
        return parse_payload(Cart, data)

    async def remove_item(self, identity: ShopperIdentity, item_id: str) -> Cart:
        data = await send(
            self._http,
            "DELETE",
            self._url(f"/cart/items/{item_id}"),
            identity=identity,
        )
        return parse_payload(Cart, data)

    async def clear(self, identity: ShopperIdentity) -> Cart:
        data = await send(
            self._http, "DELETE", self._url("/cart/clear"), identity=identity
        )
        return parse_payload(Cart, data)

    async def guest_cart_exists(self, identity: ShopperIdentity) -> CartPresence:
        data = await send(
            self._http, "GET", self._url("/cart/guest-exists"), identity=identity
        )
        return parse_payload(CartPresence, data or {})

    async def user_cart_exists(self, identity: ShopperIdentity) -> CartPresence:
        data = await send(
            self._http, "GET", self._url("/cart/user-exists"), identity=identity
        )
        return parse_payload(CartPresence, data or {})

    async def transfer(
        self,
        identity: ShopperIdentity,
        source_cart_id: str,
        target_user_id: str,
        action: TransferAction,
    ) -> Cart:
        data = await send(
            self._http,
            "POST",
            self._url("/cart/transfer"),
            identity=identity,
            json={
                "sourceCartId": source_cart_id,
                "targetUserId": target_user_id,
                "action": action,
            },
        )
        return parse_payload(Cart, data)


def get_cart_store_client() -> CartStoreClient:
    """FastAPI dependency returning the REST Cart Store client."""

    return HttpCartStoreClient(
        http_client=get_http_client(),
        base_url=settings.CART_API_BASE_URL,
    )


CartStoreDependency = Annotated[CartStoreClient, Depends(get_cart_store_client)]
