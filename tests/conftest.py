"""Pytest configuration and fixtures for the storefront cart service."""

import asyncio
import itertools
from decimal import Decimal

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from storefront.errors import CartStoreError, ProductNotFound
from storefront.models.cart import Cart, CartItem, CartPresence
from storefront.models.product import Product
from storefront.models.variant import Variant, VariantProperty
from storefront.services.cart.conflict_cache import ConflictCheckCache
from storefront.services.cart.facade import CartFacade
from storefront.services.cart.guest_token_store import GuestTokenStore
from storefront.services.cart.reconciler import CartReconciler
from storefront.services.cart.session_registry import (
    CartSessionRegistry,
    build_facade_factory,
    get_session_registry,
)
from storefront.services.clients.cart_store_client import CartStoreClient
from storefront.services.clients.catalog_client import CatalogClient, get_catalog_client


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


class FakeCartStore(CartStoreClient):
    """In-memory Cart Store applying the server-side transfer policies.

    Guest carts are keyed by token, user carts by user id. Transfers never
    collapse duplicate lines.
    """

    def __init__(self):
        self.carts: dict[str, dict] = {}
        self.calls: list[str] = []
        self.fail_transfer = False
        self.fail_mutations = False
        self.exists_failures = 0
        # quantity -> event an update_item response waits on before returning
        self.update_gates: dict[int, asyncio.Event] = {}
        self._ids = itertools.count(1)

    def _next(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    def _find(self, *, guest_token=None, user_id=None):
        for cart in self.carts.values():
            if user_id is not None and cart["user_id"] == user_id:
                return cart
            if (
                user_id is None
                and guest_token is not None
                and cart["user_id"] is None
                and cart["guest_token"] == guest_token
            ):
                return cart
        return None

    def _create(self, *, guest_token=None, user_id=None):
        cart_id = self._next("cart")
        cart = {
            "id": cart_id,
            "guest_token": None if user_id else guest_token or self._next("guest"),
            "user_id": user_id,
            "items": [],
        }
        self.carts[cart_id] = cart
        return cart

    def _cart_for(self, identity):
        if identity.user_id:
            return self._find(user_id=identity.user_id) or self._create(
                user_id=identity.user_id
            )
        return self._find(guest_token=identity.guest_token) or self._create(
            guest_token=identity.guest_token
        )

    @staticmethod
    def _snapshot(cart) -> Cart:
        return Cart(
            id=cart["id"],
            guest_token=cart["guest_token"],
            user_id=cart["user_id"],
            items=[item.model_copy() for item in cart["items"]],
        )

    def _line(self, product_id, quantity, variant_id=None):
        return CartItem(
            id=self._next("item"),
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            unit_price=Decimal("10.00"),
        )

    def _check_mutations(self):
        if self.fail_mutations:
            raise CartStoreError("Cart Store unavailable", status_code=503)

    def seed_guest_cart(self, token, lines):
        cart = self._create(guest_token=token)
        cart["items"] = [self._line(*line) for line in lines]
        return cart

    def seed_user_cart(self, user_id, lines):
        cart = self._create(user_id=user_id)
        cart["items"] = [self._line(*line) for line in lines]
        return cart

    async def get_cart(self, identity):
        self.calls.append("get_cart")
        return self._snapshot(self._cart_for(identity))

    async def add_item(self, identity, product_id, quantity, variant_id=None):
        self.calls.append("add_item")
        self._check_mutations()
        cart = self._cart_for(identity)
        for item in cart["items"]:
            if item.product_id == product_id and item.variant_id == variant_id:
                item.quantity += quantity
                break
        else:
            cart["items"].append(self._line(product_id, quantity, variant_id))
        return self._snapshot(cart)

    async def update_item(self, identity, item_id, quantity):
        self.calls.append("update_item")
        self._check_mutations()
        cart = self._cart_for(identity)
        for item in cart["items"]:
            if item.id == item_id:
                item.quantity = quantity
                break
        else:
            raise CartStoreError("Item not found", status_code=404)
        snapshot = self._snapshot(cart)
        gate = self.update_gates.get(quantity)
        if gate is not None:
            await gate.wait()
        return snapshot

    async def remove_item(self, identity, item_id):
        self.calls.append("remove_item")
        self._check_mutations()
        cart = self._cart_for(identity)
        cart["items"] = [item for item in cart["items"] if item.id != item_id]
        return self._snapshot(cart)

    async def clear(self, identity):
        self.calls.append("clear")
        self._check_mutations()
        cart = self._cart_for(identity)
        cart["items"] = []
        return self._snapshot(cart)

    def _presence(self, cart):
        if cart is None:
            return CartPresence()
        return CartPresence(
            exists=True,
            item_count=len(cart["items"]),
            cart_id=cart["id"],
        )

    def _maybe_fail_exists(self):
        if self.exists_failures > 0:
            self.exists_failures -= 1
            raise CartStoreError("existence check timed out")

    async def guest_cart_exists(self, identity):
        self.calls.append("guest_cart_exists")
        self._maybe_fail_exists()
        return self._presence(self._find(guest_token=identity.guest_token))

    async def user_cart_exists(self, identity):
        self.calls.append("user_cart_exists")
        self._maybe_fail_exists()
        return self._presence(self._find(user_id=identity.user_id))

    async def transfer(self, identity, source_cart_id, target_user_id, action):
        self.calls.append(f"transfer:{action}")
        if self.fail_transfer:
            raise CartStoreError("Transfer timed out", status_code=504)

        source = self.carts[source_cart_id]
        target = self._find(user_id=target_user_id) or self._create(
            user_id=target_user_id
        )
        copied = [
            self._line(item.product_id, item.quantity, item.variant_id)
            for item in source["items"]
        ]
        if action == "replace":
            target["items"] = copied
        else:
            target["items"].extend(copied)
        if action in ("merge", "replace"):
            del self.carts[source_cart_id]
        return self._snapshot(target)


class FakeCatalog(CatalogClient):
    def __init__(self, products):
        self.products = {product.id: product for product in products}

    async def get_product(self, product_id):
        product = self.products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_variants():
    return [
        Variant(id="1", sku="TEE-RED-M", properties={"color": "red", "size": "M"}, inventory=5),
        Variant(id="2", sku="TEE-RED-L", properties={"color": "red", "size": "L"}, inventory=0),
        Variant(id="3", sku="TEE-BLU-M", properties={"color": "blue", "size": "M"}, inventory=3),
    ]


def make_schema():
    return {
        "color": VariantProperty(
            display_name="Color", property_type="color", values=["red", "blue"]
        ),
        "size": VariantProperty(display_name="Size", values=["M", "L"]),
    }


@pytest.fixture()
def variants():
    return make_variants()


@pytest.fixture()
def schema():
    return make_schema()


@pytest.fixture()
def catalog():
    return FakeCatalog(
        [
            Product(id="mug", name="Mug", price=Decimal("12.00"), inventory=5),
            Product(id="retired-mug", name="Old Mug", inventory=10, is_active=False),
            Product(
                id="tee",
                name="T-Shirt",
                price=Decimal("20.00"),
                variants=make_variants(),
                variant_options=make_schema(),
            ),
        ]
    )


@pytest.fixture()
def store():
    return FakeCartStore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def reconciler(store, clock):
    return CartReconciler(
        store=store,
        cache=ConflictCheckCache(ttl_seconds=5, clock=clock),
        check_retries=1,
    )


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    client = fakeredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()


@pytest.fixture()
def tokens(redis_client):
    return GuestTokenStore(redis_client)


@pytest.fixture()
def facade(store, catalog, reconciler, tokens):
    return CartFacade(
        session_id="session-1",
        store=store,
        catalog=catalog,
        reconciler=reconciler,
        tokens=tokens,
    )


@pytest.fixture()
def registry(store, catalog, tokens):
    return CartSessionRegistry(
        build_facade_factory(store=store, catalog=catalog, tokens=tokens)
    )


@pytest_asyncio.fixture()
async def client(registry, catalog):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from storefront.main import app

    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_catalog_client] = lambda: catalog
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_session_registry, None)
        app.dependency_overrides.pop(get_catalog_client, None)
