"""Cart domain models, reconciliation value objects and API schemas."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator

from storefront.models.base import CamelModel

OwnerKind = Literal["guest", "user"]
TransferAction = Literal["merge", "replace", "copy"]

TRANSFER_ACTIONS: tuple[str, ...] = ("merge", "replace", "copy")


class CartItem(CamelModel):
    """A single line of a cart."""

    id: str
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(..., ge=1)
    unit_price: Decimal = Field(
        Decimal("0"),
        validation_alias=AliasChoices("unitPrice", "unit_price", "price"),
    )

    @field_validator("id", "product_id", "variant_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        return None if value is None else str(value)

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(CamelModel):
    """Cart as returned by the Cart Store; the Cart Store is the source of truth."""

    id: str
    owner_kind: OwnerKind | None = None
    guest_token: str | None = None
    user_id: str | None = None
    items: list[CartItem] = Field(default_factory=list)
    total_items: int | None = None
    total_price: Decimal | None = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        return None if value is None else str(value)

    @model_validator(mode="after")
    def _fill_derived(self) -> Cart:
        if self.owner_kind is None:
            self.owner_kind = "user" if self.user_id else "guest"
        if self.total_items is None:
            self.total_items = sum(item.quantity for item in self.items)
        if self.total_price is None:
            self.total_price = sum(
                (item.subtotal for item in self.items), Decimal("0")
            )
        return self

    @property
    def owner_key(self) -> str | None:
        return self.user_id if self.owner_kind == "user" else self.guest_token

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: str) -> CartItem | None:
        for item in self.items:
            if item.id == str(item_id):
                return item
        return None


class CartPresence(CamelModel):
    """Payload of the cheap guest/user existence checks."""

    exists: bool = False
    item_count: int = 0
    total: Decimal | None = None
    cart_id: str | None = None

    @field_validator("cart_id", mode="before")
    @classmethod
    def _coerce_cart_id(cls, value):
        return None if value is None else str(value)

    @property
    def has_items(self) -> bool:
        return self.exists and self.item_count > 0


class ShopperIdentity(CamelModel):
    """Who a Cart Store call is made on behalf of."""

    session_id: str
    guest_token: str | None = None
    user_id: str | None = None
    auth_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def cache_key(self) -> tuple[str | None, str | None]:
        return (self.guest_token, self.user_id)

    def as_guest(self) -> ShopperIdentity:
        return ShopperIdentity(session_id=self.session_id, guest_token=self.guest_token)


class TransferIntent(CamelModel):
    """One-shot request to reconcile a guest cart into a user's cart."""

    guest_cart: CartPresence
    user_cart: CartPresence
    action: TransferAction
    target_user_id: str
    source_cart_id: str | None = None


class ConflictState(str, Enum):
    NO_CONFLICT = "no_conflict"
    CONFLICT_DETECTED = "conflict_detected"
    RESOLVING = "resolving"


class ConflictStatus(CamelModel):
    """Read-only snapshot of the reconciler exposed to the UI."""

    state: ConflictState
    guest_item_count: int = 0
    user_item_count: int = 0
    active_owner: OwnerKind | None = None
    error: str | None = None

    @property
    def has_conflict(self) -> bool:
        return self.state != ConflictState.NO_CONFLICT


class AddItemRequest(CamelModel):
    """Incoming payload for POST /cart/items."""

    product_id: str = Field(..., min_length=1)
    quantity: int = 1
    variant_id: str | None = None


class UpdateQuantityRequest(CamelModel):
    """Incoming payload for PATCH /cart/items/{item_id}."""

    quantity: int


class ResolveConflictRequest(CamelModel):
    """Incoming payload for POST /cart/conflict/resolve."""

    action: TransferAction


class CartResponse(CamelModel):
    """Cart view returned by the storefront API."""

    cart: Cart | None = None
    is_loading: bool = False
    conflict: ConflictStatus
