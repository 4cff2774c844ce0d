"""Variant domain models and selection results."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator

from storefront.models.base import CamelModel

SelectionState = dict[str, str]


class Variant(CamelModel):
    """A concrete purchasable SKU of a product."""

    id: str
    sku: str
    price: Decimal | None = None
    sale_price: Decimal | None = None
    inventory: int = Field(0, ge=0)
    is_default: bool = False
    is_active: bool = True
    properties: dict[str, str] = Field(default_factory=dict)
    display_title: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value)

    @property
    def in_stock(self) -> bool:
        return self.is_active and self.inventory > 0

    @property
    def current_price(self) -> Decimal | None:
        return self.sale_price if self.sale_price is not None else self.price

    @property
    def on_sale(self) -> bool:
        return (
            self.sale_price is not None
            and self.price is not None
            and self.sale_price < self.price
        )

    @property
    def discount_percentage(self) -> int:
        if not self.on_sale:
            return 0
        return round((self.price - self.sale_price) / self.price * 100)


class VariantProperty(CamelModel):
    """Option space of a single variant property (e.g. every available color)."""

    display_name: str
    property_type: Literal["color", "select"] = "select"
    values: list[str] = Field(default_factory=list)

    @field_validator("property_type", mode="before")
    @classmethod
    def _fallback_to_select(cls, value):
        return value if value in ("color", "select") else "select"

    @field_validator("values")
    @classmethod
    def _dedupe_values(cls, values: list[str]) -> list[str]:
        return list(dict.fromkeys(values))


VariantPropertySchema = dict[str, VariantProperty]


class ExactMatch(CamelModel):
    """The variant agrees with every non-empty value in the selection."""

    kind: Literal["exact"] = "exact"
    variant: Variant


class PartialMatch(CamelModel):
    """Best-effort variant; ``missing_properties`` lists selections it does not satisfy."""

    kind: Literal["partial"] = "partial"
    variant: Variant
    missing_properties: list[str] = Field(default_factory=list)


VariantMatch = ExactMatch | PartialMatch


class SelectionResult(CamelModel):
    """Outcome of selecting one property value."""

    selection: SelectionState
    property_name: str
    value: str
    match: VariantMatch | None = None

    @property
    def variant(self) -> Variant | None:
        return self.match.variant if self.match else None

    @property
    def is_exact(self) -> bool:
        return isinstance(self.match, ExactMatch)

    @property
    def confirms_selection(self) -> bool:
        """True only when the resolved variant carries the value just selected."""
        variant = self.variant
        if variant is None:
            return False
        return variant.properties.get(self.property_name) == self.value


class OptionValueState(CamelModel):
    value: str
    available: bool
    in_stock: bool
    selected: bool


class PropertyOptions(CamelModel):
    """Render-ready state of one property's values for the selector UI."""

    property_name: str
    display_name: str
    property_type: Literal["color", "select"]
    selected_value: str | None = None
    values: list[OptionValueState] = Field(default_factory=list)
