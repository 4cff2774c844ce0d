"""Catalog product payload consumed read-only by the storefront."""

from __future__ import annotations

from decimal import Decimal

from pydantic import Field, field_validator

from storefront.models.base import CamelModel
from storefront.models.variant import Variant, VariantPropertySchema


class Product(CamelModel):
    """Response of ``GET /products/{id}`` including variants and their option schema."""

    id: str
    name: str = ""
    price: Decimal | None = None
    sale_price: Decimal | None = None
    inventory: int = Field(0, ge=0)
    is_active: bool = True
    variants: list[Variant] = Field(default_factory=list)
    variant_options: VariantPropertySchema = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value)

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def find_variant(self, variant_id: str) -> Variant | None:
        for variant in self.variants:
            if variant.id == str(variant_id):
                return variant
        return None
