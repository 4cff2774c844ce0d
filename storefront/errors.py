"""Error taxonomy shared by the variant resolver, cart reconciler and facade."""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for every error raised by the storefront service."""


class VariantError(StorefrontError):
    """Errors raised while resolving product variants."""


class EmptyCatalog(VariantError):
    """No variants are available to resolve a selection against."""

    def __init__(self, message: str = "Product has no variants to select from"):
        super().__init__(message)


class UnknownOptionValue(VariantError, ValueError):
    """A selection names a property or value outside the product's option schema."""

    def __init__(self, property_name: str, value: str):
        self.property_name = property_name
        self.value = value
        super().__init__(f"'{value}' is not a valid value for '{property_name}'")


class CartError(StorefrontError):
    """Errors raised by cart operations."""


class InvalidQuantity(CartError):
    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__("Quantity must be greater than 0")


class OutOfStock(CartError):
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough inventory available (requested {requested}, "
            f"available {available})"
        )


class ProductNotFound(CartError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} was not found")


class VariantNotFound(CartError):
    def __init__(self, product_id: str, variant_id: str):
        self.product_id = product_id
        self.variant_id = variant_id
        super().__init__(f"Variant {variant_id} does not belong to product {product_id}")


class CartStoreError(CartError):
    """A Cart Store or catalog request failed (transport error or error response)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CartOperationFailed(CartError):
    """A cart mutation was rejected; local cart state was left unchanged."""


class TransferFailed(CartError):
    """A guest-to-user cart transfer did not complete; the conflict stays open."""


class ConflictCheckFailed(CartError):
    """Existence checks failed; callers treat this as "no conflict"."""


class NoConflictToResolve(CartError):
    def __init__(self) -> None:
        super().__init__("There is no cart conflict to resolve")


class ResolutionInProgress(CartError):
    def __init__(self) -> None:
        super().__init__("Cart conflict resolution is already in progress")
