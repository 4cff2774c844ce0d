"""Translate storefront errors into HTTP errors for the route handlers."""

from __future__ import annotations

from fastapi import HTTPException, status

from storefront.errors import (
    CartOperationFailed,
    CartStoreError,
    EmptyCatalog,
    InvalidQuantity,
    NoConflictToResolve,
    OutOfStock,
    ProductNotFound,
    ResolutionInProgress,
    StorefrontError,
    TransferFailed,
    UnknownOptionValue,
    VariantNotFound,
)

_STATUS_BY_ERROR: tuple[tuple[type[StorefrontError], int], ...] = (
    (InvalidQuantity, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (OutOfStock, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (UnknownOptionValue, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ProductNotFound, status.HTTP_404_NOT_FOUND),
    (VariantNotFound, status.HTTP_404_NOT_FOUND),
    (EmptyCatalog, status.HTTP_404_NOT_FOUND),
    (NoConflictToResolve, status.HTTP_409_CONFLICT),
    (ResolutionInProgress, status.HTTP_409_CONFLICT),
    (TransferFailed, status.HTTP_502_BAD_GATEWAY),
    (CartOperationFailed, status.HTTP_502_BAD_GATEWAY),
    (CartStoreError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_exception(exc: StorefrontError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc),
    )
