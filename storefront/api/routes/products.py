"""Variant selection routes backing the product detail view."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status
from pydantic import Field

from storefront.api.errors import to_http_exception
from storefront.errors import StorefrontError
from storefront.models.base import CamelModel
from storefront.models.product import Product
from storefront.models.variant import (
    PropertyOptions,
    SelectionState,
    Variant,
    VariantMatch,
)
from storefront.services.catalog.variant_resolver import VariantResolver
from storefront.services.clients.catalog_client import CatalogClient, CatalogDependency

router = APIRouter(prefix="/products", tags=["products"])
logger = logging.getLogger(__name__)


class InitialSelectionResponse(CamelModel):
    variant: Variant
    selection: SelectionState
    options: list[PropertyOptions] = Field(default_factory=list)


class SelectValueRequest(CamelModel):
    selection: SelectionState = Field(
        default_factory=dict,
        description="Current selection before this click",
    )
    property_name: str = Field(..., min_length=1)
    value: str = Field(..., description="Selected value; empty string clears it")


class SelectValueResponse(CamelModel):
    selection: SelectionState
    match: VariantMatch | None = None
    confirms_selection: bool = False
    options: list[PropertyOptions] = Field(default_factory=list)


async def _load_resolver(catalog: CatalogClient, product_id: str) -> VariantResolver:
    product: Product = await catalog.get_product(product_id)
    return VariantResolver(product.variants, product.variant_options)


@router.get(
    "/{product_id}/variants/initial",
    response_model=InitialSelectionResponse,
    status_code=status.HTTP_200_OK,
    summary="Variant and selection a product page opens on",
)
async def initial_selection(
    product_id: str,
    catalog: CatalogDependency,
    preferred_variant_id: Annotated[
        str | None, Query(alias="preferredVariantId")
    ] = None,
) -> InitialSelectionResponse:
    try:
        resolver = await _load_resolver(catalog, product_id)
        preferred = None
        if preferred_variant_id is not None:
            preferred = next(
                (v for v in resolver.variants if v.id == preferred_variant_id), None
            )
        variant = resolver.initialize(preferred)
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc

    selection = dict(variant.properties)
    return InitialSelectionResponse(
        variant=variant,
        selection=selection,
        options=resolver.option_states(selection),
    )


@router.post(
    "/{product_id}/variants/select",
    response_model=SelectValueResponse,
    status_code=status.HTTP_200_OK,
    summary="Apply one option click and resolve the matching variant",
)
async def select_value(
    product_id: str,
    payload: SelectValueRequest,
    catalog: CatalogDependency,
) -> SelectValueResponse:
    """Resolve the clicked value against the product's variants."""

    try:
        resolver = await _load_resolver(catalog, product_id)
        result = resolver.select_value(
            payload.selection, payload.property_name, payload.value
        )
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc

    logger.info(
        "Variant selection resolved",
        extra={
            "product_id": product_id,
            "property": payload.property_name,
            "variant_id": result.variant.id if result.variant else None,
            "exact": result.is_exact,
        },
    )
    return SelectValueResponse(
        selection=result.selection,
        match=result.match,
        confirms_selection=result.confirms_selection,
        options=resolver.option_states(result.selection),
    )
