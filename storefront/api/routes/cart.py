"""Routes exposing the per-session cart facade to the storefront UI."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, status

from storefront.api.errors import to_http_exception
from storefront.errors import ResolutionInProgress, StorefrontError
from storefront.models.cart import (
    AddItemRequest,
    CartResponse,
    ConflictStatus,
    ResolveConflictRequest,
    UpdateQuantityRequest,
)
from storefront.services.cart.facade import CartFacade
from storefront.services.cart.session_registry import (
    CartSessionRegistry,
    get_session_registry,
)

router = APIRouter(prefix="/cart", tags=["cart"])

RegistryDependency = Annotated[CartSessionRegistry, Depends(get_session_registry)]


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def get_cart_facade(
    registry: RegistryDependency,
    x_session_id: Annotated[str, Header(min_length=1)],
    x_user_id: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> CartFacade:
    """Resolve the session's facade and apply any auth-state transition."""

    facade, created = registry.get_or_create(x_session_id)
    if facade.user_id and not x_user_id:
        # signed out: start the session over as a guest
        await facade.sign_out()
        registry.close(x_session_id)
        facade, created = registry.get_or_create(x_session_id)
    try:
        if created:
            await facade.restore()
        if x_user_id:
            await facade.sign_in(x_user_id, _bearer_token(authorization))
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc
    return facade


FacadeDependency = Annotated[CartFacade, Depends(get_cart_facade)]


def _cart_response(facade: CartFacade) -> CartResponse:
    return CartResponse(
        cart=facade.cart,
        is_loading=facade.is_loading,
        conflict=facade.conflict_status,
    )


@router.get(
    "",
    response_model=CartResponse,
    summary="Fetch the shopper's current cart",
)
async def get_cart(facade: FacadeDependency) -> CartResponse:
    try:
        await facade.refresh()
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc
    return _cart_response(facade)


@router.post(
    "/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a product or variant to the cart",
)
async def add_item(payload: AddItemRequest, facade: FacadeDependency) -> CartResponse:
    try:
        await facade.add_item(payload.product_id, payload.quantity, payload.variant_id)
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc
    return _cart_response(facade)


@router.patch(
    "/items/{item_id}",
    response_model=CartResponse,
    summary="Set the quantity of a cart line",
)
async def update_item(
    item_id: str,
    payload: UpdateQuantityRequest,
    facade: FacadeDependency,
) -> CartResponse:
    try:
        await facade.update_quantity(item_id, payload.quantity)
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc
    return _cart_response(facade)


@router.delete(
    "/items/{item_id}",
    response_model=CartResponse,
    summary="Remove a line from the cart",
)
async def remove_item(item_id: str, facade: FacadeDependency) -> CartResponse:
    try:
        await facade.remove_item(item_id)
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc
    return _cart_response(facade)


@router.delete(
    "",
    response_model=CartResponse,
    summary="Remove every line from the cart",
)
async def clear_cart(facade: FacadeDependency) -> CartResponse:
    try:
        await facade.clear()
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc
    return _cart_response(facade)


@router.get(
    "/conflict",
    response_model=ConflictStatus,
    summary="Current guest/user cart conflict state",
)
async def get_conflict(facade: FacadeDependency) -> ConflictStatus:
    return facade.conflict_status


@router.post(
    "/conflict/check",
    response_model=ConflictStatus,
    summary="Look for a guest cart and a user cart that both hold items",
)
async def check_conflict(
    facade: FacadeDependency,
    force: Annotated[bool, Query()] = False,
) -> ConflictStatus:
    await facade.check_conflicts(force=force)
    return facade.conflict_status


@router.post(
    "/conflict/resolve",
    response_model=CartResponse,
    summary="Reconcile the guest cart into the user cart",
)
async def resolve_conflict(
    payload: ResolveConflictRequest,
    facade: FacadeDependency,
) -> CartResponse:
    try:
        cart = await facade.resolve_conflict(payload.action)
    except StorefrontError as exc:
        raise to_http_exception(exc) from exc

    if cart is None:
        raise to_http_exception(ResolutionInProgress())

    return _cart_response(facade)
