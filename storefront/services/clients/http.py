"""Shared httpx plumbing for the Cart Store and catalog clients."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from storefront.config import settings
from storefront.errors import CartStoreError
from storefront.models.cart import ShopperIdentity

logger = logging.getLogger(__name__)

GUEST_TOKEN_HEADER = "X-Guest-Token"

ModelT = TypeVar("ModelT", bound=BaseModel)

_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """Return a singleton HTTP client for the current process."""

    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=settings.CART_API_TIMEOUT_SECONDS,
            headers={"Accept": "application/json"},
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


def identity_headers(identity: ShopperIdentity | None) -> dict[str, str]:
    """Guest token and bearer token headers for a call made on behalf of a shopper."""

    headers: dict[str, str] = {}
    if identity is None:
        return headers
    if identity.guest_token:
        headers[GUEST_TOKEN_HEADER] = identity.guest_token
    if identity.auth_token:
        headers["Authorization"] = f"Bearer {identity.auth_token}"
    return headers


def unwrap_payload(response: httpx.Response) -> Any:
    """Return the response body, unwrapping a ``{success, message, data}`` envelope.

    Raises:
        CartStoreError: for non-2xx responses, unparsable bodies, or envelopes
            reporting ``success: false``.
    """
    try:
        body = response.json() if response.content else None
    except ValueError as exc:
        raise CartStoreError(
            f"Invalid JSON from {response.request.url.path}",
            status_code=response.status_code,
        ) from exc

    if response.is_error:
        message = _extract_message(body) or response.reason_phrase
        raise CartStoreError(message, status_code=response.status_code)

    if isinstance(body, dict) and "success" in body and "data" in body:
        if not body["success"]:
            raise CartStoreError(
                _extract_message(body) or "Request failed",
                status_code=response.status_code,
            )
        return body["data"]
    return body


def _extract_message(body: Any) -> str | None:
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    identity: ShopperIdentity | None = None,
    json: dict | None = None,
) -> Any:
    """Issue one request and return the unwrapped payload."""

    try:
        response = await client.request(
            method,
            url,
            json=json,
            headers=identity_headers(identity),
        )
    except httpx.HTTPError as exc:
        logger.warning("%s %s failed: %s", method, url, exc)
        raise CartStoreError(f"{method} {url} failed: {exc}") from exc

    logger.debug("%s %s -> %s", method, url, response.status_code)
    return unwrap_payload(response)


def parse_payload(model: type[ModelT], data: Any) -> ModelT:
    """Validate an unwrapped payload; malformed bodies raise ``CartStoreError``."""

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Malformed %s payload: %s", model.__name__, exc)
        raise CartStoreError(
            f"Malformed {model.__name__} payload ({exc.error_count()} invalid fields)"
        ) from exc
