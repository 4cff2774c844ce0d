"""System-level routes such as health checks."""

from __future__ import annotations

import httpx
from fastapi import APIRouter

from storefront.config import settings

SERVICE_NAME = "storefront-cart"
SERVICE_VERSION = "1.0.0"

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Service metadata used by smoke tests."""

    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint with Cart Store connectivity check."""

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{settings.CART_API_BASE_URL}/cart", timeout=5.0)
            cart_store_status = (
                "connected" if response.status_code < 500 else "disconnected"
            )
    except httpx.HTTPError:
        cart_store_status = "disconnected"

    return {
        "status": "healthy",
        "cart_store": cart_store_status,
        "environment": settings.ENVIRONMENT,
    }
