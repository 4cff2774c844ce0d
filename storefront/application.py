"""FastAPI application factory and bootstrap helpers."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.api.routes import include_api_routes
from storefront.api.routes.system import SERVICE_VERSION
from storefront.config import settings
from storefront.services.cart.guest_token_store import close_redis_client
from storefront.services.cart.session_registry import close_session_registry
from storefront.services.clients.http import close_http_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events."""
    logger.info(
        "Starting storefront cart service",
        extra={"environment": settings.ENVIRONMENT, "cart_api": settings.CART_API_BASE_URL},
    )

    yield

    # facades first so in-flight results are discarded before their clients go away
    close_session_registry()
    await close_http_client()
    try:
        await close_redis_client()
    except Exception:
        logger.exception("Failed closing Redis client on shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Shopifake Storefront Cart",
        description="Cart, guest/user reconciliation and variant selection service",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    _configure_cors(app)
    include_api_routes(app)

    return app


def _configure_cors(app: FastAPI) -> None:
    """Allow broad access in non-production environments."""

    if settings.is_production:
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
