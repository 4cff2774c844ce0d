"""Catalog client used to look up products, variants and inventory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Annotated

import httpx
from fastapi import Depends

from storefront.config import settings
from storefront.errors import CartStoreError, ProductNotFound
from storefront.models.product import Product
from storefront.services.clients.http import get_http_client, parse_payload, send


class CatalogClient(ABC):
    """Abstract read-only view of the product catalog."""

    @abstractmethod
    async def get_product(self, product_id: str) -> Product:
        """Return the product with its variants and option schema."""


class HttpCatalogClient(CatalogClient):
    """Catalog implementation backed by ``GET /products/{id}``."""

    def __init__(self, *, http_client: httpx.AsyncClient, base_url: str) -> None:
        if not base_url:
            raise ValueError("Catalog base URL is required")
        self._http = http_client
        self._base_url = base_url.rstrip("/")

    async def get_product(self, product_id: str) -> Product:
        try:
            data = await send(
                self._http, "GET", f"{self._base_url}/products/{product_id}"
            )
        except CartStoreError as exc:
            if exc.status_code == 404:
                raise ProductNotFound(product_id) from exc
            raise
        return parse_payload(Product, data)


def get_catalog_client() -> CatalogClient:
    """FastAPI dependency returning the REST catalog client."""

    return HttpCatalogClient(
        http_client=get_http_client(),
        base_url=settings.CATALOG_API_BASE_URL,
    )


CatalogDependency = Annotated[CatalogClient, Depends(get_catalog_client)]
