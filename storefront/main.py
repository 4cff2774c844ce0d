"""FastAPI application entry point."""

from storefront.application import create_app

app = create_app()

__all__ = ["app"]
