"""
Configuration settings for the storefront cart service.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Cart Store / catalog REST collaborators
    CART_API_BASE_URL: str = os.getenv(
        "CART_API_BASE_URL",
        "http://localhost:3000/api/v1",
    )
    CATALOG_API_BASE_URL: str = os.getenv("CATALOG_API_BASE_URL", CART_API_BASE_URL)
    CART_API_TIMEOUT_SECONDS: float = float(os.getenv("CART_API_TIMEOUT_SECONDS", "10"))

    # Conflict detection
    CONFLICT_CHECK_TTL_SECONDS: float = float(
        os.getenv("CONFLICT_CHECK_TTL_SECONDS", "5")
    )
    CONFLICT_CHECK_RETRIES: int = int(os.getenv("CONFLICT_CHECK_RETRIES", "1"))

    # Per-session cart facades kept in memory
    CART_SESSION_IDLE_SECONDS: float = float(
        os.getenv("CART_SESSION_IDLE_SECONDS", str(60 * 30))
    )
    CART_SESSION_MAX: int = int(os.getenv("CART_SESSION_MAX", "10000"))

    # Redis / guest token persistence
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    GUEST_TOKEN_KEY_PREFIX: str = os.getenv(
        "GUEST_TOKEN_KEY_PREFIX",
        "storefront:guest-token:",
    )
    GUEST_TOKEN_TTL_SECONDS: int = int(
        os.getenv("GUEST_TOKEN_TTL_SECONDS", str(60 * 60 * 24 * 30))
    )

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    def __init__(self):
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        logging.basicConfig(level=self.log_level)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with environment={self.ENVIRONMENT}, "
            f"debug={self.debug}, log_level={self.log_level}"
        )


# Create a global settings instance for import
settings = Settings()
