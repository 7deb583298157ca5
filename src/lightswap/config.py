"""Application configuration using pydantic-settings.

Only the swap service endpoints and runtime switches live here; swap key
material is never configured, it is generated per swap.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug logging")

    # ======================
    # Swap Service
    # ======================
    boltz_api_url: str = Field(
        default="https://api.testnet.boltz.exchange/v2",
        description="Swap service REST base URL",
    )
    boltz_ws_url: Optional[str] = Field(
        default=None,
        description="Swap service WebSocket URL (derived from the REST URL when unset)",
    )
    http_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    pair_from: str = Field(default="BTC", description="Pair base asset")
    pair_to: str = Field(default="BTC", description="Pair quote asset")

    # ======================
    # Safety Guards
    # ======================
    dry_run: bool = Field(default=True, description="Use the in-memory swap service simulation")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def websocket_url(self) -> str:
        """WebSocket endpoint for swap status updates."""
        if self.boltz_ws_url:
            return self.boltz_ws_url
        base = self.boltz_api_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return f"{base}/ws"

    def get_safe_dict(self) -> dict:
        """Return settings dict suitable for logging."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "boltz_api_url": self.boltz_api_url,
            "websocket_url": self.websocket_url,
            "http_timeout": self.http_timeout,
            "pair": f"{self.pair_from}/{self.pair_to}",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging the same way for every entry point."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
