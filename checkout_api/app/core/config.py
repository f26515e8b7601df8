from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from repo root if present
ENV_PATH = Path(__file__).resolve().parents[3] / ".env"
if ENV_PATH.exists():
    load_dotenv(dotenv_path=ENV_PATH)


class Settings(BaseSettings):
    """Checkout service settings (loaded from env).

    Payment:
      - STRIPE_SECRET_KEY enables real Checkout Session calls; without it the
        provider raises PaymentProviderUnavailable and checkout answers 500.
      - STRIPE_WEBHOOK_SECRET verifies the Stripe-Signature header.

    Reconciliation:
      - orders older than reconcile_grace_seconds that are still waiting on
        the payment session are repaired by the worker.
    """

    # --- service ---
    service_name: str = Field(default="checkout-api", description="Service name")
    version: str = Field(default="0.1.0", description="Service version")
    environment: str = Field(default="dev", description="Environment name (dev/staging/prod)")
    host: str = Field(default="0.0.0.0", description="API bind host")
    port: int = Field(default=8000, description="API bind port")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="text", description="text|json")

    # --- Redis (store of record) ---
    redis_url: str = Field(default="redis://redis:6379/0", description="Redis connection URL")
    redis_key_prefix: str = Field(default="checkout", description="Prefix for every key we write")

    # --- Stripe ---
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    currency: str = Field(default="usd", description="ISO currency code for orders and line items")

    # Redirect targets for hosted checkout
    frontend_url: str = Field(default="http://localhost:5173", description="Frontend base URL")

    # --- Reconciliation worker ---
    reconcile_interval_seconds: int = Field(default=60, description="Sleep between sweeps (s)")
    reconcile_grace_seconds: int = Field(
        default=900,
        description="Age after which an order stuck mid-checkout is repaired (s)",
    )

    # --- CORS ---
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_methods: List[str] = Field(default_factory=lambda: ["*"])
    cors_allow_headers: List[str] = Field(default_factory=lambda: ["*"])

    # pydantic-settings v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
