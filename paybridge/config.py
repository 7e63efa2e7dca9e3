from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PlanType = Literal["monthly", "annual"]


class Settings(BaseSettings):
    """Process-wide configuration, loaded once at startup and never mutated."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    app_name: str = Field(default="SportDogLog API", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        alias="APP_ENV",
    )
    port: int = Field(default=3000, ge=1, le=65535, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    frontend_url: str = Field(default="https://sportdoglog.com", alias="FRONTEND_URL")

    stripe_secret_key: SecretStr = Field(alias="STRIPE_SECRET_KEY")
    stripe_publishable_key: str | None = Field(default=None, alias="STRIPE_PUBLISHABLE_KEY")
    stripe_webhook_secret: SecretStr = Field(alias="STRIPE_WEBHOOK_SECRET")
    monthly_price_id: str = Field(alias="MONTHLY_PRICE_ID")
    annual_price_id: str = Field(alias="ANNUAL_PRICE_ID")

    revenuecat_api_key: SecretStr = Field(alias="REVENUECAT_API_KEY")
    revenuecat_public_key: str | None = Field(default=None, alias="REVENUECAT_PUBLIC_KEY")
    revenuecat_api_base: str = Field(
        default="https://api.revenuecat.com/v1",
        alias="REVENUECAT_API_BASE",
    )

    app_bundle_id: str = Field(min_length=1, alias="APP_BUNDLE_ID")

    http_timeout_seconds: float = Field(default=30.0, gt=0, le=120, alias="HTTP_TIMEOUT_SECONDS")
    rate_limit: str = Field(default="100/15minutes", alias="RATE_LIMIT")

    @field_validator("stripe_secret_key")
    @classmethod
    def validate_stripe_secret_key(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().startswith("sk_"):
            raise ValueError('STRIPE_SECRET_KEY must start with "sk_"')
        return value

    @field_validator("stripe_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().startswith("whsec_"):
            raise ValueError('STRIPE_WEBHOOK_SECRET must start with "whsec_"')
        return value

    @field_validator("revenuecat_api_key")
    @classmethod
    def validate_revenuecat_api_key(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("REVENUECAT_API_KEY must not be empty")
        return value

    @field_validator("monthly_price_id", "annual_price_id")
    @classmethod
    def validate_price_id(cls, value: str) -> str:
        """Both plan prices must be Stripe price identifiers."""
        if not value.startswith("price_"):
            raise ValueError('price ids must start with "price_"')
        return value

    @field_validator("frontend_url", "revenuecat_api_base")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("LOG_LEVEL must be a standard logging level name")
        return normalized

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    def price_id_for(self, plan_type: str) -> str | None:
        """Return the configured Stripe price for a plan, or None for unknown plans."""
        return {
            "monthly": self.monthly_price_id,
            "annual": self.annual_price_id,
        }.get(plan_type)


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
