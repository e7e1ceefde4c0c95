"""
Configuration loader for the service portal.

Settings come from the environment (populated from .env by the app entry
point); the seed pricing catalog comes from config/pricing_catalog.yml.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.integrations.contracts.interfaces import DarajaEnvironment, ServiceType

logger = logging.getLogger(__name__)

SANDBOX_SHORTCODE = "174379"

DARAJA_BASE_URLS = {
    DarajaEnvironment.SANDBOX: "https://sandbox.safaricom.co.ke",
    DarajaEnvironment.PRODUCTION: "https://api.safaricom.co.ke",
}


class DarajaConfig(BaseModel):
    """M-Pesa Daraja credentials and endpoints"""

    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    business_shortcode: str = SANDBOX_SHORTCODE
    passkey: Optional[str] = None
    callback_url: Optional[str] = None
    environment: DarajaEnvironment = DarajaEnvironment.SANDBOX
    timeout_seconds: float = Field(default=30.0, gt=0, le=120)
    callback_token: Optional[str] = None
    callback_allowed_ips: List[str] = Field(default_factory=list)

    @property
    def base_url(self) -> str:
        return DARAJA_BASE_URLS[self.environment]

    @property
    def oauth_url(self) -> str:
        return f"{self.base_url}/oauth/v1/generate?grant_type=client_credentials"

    @property
    def stk_push_url(self) -> str:
        return f"{self.base_url}/mpesa/stkpush/v1/processrequest"

    @property
    def uses_sandbox_shortcode(self) -> bool:
        return self.business_shortcode == SANDBOX_SHORTCODE


class RateLimitConfig(BaseModel):
    """Rate limiting configuration"""

    enabled: bool = True
    requests: int = Field(default=100, ge=1)
    window_seconds: float = Field(default=900.0, gt=0)


class AppSettings(BaseModel):
    app_env: str = "development"
    service_name: str = "Stopper Tech API"
    integrations_mode: Optional[str] = None
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5000"])
    pricing_catalog_path: Optional[Path] = None
    pricing_cache_ttl_seconds: int = Field(default=300, ge=0)
    daraja: DarajaConfig = Field(default_factory=DarajaConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    @property
    def use_real_payments(self) -> bool:
        mode = (self.integrations_mode or "").strip().lower()
        if mode in {"real", "live"}:
            return True
        if mode in {"mock", "test"}:
            return False
        return bool(self.daraja.consumer_key)


class PricingCatalog(BaseModel):
    """Seed price table: service type -> sub-service -> price"""

    services: Dict[ServiceType, Dict[str, int]]

    @field_validator("services")
    @classmethod
    def _positive_prices(cls, value: Dict[ServiceType, Dict[str, int]]) -> Dict[ServiceType, Dict[str, int]]:
        for service_type, entries in value.items():
            for sub_service, price in entries.items():
                if price <= 0:
                    raise ValueError(f"Price for {service_type.value}/{sub_service} must be > 0")
        return value

    def price_for(self, service_type: str, sub_service: str) -> Optional[int]:
        try:
            key = ServiceType(service_type)
        except ValueError:
            return None
        return self.services.get(key, {}).get(sub_service)

    def has_entry(self, service_type: str, sub_service: str) -> bool:
        return self.price_for(service_type, sub_service) is not None

    def as_dict(self) -> Dict[str, Dict[str, int]]:
        return {st.value: dict(entries) for st, entries in self.services.items()}


def _split_csv(raw: Optional[str]) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> AppSettings:
    """
    Build AppSettings from environment variables.

    Raises:
        ValueError: If a variable holds a value the settings schema rejects
    """
    daraja_data = {
        "consumer_key": os.getenv("DARAJA_CONSUMER_KEY") or None,
        "consumer_secret": os.getenv("DARAJA_CONSUMER_SECRET") or None,
        "business_shortcode": os.getenv("DARAJA_BUSINESS_SHORTCODE") or SANDBOX_SHORTCODE,
        "passkey": os.getenv("DARAJA_PASSKEY") or None,
        "callback_url": os.getenv("DARAJA_CALLBACK_URL") or None,
        "environment": (os.getenv("DARAJA_ENVIRONMENT") or "sandbox").strip().lower(),
        "timeout_seconds": os.getenv("DARAJA_TIMEOUT_SECONDS") or 30.0,
        "callback_token": os.getenv("DARAJA_CALLBACK_TOKEN") or None,
        "callback_allowed_ips": _split_csv(os.getenv("DARAJA_CALLBACK_ALLOWED_IPS")),
    }
    data = {
        "app_env": os.getenv("APP_ENV", "development"),
        "integrations_mode": os.getenv("INTEGRATIONS_MODE") or None,
        "database_url": os.getenv("DATABASE_URL") or None,
        "redis_url": os.getenv("REDIS_URL") or None,
        "pricing_catalog_path": os.getenv("PRICING_CATALOG_PATH") or None,
        "pricing_cache_ttl_seconds": os.getenv("PRICING_CACHE_TTL_SECONDS") or 300,
        "daraja": daraja_data,
        "rate_limit": {
            "enabled": _env_bool("RATE_LIMIT_ENABLED", True),
            "requests": os.getenv("RATE_LIMIT_REQUESTS") or 100,
            "window_seconds": os.getenv("RATE_LIMIT_WINDOW_SECONDS") or 900,
        },
    }
    cors = _split_csv(os.getenv("CORS_ORIGINS"))
    if cors:
        data["cors_origins"] = cors

    try:
        return AppSettings(**data)
    except ValidationError as e:
        logger.error(f"Settings validation error: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e


def load_pricing_catalog(config_path: Optional[Path] = None) -> PricingCatalog:
    """
    Load and validate the seed pricing catalog from YAML

    Args:
        config_path: Path to catalog file. Defaults to config/pricing_catalog.yml

    Returns:
        Validated PricingCatalog object

    Raises:
        FileNotFoundError: If catalog file doesn't exist
        ValueError: If catalog doesn't match schema
    """
    if config_path is None:
        config_path = Path(__file__).parent.parent.parent / "config" / "pricing_catalog.yml"

    if not config_path.exists():
        raise FileNotFoundError(f"Pricing catalog not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        catalog = PricingCatalog(**data)
    except ValidationError as e:
        logger.error(f"Pricing catalog validation error: {e}")
        raise ValueError(f"Invalid pricing catalog: {e}") from e

    total = sum(len(entries) for entries in catalog.services.values())
    logger.info("Loaded pricing catalog: %d service types, %d entries", len(catalog.services), total)
    return catalog


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "<missing>"
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)
