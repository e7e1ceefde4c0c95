"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.endpoints.payments import payments_api
from src.api.pricing_router import api as pricing_api
from src.api.registrations_router import api as registrations_api
from src.api.service_requests_router import api as service_requests_api
from src.error_handler import ConfigurationError, ErrorHandler
from src.integrations.clients.mocks.daraja import DarajaMockClient
from src.integrations.clients.real_http.daraja import DarajaClient
from src.integrations.policy.payment_service import PaymentService
from src.integrations.policy.pricing_service import PricingService
from src.integrations.policy.registration_service import RegistrationService
from src.integrations.policy.service_request_service import ServiceRequestService
from src.utils.config_loader import AppSettings, PricingCatalog, load_pricing_catalog, load_settings, mask_secret
from src.utils.rate_limiter import RateLimiter, RateLimitMiddleware
from src.utils.validators import callback_url_problem

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Provider callbacks are never rate limited.
CALLBACK_PATHS = ("/api/payment-callback", "/api/mpesa/callback")


# ============================================================================
# COMPONENT SELECTION (mock vs real happens here only)
# ============================================================================
def _build_db(settings: AppSettings):
    if settings.database_url:
        from src.database.postgres_real import PostgresDB as RealPostgresDB

        logger.info("Using Postgres store")
        return RealPostgresDB(settings.database_url)

    from src.database.postgres import PostgresDB

    logger.info("DATABASE_URL not set; using in-memory PostgresDB stub")
    return PostgresDB()


def _build_cache(settings: AppSettings):
    if settings.redis_url:
        from src.database.redis_real import RedisCache as RealRedisCache

        logger.info("Using Redis price cache (ttl=%ss)", settings.pricing_cache_ttl_seconds)
        return RealRedisCache(settings.redis_url, ttl_seconds=settings.pricing_cache_ttl_seconds)

    from src.database.redis import RedisCache

    logger.info("REDIS_URL not set; using in-memory price cache (ttl=%ss)", settings.pricing_cache_ttl_seconds)
    return RedisCache(ttl_seconds=settings.pricing_cache_ttl_seconds)


def _build_provider(settings: AppSettings):
    if settings.use_real_payments:
        logger.info("Using Daraja HTTP client (%s)", settings.daraja.environment.value)
        return DarajaClient(settings.daraja)
    logger.info("Using Daraja mock client")
    return DarajaMockClient()


def _log_payment_config(settings: AppSettings) -> None:
    daraja = settings.daraja
    logger.info(
        "M-Pesa config: environment=%s shortcode=%s consumer_key=%s passkey=%s callback_url=%s",
        daraja.environment.value,
        daraja.business_shortcode,
        mask_secret(daraja.consumer_key),
        mask_secret(daraja.passkey),
        daraja.callback_url or "<missing>",
    )
    if daraja.uses_sandbox_shortcode:
        logger.warning("Using the Daraja sandbox short code %s", daraja.business_shortcode)
    if daraja.callback_token or daraja.callback_allowed_ips:
        logger.info(
            "Callback verification: token=%s allowed_ips=%d",
            "on" if daraja.callback_token else "off",
            len(daraja.callback_allowed_ips),
        )
    else:
        logger.warning("Payment callbacks are not verified; set DARAJA_CALLBACK_TOKEN for production")


def _log_database_target(database_url: Optional[str]) -> None:
    if not database_url:
        return
    try:
        parsed = urlparse(database_url)
        logger.info(
            "DATABASE_URL target: scheme=%s host=%s port=%s db=%s",
            parsed.scheme,
            parsed.hostname,
            parsed.port or 5432,
            (parsed.path or "").lstrip("/"),
        )
    except ValueError as e:
        logger.warning("Could not parse DATABASE_URL for startup logging: %s", e)


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    db: Any = None,
    cache: Any = None,
    provider: Any = None,
    catalog: Optional[PricingCatalog] = None,
) -> FastAPI:
    settings = settings or load_settings()
    catalog = catalog or load_pricing_catalog(settings.pricing_catalog_path)
    db = db if db is not None else _build_db(settings)
    cache = cache if cache is not None else _build_cache(settings)
    provider = provider if provider is not None else _build_provider(settings)

    app = FastAPI(
        title=settings.service_name,
        description="Government and IT service requests with M-Pesa STK push payments",
        version="1.0.0",
    )

    app.state.settings = settings
    app.state.db = db
    app.state.cache = cache
    app.state.provider = provider
    app.state.pricing_service = PricingService(db, cache, catalog)
    app.state.service_request_service = ServiceRequestService(db, app.state.pricing_service)
    app.state.payment_service = PaymentService(db, provider)
    app.state.registration_service = RegistrationService(db)

    if settings.rate_limit.enabled:
        app.state.rate_limiter = RateLimiter(settings.rate_limit.requests, settings.rate_limit.window_seconds)
        app.add_middleware(
            RateLimitMiddleware,
            limiter=app.state.rate_limiter,
            exempt_paths=CALLBACK_PATHS,
        )

    # CORS middleware (outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    ErrorHandler().register(app)

    app.include_router(service_requests_api, prefix="/api")
    app.include_router(payments_api, prefix="/api")
    app.include_router(pricing_api, prefix="/api")
    app.include_router(registrations_api, prefix="/api")

    # ========================================================================
    # HEALTH
    # ========================================================================
    def _health():
        return {
            "status": "OK",
            "service": settings.service_name,
            "timestamp": datetime.now().isoformat(),
            "environment": settings.app_env,
        }

    @app.get("/health", tags=["Health"])
    async def health_check():
        return _health()

    @app.get("/api/health", tags=["Health"])
    async def api_health_check():
        return _health()

    # ========================================================================
    # STARTUP/SHUTDOWN EVENTS
    # ========================================================================
    @app.on_event("startup")
    async def startup_event():
        """Initialize on startup"""
        logger.info("Starting %s (%s)...", settings.service_name, settings.app_env)
        _log_database_target(settings.database_url)
        _log_payment_config(settings)

        problem = callback_url_problem(settings.daraja.callback_url)
        if problem:
            if settings.use_real_payments:
                raise ConfigurationError(f"Invalid DARAJA_CALLBACK_URL: {problem}")
            logger.warning("DARAJA_CALLBACK_URL unusable (%s); fine for mock payments only", problem)

        await db.create_tables()
        logger.info("Database tables initialized")
        await app.state.pricing_service.seed_if_empty()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        logger.info("Shutting down %s...", settings.service_name)
        await cache.close()
        await db.close()

    return app


app = create_app()
