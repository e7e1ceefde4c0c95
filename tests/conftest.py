"""Pytest fixtures for the service portal tests."""

import pytest
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.database.postgres import PostgresDB
from src.database.redis import RedisCache
from src.integrations.clients.mocks.daraja import DarajaMockClient
from src.integrations.policy.payment_service import PaymentService
from src.integrations.policy.pricing_service import PricingService
from src.integrations.policy.service_request_service import ServiceRequestService
from src.utils.config_loader import AppSettings, DarajaConfig, RateLimitConfig, load_pricing_catalog

_VALID_SUBMISSION = {
    "serviceType": "KRA",
    "subService": "PIN Registration",
    "fullName": "Jane Wanjiku",
    "email": "jane@example.com",
    "phone": "0712345678",
    "nationalId": "12345678",
    "serviceDetails": {"kraPin": "A123456789B"},
}


@pytest.fixture
def valid_submission():
    return dict(_VALID_SUBMISSION, serviceDetails=dict(_VALID_SUBMISSION["serviceDetails"]))


@pytest.fixture
def db():
    """In-memory PostgresDB stub for tests."""
    return PostgresDB()


@pytest.fixture
def cache():
    return RedisCache(ttl_seconds=300)


@pytest.fixture(scope="session")
def catalog():
    return load_pricing_catalog()


@pytest.fixture
def provider():
    return DarajaMockClient()


@pytest.fixture
def pricing(db, cache, catalog):
    return PricingService(db, cache, catalog)


@pytest.fixture
def service_requests(db, pricing):
    return ServiceRequestService(db, pricing)


@pytest.fixture
def payments(db, provider):
    return PaymentService(db, provider)


@pytest.fixture
def settings():
    return AppSettings(
        app_env="test",
        integrations_mode="mock",
        daraja=DarajaConfig(callback_url="https://portal.example.com/api/payment-callback"),
        rate_limit=RateLimitConfig(enabled=False),
    )


@pytest.fixture
def app(settings, db, cache, provider, catalog):
    return create_app(settings, db=db, cache=cache, provider=provider, catalog=catalog)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("API_KEYS", "test-admin-key,other-key")
    return "test-admin-key"
