import jwt
import pytest
from fastapi.testclient import TestClient

from billing_sync.core.app_factory import create_application
from billing_sync.core.config import Settings
from billing_sync.infrastructure.persistence.sqlite import SQLitePersistence
from billing_sync.services.event_verifier import EventVerifier
from billing_sync.services.subscription_service import SubscriptionService
from billing_sync.services.webhook_service import WebhookService
from fakes import (
    APP_URL,
    AUTH_SECRET,
    FRONTEND_URL,
    NOW,
    PREMIUM_PRICE,
    WEBHOOK_SECRET,
    FakeBillingProvider,
)


@pytest.fixture
def persistence(tmp_path):
    store = SQLitePersistence(tmp_path / "billing.db")
    yield store
    store.close()


@pytest.fixture
def provider():
    return FakeBillingProvider()


@pytest.fixture
def webhook_service(persistence, provider):
    return WebhookService(persistence, provider, premium_price_id=PREMIUM_PRICE, clock=lambda: NOW)


@pytest.fixture
def subscription_service(persistence, provider):
    return SubscriptionService(
        persistence,
        provider,
        premium_price_id=PREMIUM_PRICE,
        frontend_url=FRONTEND_URL,
        app_url=APP_URL,
        clock=lambda: NOW,
    )


@pytest.fixture
def event_verifier(provider):
    return EventVerifier(provider, WEBHOOK_SECRET)


@pytest.fixture
def settings(monkeypatch, tmp_path):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_fake")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("STRIPE_PREMIUM_PRICE_ID", PREMIUM_PRICE)
    monkeypatch.setenv("AUTH_TOKEN_SECRET", AUTH_SECRET)
    monkeypatch.setenv("FRONTEND_URL", FRONTEND_URL)
    monkeypatch.setenv("APP_URL", APP_URL)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "api.db"))
    return Settings()


@pytest.fixture
def client(settings, provider):
    app = create_application(settings=settings, billing_provider=provider)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def app_persistence(client):
    """Persistence owned by the running application."""
    return client.app.state.container.persistence


@pytest.fixture
def auth_headers():
    def _headers(user_id: str):
        token = jwt.encode({"user_id": user_id}, AUTH_SECRET, algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _headers
