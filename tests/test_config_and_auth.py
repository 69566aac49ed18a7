"""
Test environment configuration and bearer token resolution.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from billing_sync.application.services.auth_service import AuthService
from billing_sync.core.config import Settings
from fakes import AUTH_SECRET, FRONTEND_URL


def test_settings_from_environment(settings, tmp_path):
    assert settings.stripe_secret_key == "sk_test_fake"
    assert settings.stripe_premium_price_id == "price_premium"
    assert settings.frontend_base_url == FRONTEND_URL
    assert settings.database_path == (tmp_path / "api.db").resolve()
    assert settings.invoice_page_size == 10
    assert settings.webhook_tolerance_seconds == 300
    assert settings.cors_allow_origins == ["*"]


def test_settings_require_stripe_secret(settings, monkeypatch):
    monkeypatch.delenv("STRIPE_SECRET_KEY")

    with pytest.raises(RuntimeError, match="STRIPE_SECRET_KEY"):
        Settings()


def test_settings_optional_values(settings, monkeypatch):
    monkeypatch.delenv("APP_URL")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example.com, https://b.example.com")
    monkeypatch.setenv("INVOICE_PAGE_SIZE", "25")

    configured = Settings()

    assert configured.app_base_url == FRONTEND_URL
    assert configured.cors_allow_origins == ["https://a.example.com", "https://b.example.com"]
    assert configured.invoice_page_size == 25


def test_settings_reject_non_integer(settings, monkeypatch):
    monkeypatch.setenv("INVOICE_PAGE_SIZE", "many")

    with pytest.raises(RuntimeError, match="INVOICE_PAGE_SIZE"):
        Settings()


@pytest.fixture
def auth_service(persistence):
    persistence.create_user("user_alice", "alice@example.com")
    return AuthService(persistence, secret_key=AUTH_SECRET)


def test_valid_token_resolves_user(auth_service):
    token = jwt.encode({"user_id": "user_alice"}, AUTH_SECRET, algorithm="HS256")

    assert auth_service.verify_token(token) == "user_alice"
    assert auth_service.get_current_user(token).email == "alice@example.com"


def test_expired_token_is_rejected(auth_service):
    expired = datetime.now(timezone.utc) - timedelta(minutes=5)
    token = jwt.encode({"user_id": "user_alice", "exp": expired}, AUTH_SECRET, algorithm="HS256")

    assert auth_service.get_current_user(token) is None


def test_token_signed_with_other_secret_is_rejected(auth_service):
    token = jwt.encode({"user_id": "user_alice"}, "another-secret-0123456789abcdef01234", algorithm="HS256")

    assert auth_service.verify_token(token) is None


def test_token_without_user_claim_is_rejected(auth_service):
    token = jwt.encode({"sub": "user_alice"}, AUTH_SECRET, algorithm="HS256")

    assert auth_service.verify_token(token) is None
