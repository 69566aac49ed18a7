"""
Test the HTTP surface: bearer auth, user endpoints and the webhook endpoint.
"""
import json

import pytest

from billing_sync.domain.models import SubscriptionSnapshot
from billing_sync.domain.ports.billing import BillingProviderError
from billing_sync.domain.reconciliation import merge
from fakes import (
    APP_URL,
    FRONTEND_URL,
    NOW,
    PREMIUM_PRICE,
    event_document,
    invoice_document,
    make_subscription,
    sign_payload,
    signed_event,
    subscription_document,
)

STATUS_URL = "/api/v1/user/subscription/status"
CHECKOUT_URL = "/api/v1/user/subscription/checkout"
CANCEL_URL = "/api/v1/user/subscription/cancel"
RESUME_URL = "/api/v1/user/subscription/resume"
INVOICES_URL = "/api/v1/user/subscription/invoices"
WEBHOOK_URL = "/webhook/stripe"


@pytest.fixture
def free_user(app_persistence):
    return app_persistence.create_user("user_alice", "alice@example.com", "Alice", "Smith")


@pytest.fixture
def premium_user(app_persistence, provider):
    provider.add_subscription(make_subscription())
    snapshot = merge(SubscriptionSnapshot.empty("cus_1"), make_subscription(), PREMIUM_PRICE, NOW)
    return app_persistence.create_user("user_alice", "alice@example.com", subscription=snapshot)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_missing_token_is_unauthorized(client):
    assert client.get(STATUS_URL).status_code == 401


def test_invalid_token_is_unauthorized(client):
    response = client.get(STATUS_URL, headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


def test_token_for_unknown_user_is_unauthorized(client, auth_headers):
    assert client.get(STATUS_URL, headers=auth_headers("user_ghost")).status_code == 401


def test_status_for_free_user(client, auth_headers, free_user):
    response = client.get(STATUS_URL, headers=auth_headers("user_alice"))

    assert response.status_code == 200
    subscription = response.json()["subscription"]
    assert subscription["plan"] == "free"
    assert subscription["subscribed"] is False
    assert subscription["status"] == "active"
    assert subscription["subscription_id"] is None
    assert subscription["subscription_ends_at"] is None


def test_status_for_premium_user(client, auth_headers, premium_user):
    subscription = client.get(STATUS_URL, headers=auth_headers("user_alice")).json()["subscription"]

    assert subscription["plan"] == "premium"
    assert subscription["subscription_id"] == "sub_1"
    assert subscription["current_period_end"].startswith("2023-12-14")
    assert subscription["subscription_ends_at"].startswith("2024-01-31")


def test_checkout_without_body(client, auth_headers, provider, free_user):
    response = client.post(CHECKOUT_URL, headers=auth_headers("user_alice"))

    assert response.status_code == 200
    assert response.json()["url"].startswith("https://checkout.stripe.test/")
    assert provider.sessions[0]["cancel_url"] == f"{FRONTEND_URL}/payment?status=cancel"


def test_checkout_for_mobile(client, auth_headers, provider, free_user):
    response = client.post(CHECKOUT_URL, headers=auth_headers("user_alice"), json={"platform": "android"})

    assert response.status_code == 200
    assert provider.sessions[0]["cancel_url"] == f"{APP_URL}/payment?status=cancel"


def test_checkout_rejected_for_subscribed_user(client, auth_headers, premium_user):
    response = client.post(CHECKOUT_URL, headers=auth_headers("user_alice"), json={"platform": "web"})

    assert response.status_code == 400
    assert response.json() == {
        "message": "You already have an existing subscription",
        "subscription_status": "active",
        "manage_url": f"{FRONTEND_URL}/payment?status=manage",
    }


def test_checkout_provider_failure_is_bad_gateway(client, auth_headers, provider, free_user):
    provider.fail_with = BillingProviderError("Failed to create customer")

    response = client.post(CHECKOUT_URL, headers=auth_headers("user_alice"))

    assert response.status_code == 502
    assert "message" in response.json()


def test_cancel_and_resume(client, auth_headers, app_persistence, premium_user):
    headers = auth_headers("user_alice")

    response = client.post(CANCEL_URL, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Subscription will be canceled at the end of the billing period"}
    assert app_persistence.get_user_by_id("user_alice").subscription.cancel_at_period_end is True

    response = client.post(RESUME_URL, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Subscription resumed successfully"}
    assert app_persistence.get_user_by_id("user_alice").subscription.cancel_at_period_end is False


def test_cancel_for_free_user_is_rejected(client, auth_headers, free_user):
    response = client.post(CANCEL_URL, headers=auth_headers("user_alice"))

    assert response.status_code == 400
    assert response.json() == {"message": "No active premium subscription found"}


def test_invoices(client, auth_headers, provider, premium_user):
    provider.add_invoice(invoice_id="in_1", amount_paid=1250)

    response = client.get(INVOICES_URL, headers=auth_headers("user_alice"), params={"limit": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["has_more"] is False
    assert body["invoices"][0]["id"] == "in_1"
    assert body["invoices"][0]["amount_paid"] == 12.5


def test_invoices_without_history(client, auth_headers, free_user):
    response = client.get(INVOICES_URL, headers=auth_headers("user_alice"))

    assert response.status_code == 400
    assert response.json() == {"message": "No subscription history found"}


def test_invoices_limit_is_validated(client, auth_headers, premium_user):
    response = client.get(INVOICES_URL, headers=auth_headers("user_alice"), params={"limit": 0})

    assert response.status_code == 422


# Webhook ----------------------------------------------------------------------


def test_webhook_without_signature(client):
    response = client.post(WEBHOOK_URL, content=b"{}")

    assert response.status_code == 400


def test_webhook_with_bad_signature(client):
    payload = json.dumps(event_document("customer.subscription.updated", subscription_document()))

    response = client.post(
        WEBHOOK_URL,
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, secret="whsec_wrong")},
    )

    assert response.status_code == 400


def test_webhook_applies_subscription_update(client, app_persistence):
    app_persistence.create_user("user_alice", "alice@example.com", subscription=SubscriptionSnapshot.empty("cus_1"))
    payload, header = signed_event("customer.subscription.updated", subscription_document())

    response = client.post(WEBHOOK_URL, content=payload, headers={"Stripe-Signature": header})

    assert response.status_code == 200
    assert response.json() == {"received": True}
    snapshot = app_persistence.get_user_by_id("user_alice").subscription
    assert snapshot.plan == "premium"
    assert snapshot.subscribed is True


def test_webhook_acknowledges_unknown_event(client):
    payload, header = signed_event("customer.created", {"id": "cus_1", "object": "customer"})

    response = client.post(WEBHOOK_URL, content=payload, headers={"Stripe-Signature": header})

    assert response.status_code == 200


def test_webhook_handler_failure_is_server_error(client, provider, premium_user):
    provider.fail_with = BillingProviderError("Failed to retrieve subscription")
    payload, header = signed_event("invoice.payment_succeeded", invoice_document())

    response = client.post(WEBHOOK_URL, content=payload, headers={"Stripe-Signature": header})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process webhook"}
