"""Stripe implementation of the billing provider port."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import stripe

from ..domain.models import (
    CheckoutSession,
    InvoicePage,
    ProviderCustomer,
    ProviderSubscription,
)
from ..domain.ports.billing import (
    BillingProviderError,
    InvalidSignatureError,
    ResourceMissingError,
)

logger = logging.getLogger(__name__)

RESOURCE_MISSING = "resource_missing"


def _plain(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    return to_dict() if callable(to_dict) else obj


@contextmanager
def _provider_errors(action: str) -> Iterator[None]:
    try:
        yield
    except stripe.InvalidRequestError as exc:
        if exc.code == RESOURCE_MISSING:
            raise ResourceMissingError(f"{action}: {exc.user_message or exc}") from exc
        logger.error("Stripe rejected %s: %s", action, exc)
        raise BillingProviderError(f"Failed to {action}") from exc
    except stripe.StripeError as exc:
        logger.error("Stripe call failed during %s: %s", action, exc)
        raise BillingProviderError(f"Failed to {action}") from exc


class StripeBillingClient:
    """Stripe API access with credentials bound at construction.

    The instance is created once at startup and shared for the process lifetime; every call
    passes its own API key so no SDK-global state is touched.
    """

    def __init__(self, secret_key: str, webhook_tolerance: int = 300) -> None:
        if not secret_key:
            raise ValueError("Stripe secret key is required")
        self._api_key = secret_key
        self._webhook_tolerance = webhook_tolerance

    def create_customer(
        self,
        email: str,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderCustomer:
        params: Dict[str, Any] = {"email": email, "metadata": metadata or {}}
        if name:
            params["name"] = name
        with _provider_errors("create customer"):
            customer = stripe.Customer.create(api_key=self._api_key, **params)
        logger.info("Created Stripe customer %s", customer.id)
        return ProviderCustomer.model_validate(_plain(customer))

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSession:
        with _provider_errors("create checkout session"):
            session = stripe.checkout.Session.create(
                api_key=self._api_key,
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
            )
        return CheckoutSession.model_validate(_plain(session))

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        with _provider_errors("retrieve subscription"):
            subscription = stripe.Subscription.retrieve(subscription_id, api_key=self._api_key)
        return ProviderSubscription.model_validate(_plain(subscription))

    def update_subscription(self, subscription_id: str, *, cancel_at_period_end: bool) -> ProviderSubscription:
        with _provider_errors("update subscription"):
            subscription = stripe.Subscription.modify(
                subscription_id,
                api_key=self._api_key,
                cancel_at_period_end=cancel_at_period_end,
            )
        return ProviderSubscription.model_validate(_plain(subscription))

    def list_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        with _provider_errors("list subscriptions"):
            page = stripe.Subscription.list(
                api_key=self._api_key,
                customer=customer_id,
                status="all",
                limit=100,
            )
            subscriptions = [
                ProviderSubscription.model_validate(_plain(item)) for item in page.auto_paging_iter()
            ]
        return subscriptions

    def list_invoices(
        self,
        customer_id: str,
        limit: int = 10,
        starting_after: Optional[str] = None,
    ) -> InvoicePage:
        params: Dict[str, Any] = {"customer": customer_id, "limit": limit}
        if starting_after:
            params["starting_after"] = starting_after
        with _provider_errors("list invoices"):
            page = stripe.Invoice.list(api_key=self._api_key, **params)
        return InvoicePage(
            data=[_plain(invoice) for invoice in page.data],
            has_more=bool(page.has_more),
        )

    def verify_webhook(self, payload: bytes, signature_header: str, secret: str) -> Dict[str, Any]:
        # The signature covers the exact bytes; decode only after it checks out.
        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text, signature_header, secret, tolerance=self._webhook_tolerance
            )
            document = json.loads(text)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignatureError(f"Invalid signature: {exc}") from exc
        except ValueError as exc:
            raise InvalidSignatureError(f"Invalid payload: {exc}") from exc
        if not isinstance(document, dict):
            raise InvalidSignatureError("Invalid payload: expected a JSON object")
        return document
