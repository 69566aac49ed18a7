"""
Billing provider port.

Every provider interaction used by the service goes through this interface so that the
Stripe client can be swapped for a test double.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from ..models import CheckoutSession, InvoicePage, ProviderCustomer, ProviderSubscription


class BillingProviderError(Exception):
    """Provider call failed; nothing was changed locally and the caller may retry."""


class ResourceMissingError(BillingProviderError):
    """The provider does not know the referenced object."""


class InvalidSignatureError(Exception):
    """Webhook payload could not be authenticated or decoded."""


class BillingProvider(Protocol):
    def create_customer(
        self,
        email: str,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderCustomer:
        ...

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSession:
        ...

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        """
        Raises:
            ResourceMissingError: If the subscription does not exist
            BillingProviderError: On any other provider failure
        """
        ...

    def update_subscription(self, subscription_id: str, *, cancel_at_period_end: bool) -> ProviderSubscription:
        ...

    def list_subscriptions(self, customer_id: str) -> List[ProviderSubscription]:
        """All of the customer's subscriptions regardless of status."""
        ...

    def list_invoices(
        self,
        customer_id: str,
        limit: int = 10,
        starting_after: Optional[str] = None,
    ) -> InvoicePage:
        ...

    def verify_webhook(self, payload: bytes, signature_header: str, secret: str) -> Dict[str, Any]:
        """
        Authenticate a raw webhook body and return its decoded JSON document.

        Raises:
            InvalidSignatureError: If the signature or body is invalid
        """
        ...
