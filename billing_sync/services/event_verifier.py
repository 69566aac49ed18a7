"""Webhook authentication and decoding into typed events."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type

from pydantic import ValidationError

from ..domain.models import (
    CheckoutSession,
    ProviderEvent,
    ProviderInvoice,
    ProviderSubscription,
)
from ..domain.models.provider import ProviderModel
from ..domain.ports.billing import BillingProvider, InvalidSignatureError

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"

PAYLOAD_MODELS: Dict[str, Type[ProviderModel]] = {
    CHECKOUT_SESSION_COMPLETED: CheckoutSession,
    SUBSCRIPTION_CREATED: ProviderSubscription,
    SUBSCRIPTION_UPDATED: ProviderSubscription,
    SUBSCRIPTION_DELETED: ProviderSubscription,
    INVOICE_PAYMENT_SUCCEEDED: ProviderInvoice,
    INVOICE_PAYMENT_FAILED: ProviderInvoice,
}


def decode_event(document: Dict[str, Any]) -> ProviderEvent:
    """Decode an authenticated event document; types without a handler keep no payload."""
    try:
        event_id = document["id"]
        event_type = document["type"]
        data_object = document["data"]["object"]
    except (KeyError, TypeError) as exc:
        raise InvalidSignatureError("Malformed event: missing id, type or data.object") from exc

    model = PAYLOAD_MODELS.get(event_type)
    try:
        payload = model.model_validate(data_object) if model else None
        return ProviderEvent(
            id=event_id,
            type=event_type,
            created=document.get("created"),
            payload=payload,
        )
    except ValidationError as exc:
        raise InvalidSignatureError(f"Malformed {event_type} event: {exc.error_count()} invalid field(s)") from exc


class EventVerifier:
    """Authenticates raw webhook bodies against the signing secret."""

    def __init__(self, provider: BillingProvider, signing_secret: str) -> None:
        self._provider = provider
        self._signing_secret = signing_secret

    def verify(self, payload: bytes, signature_header: Optional[str]) -> ProviderEvent:
        if not signature_header:
            raise InvalidSignatureError("Stripe signature missing")
        document = self._provider.verify_webhook(payload, signature_header, self._signing_secret)
        event = decode_event(document)
        logger.debug("Verified event %s (%s)", event.id, event.type)
        return event
