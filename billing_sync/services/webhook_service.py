"""Routing of verified provider events onto the subscription snapshot."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from ..domain.models import (
    CheckoutSession,
    ProviderEvent,
    ProviderInvoice,
    ProviderSubscription,
    SubscriptionSnapshot,
    User,
)
from ..domain.ports.billing import BillingProvider, ResourceMissingError
from ..domain.ports.persistence import PersistenceGateway
from ..domain.reconciliation import attach_customer, mark_deleted, mark_past_due, merge, utcnow
from .event_verifier import (
    CHECKOUT_SESSION_COMPLETED,
    INVOICE_PAYMENT_FAILED,
    INVOICE_PAYMENT_SUCCEEDED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
)

logger = logging.getLogger(__name__)

# Delivered to the endpoint but carry nothing the snapshot depends on.
INERT_EVENT_TYPES = frozenset(
    {
        "charge.succeeded",
        "payment_method.attached",
        "payment_intent.succeeded",
        "payment_intent.created",
        "invoice.created",
        "invoice.finalized",
        "invoice.paid",
    }
)


class WebhookService:
    """Dispatches verified events to the handler for their type.

    Handlers never assume delivery order: each one derives the new snapshot from the provider
    object it was given (or a fresh provider read) and replaces the stored snapshot atomically,
    so redelivered and reordered events converge on the same state.
    """

    def __init__(
        self,
        persistence: PersistenceGateway,
        provider: BillingProvider,
        premium_price_id: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._persistence = persistence
        self._provider = provider
        self._premium_price_id = premium_price_id
        self._clock = clock
        self._handlers: Dict[str, Callable[[ProviderEvent], None]] = {
            CHECKOUT_SESSION_COMPLETED: self._handle_checkout_completed,
            SUBSCRIPTION_CREATED: self._handle_subscription_changed,
            SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            INVOICE_PAYMENT_SUCCEEDED: self._handle_invoice_payment_succeeded,
            INVOICE_PAYMENT_FAILED: self._handle_invoice_payment_failed,
        }

    def dispatch(self, event: ProviderEvent) -> None:
        handler = self._handlers.get(event.type)
        if handler is None:
            if event.type in INERT_EVENT_TYPES:
                logger.info("Acknowledged event %s", event.type)
            else:
                logger.info("Unhandled event type: %s", event.type)
            return

        logger.info("Processing event %s (%s)", event.type, event.id)
        handler(event)

    # Handlers ---------------------------------------------------------------
    def _handle_checkout_completed(self, event: ProviderEvent) -> None:
        session: CheckoutSession = event.payload
        if not session.customer:
            logger.info("Checkout session %s has no customer; ignoring", session.id)
            return

        user: Optional[User] = None
        user_id = session.metadata.get("user_id")
        if user_id:
            user = self._persistence.get_user_by_id(user_id)
        if user is None:
            user = self._persistence.get_user_by_customer_id(session.customer)
        if user is None:
            logger.info("No user for checkout session %s; dropping event", session.id)
            return

        customer_id = session.customer
        self._persistence.update_subscription(user.user_id, lambda current: attach_customer(current, customer_id))

    def _handle_subscription_changed(self, event: ProviderEvent) -> None:
        subscription: ProviderSubscription = event.payload
        user = self._user_for_customer(subscription.customer, event)
        if user is None:
            return
        self._apply_merge(user, subscription)

    def _handle_subscription_deleted(self, event: ProviderEvent) -> None:
        subscription: ProviderSubscription = event.payload
        user = self._user_for_customer(subscription.customer, event)
        if user is None:
            return
        now = self._clock()

        def _delete(current: Optional[SubscriptionSnapshot]) -> Optional[SubscriptionSnapshot]:
            if current is None or not self._tracks(current, subscription.id):
                return None
            return mark_deleted(current, now)

        self._persistence.update_subscription(user.user_id, _delete)

    def _handle_invoice_payment_succeeded(self, event: ProviderEvent) -> None:
        invoice: ProviderInvoice = event.payload
        if not invoice.subscription:
            return
        user = self._user_for_customer(invoice.customer, event)
        if user is None:
            return
        try:
            subscription = self._provider.retrieve_subscription(invoice.subscription)
        except ResourceMissingError:
            logger.info(
                "Subscription %s from invoice %s no longer exists; dropping event",
                invoice.subscription,
                invoice.id,
            )
            return
        self._apply_merge(user, subscription)

    def _handle_invoice_payment_failed(self, event: ProviderEvent) -> None:
        invoice: ProviderInvoice = event.payload
        user = self._user_for_customer(invoice.customer, event)
        if user is None:
            return

        def _past_due(current: Optional[SubscriptionSnapshot]) -> Optional[SubscriptionSnapshot]:
            if current is None or not self._tracks(current, invoice.subscription):
                return None
            return mark_past_due(current)

        self._persistence.update_subscription(user.user_id, _past_due)

    # Helpers ----------------------------------------------------------------
    def _user_for_customer(self, customer_id: Optional[str], event: ProviderEvent) -> Optional[User]:
        user = self._persistence.get_user_by_customer_id(customer_id) if customer_id else None
        if user is None:
            logger.info("No user linked to customer %s; dropping %s", customer_id, event.type)
        return user

    def _apply_merge(self, user: User, subscription: ProviderSubscription) -> None:
        now = self._clock()
        self._persistence.update_subscription(
            user.user_id,
            lambda current: merge(current, subscription, self._premium_price_id, now),
        )

    @staticmethod
    def _tracks(current: SubscriptionSnapshot, subscription_id: Optional[str]) -> bool:
        """Whether an event about ``subscription_id`` may change ``current``.

        A snapshot without a subscription only changes through a merge. A missing event id
        matches whatever subscription the snapshot holds.
        """
        if not current.subscription_id:
            logger.info(
                "Event for subscription %s arrived before any subscription was stored; ignoring",
                subscription_id,
            )
            return False
        if subscription_id and current.subscription_id != subscription_id:
            logger.info(
                "Event for subscription %s does not match current subscription %s; ignoring",
                subscription_id,
                current.subscription_id,
            )
            return False
        return True
