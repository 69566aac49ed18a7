"""User-initiated subscription actions reconciled against the billing provider."""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ..domain.models import SubscriptionSnapshot, User
from ..domain.models.subscription import LIVE_STATUSES, PLAN_FREE, STATUS_ACTIVE
from ..domain.ports.billing import BillingProvider, BillingProviderError, ResourceMissingError
from ..domain.ports.persistence import PersistenceGateway
from ..domain.reconciliation import attach_customer, clear_subscription, merge, safe_date, utcnow

logger = logging.getLogger(__name__)

ALREADY_SUBSCRIBED = "You already have an existing subscription"
ENDING_SOON = "You have a subscription that will end soon. You can resume it instead."
NO_ACTIVE_SUBSCRIPTION = "No active premium subscription found"
NO_CANCELED_SUBSCRIPTION = "No canceled subscription found"
NO_SUBSCRIPTION_HISTORY = "No subscription history found"
CANCEL_SCHEDULED = "Subscription will be canceled at the end of the billing period"
RESUMED = "Subscription resumed successfully"

STATUS_ENDING_SOON = "ending_soon"
# Nominal length of a subscription term, reported as ``subscription_ends_at``.
SUBSCRIPTION_TERM = timedelta(days=30)
MOBILE_PLATFORMS = frozenset({"ios", "android"})

DEFAULT_STATUS: Dict[str, Any] = {
    "status": STATUS_ACTIVE,
    "plan": PLAN_FREE,
    "subscription_id": None,
    "customer_id": None,
    "cancel_at_period_end": False,
    "subscribed": False,
    "canceled_at": None,
    "subscription_started_at": None,
    "subscription_ends_at": None,
}


class SubscriptionRejected(ValueError):
    """Expected refusal of a subscription action."""

    def __init__(
        self,
        message: str,
        subscription_status: Optional[str] = None,
        manage_url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.subscription_status = subscription_status
        self.manage_url = manage_url

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.subscription_status:
            body["subscription_status"] = self.subscription_status
        if self.manage_url:
            body["manage_url"] = self.manage_url
        return body


class SubscriptionService:
    """Service for managing user subscriptions."""

    def __init__(
        self,
        persistence: PersistenceGateway,
        provider: BillingProvider,
        premium_price_id: str,
        frontend_url: str,
        app_url: Optional[str] = None,
        invoice_page_size: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.persistence = persistence
        self.provider = provider
        self.premium_price_id = premium_price_id
        self.frontend_url = frontend_url.rstrip("/")
        self.app_url = (app_url or frontend_url).rstrip("/")
        self.invoice_page_size = invoice_page_size
        self.clock = clock

    # Checkout ---------------------------------------------------------------
    def create_checkout_session(self, user: User, platform: str = "web") -> str:
        """
        Create a provider checkout session for the premium plan.

        The decision is taken against the provider's view of the user's subscriptions, not the
        local snapshot, so a stale snapshot can neither hide a live subscription nor block a
        legitimate new one.

        Args:
            user: The user starting checkout
            platform: ``web``, ``ios`` or ``android``; selects the redirect base URL

        Returns:
            Checkout session URL

        Raises:
            SubscriptionRejected: If the user already holds a live subscription
            BillingProviderError: If a provider call fails
        """
        base_url = self._base_url(platform)
        manage_url = f"{base_url}/payment?status=manage"
        snapshot = user.subscription

        if snapshot and snapshot.subscription_id:
            snapshot = self._check_stored_subscription(user, snapshot.subscription_id, manage_url)

        customer_id = snapshot.customer_id if snapshot else None
        if customer_id:
            self._check_customer_subscriptions(user, customer_id, manage_url)
        else:
            customer_id = self._create_customer(user)

        session = self.provider.create_checkout_session(
            customer_id=customer_id,
            price_id=self.premium_price_id,
            success_url=f"{base_url}/payment?status=success&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/payment?status=cancel",
            metadata={"user_id": user.user_id},
        )
        if not session.url:
            raise BillingProviderError(f"Checkout session {session.id} has no URL")

        logger.info("Created checkout session %s for user %s", session.id, user.user_id)
        return session.url

    def _check_stored_subscription(
        self, user: User, subscription_id: str, manage_url: str
    ) -> Optional[SubscriptionSnapshot]:
        try:
            remote = self.provider.retrieve_subscription(subscription_id)
        except ResourceMissingError:
            logger.info(
                "Subscription %s of user %s is unknown to the provider; clearing it",
                subscription_id,
                user.user_id,
            )
            return self.persistence.update_subscription(
                user.user_id,
                lambda current: clear_subscription(current)
                if current and current.subscription_id == subscription_id
                else None,
            )

        if remote.cancel_at_period_end:
            raise SubscriptionRejected(ENDING_SOON, STATUS_ENDING_SOON, manage_url)
        if remote.status in LIVE_STATUSES:
            raise SubscriptionRejected(ALREADY_SUBSCRIBED, remote.status, manage_url)
        return user.subscription

    def _check_customer_subscriptions(self, user: User, customer_id: str, manage_url: str) -> None:
        for remote in self.provider.list_subscriptions(customer_id):
            if remote.status not in LIVE_STATUSES:
                continue
            logger.info(
                "Customer %s already has live subscription %s; refreshing local snapshot",
                customer_id,
                remote.id,
            )
            now = self.clock()
            self.persistence.update_subscription(
                user.user_id,
                lambda current: merge(current, remote, self.premium_price_id, now),
            )
            raise SubscriptionRejected(ALREADY_SUBSCRIBED, remote.status, manage_url)

    def _create_customer(self, user: User) -> str:
        customer = self.provider.create_customer(
            email=user.email,
            name=user.full_name or None,
            metadata={"user_id": user.user_id},
        )
        # A concurrent checkout may have linked a customer first; keep that one.
        stored = self.persistence.update_subscription(
            user.user_id,
            lambda current: None
            if current and current.customer_id
            else attach_customer(current, customer.id),
        )
        if stored and stored.customer_id:
            return stored.customer_id
        return customer.id

    def _base_url(self, platform: str) -> str:
        return self.app_url if platform in MOBILE_PLATFORMS else self.frontend_url

    # Cancel / resume ----------------------------------------------------------
    def cancel_subscription(self, user: User) -> str:
        """Schedule the premium subscription to lapse at the end of the billing period."""
        snapshot = user.subscription
        if not snapshot or not snapshot.subscription_id or not snapshot.is_premium():
            raise SubscriptionRejected(NO_ACTIVE_SUBSCRIPTION)

        remote = self.provider.update_subscription(snapshot.subscription_id, cancel_at_period_end=True)
        self._store_cancel_flag(user, snapshot.subscription_id, remote.cancel_at_period_end)
        logger.info("Subscription %s of user %s set to cancel at period end", remote.id, user.user_id)
        return CANCEL_SCHEDULED

    def resume_subscription(self, user: User) -> str:
        """Undo a scheduled cancellation."""
        snapshot = user.subscription
        if not snapshot or not snapshot.subscription_id or not snapshot.cancel_at_period_end:
            raise SubscriptionRejected(NO_CANCELED_SUBSCRIPTION)

        remote = self.provider.update_subscription(snapshot.subscription_id, cancel_at_period_end=False)
        self._store_cancel_flag(user, snapshot.subscription_id, remote.cancel_at_period_end)
        logger.info("Subscription %s of user %s resumed", remote.id, user.user_id)
        return RESUMED

    def _store_cancel_flag(self, user: User, subscription_id: str, flag: bool) -> None:
        self.persistence.update_subscription(
            user.user_id,
            lambda current: current.copy(cancel_at_period_end=flag)
            if current and current.subscription_id == subscription_id
            else None,
        )

    # Projections --------------------------------------------------------------
    def get_status(self, user: User) -> Dict[str, Any]:
        subscription = dict(DEFAULT_STATUS)
        if user.subscription:
            snapshot = user.subscription
            subscription.update(snapshot.to_document())
            subscription["subscription_id"] = snapshot.subscription_id or None
            if snapshot.subscription_started_at:
                ends_at = snapshot.subscription_started_at + SUBSCRIPTION_TERM
                subscription["subscription_ends_at"] = ends_at.isoformat()
            for key in ("current_period_start", "current_period_end"):
                if subscription.get(key) is None:
                    subscription.pop(key, None)
        return subscription

    def list_invoices(
        self,
        user: User,
        limit: Optional[int] = None,
        starting_after: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not user.customer_id:
            raise SubscriptionRejected(NO_SUBSCRIPTION_HISTORY)

        page = self.provider.list_invoices(
            user.customer_id,
            limit=limit or self.invoice_page_size,
            starting_after=starting_after,
        )
        return {
            "invoices": [
                {
                    "id": invoice.id,
                    "amount_paid": (invoice.amount_paid or 0) / 100,
                    "currency": invoice.currency,
                    "status": invoice.status,
                    "created": safe_date(invoice.created),
                    "invoice_pdf": invoice.invoice_pdf,
                }
                for invoice in page.data
            ],
            "has_more": page.has_more,
        }
