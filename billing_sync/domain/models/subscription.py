"""Subscription snapshot embedded in a user record."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

PLAN_FREE = "free"
PLAN_PREMIUM = "premium"

STATUS_ACTIVE = "active"
STATUS_TRIALING = "trialing"
STATUS_PAST_DUE = "past_due"
STATUS_UNPAID = "unpaid"
STATUS_CANCELED = "canceled"

# Statuses that entitle the user to the premium plan.
ENTITLED_STATUSES = frozenset({STATUS_ACTIVE, STATUS_TRIALING})
# Statuses under which the provider still considers the subscription alive.
LIVE_STATUSES = frozenset({STATUS_ACTIVE, STATUS_TRIALING, STATUS_PAST_DUE, STATUS_UNPAID})

_DATE_FIELDS = (
    "current_period_start",
    "current_period_end",
    "canceled_at",
    "subscription_started_at",
)


@dataclass(slots=True)
class SubscriptionSnapshot:
    """
    Locally persisted billing state for a single user.

    Attributes:
        status: Provider-reported subscription status, copied verbatim
        plan: Derived plan, either ``free`` or ``premium``
        subscription_id: Provider subscription ID, empty when none exists
        customer_id: Provider customer ID, assigned on first checkout
        current_period_start: Start of the current billing window
        current_period_end: End of the current billing window
        cancel_at_period_end: Whether the subscription lapses at period end
        canceled_at: When the subscription was canceled
        subscription_started_at: First time the subscription was reconciled
        subscribed: Mirrors ``plan == premium``
    """

    status: str = STATUS_ACTIVE
    plan: str = PLAN_FREE
    subscription_id: str = ""
    customer_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    subscription_started_at: Optional[datetime] = None
    subscribed: bool = False

    @classmethod
    def empty(cls, customer_id: Optional[str] = None) -> "SubscriptionSnapshot":
        """Default "no subscription" state."""
        return cls(customer_id=customer_id)

    def is_premium(self) -> bool:
        return self.plan == PLAN_PREMIUM

    def has_subscription(self) -> bool:
        return bool(self.subscription_id)

    def copy(self, **changes: Any) -> "SubscriptionSnapshot":
        return replace(self, **changes)

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "status": self.status,
            "plan": self.plan,
            "subscription_id": self.subscription_id,
            "customer_id": self.customer_id,
            "cancel_at_period_end": self.cancel_at_period_end,
            "subscribed": self.subscribed,
        }
        for name in _DATE_FIELDS:
            value = getattr(self, name)
            document[name] = value.isoformat() if value else None
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "SubscriptionSnapshot":
        dates = {
            name: datetime.fromisoformat(document[name]) if document.get(name) else None
            for name in _DATE_FIELDS
        }
        return cls(
            status=document.get("status") or STATUS_ACTIVE,
            plan=document.get("plan") or PLAN_FREE,
            subscription_id=document.get("subscription_id") or "",
            customer_id=document.get("customer_id"),
            cancel_at_period_end=bool(document.get("cancel_at_period_end", False)),
            subscribed=bool(document.get("subscribed", False)),
            **dates,
        )

    def __repr__(self) -> str:
        return (
            f"<SubscriptionSnapshot subscription_id={self.subscription_id!r} "
            f"status={self.status} plan={self.plan}>"
        )
