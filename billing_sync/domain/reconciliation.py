"""Projection of provider subscription state onto the local snapshot.

Everything here is pure: callers pass the current snapshot and receive a new one, which the
store then persists as a single replacement.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional

from .models import ProviderSubscription, SubscriptionSnapshot
from .models.subscription import (
    ENTITLED_STATUSES,
    PLAN_FREE,
    PLAN_PREMIUM,
    STATUS_ACTIVE,
    STATUS_CANCELED,
    STATUS_PAST_DUE,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def safe_date(timestamp: Any) -> Optional[datetime]:
    """Convert provider epoch seconds to an aware datetime.

    Missing, zero, negative, non-numeric and out-of-range values yield ``None``.
    """
    if timestamp is None or isinstance(timestamp, bool):
        return None
    try:
        seconds = float(timestamp)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def resolve_plan(subscription: ProviderSubscription, premium_price_id: str) -> str:
    if subscription.status not in ENTITLED_STATUSES:
        return PLAN_FREE
    if premium_price_id and subscription.first_price_id == premium_price_id:
        return PLAN_PREMIUM
    return PLAN_FREE


def _advance(current: Optional[datetime], incoming: Optional[datetime], monotonic: bool) -> Optional[datetime]:
    if incoming is None:
        return current
    if monotonic and current is not None and incoming < current:
        return current
    return incoming


def merge(
    existing: Optional[SubscriptionSnapshot],
    subscription: ProviderSubscription,
    premium_price_id: str,
    now: Optional[datetime] = None,
) -> SubscriptionSnapshot:
    """Return the snapshot that reflects ``subscription``.

    The result depends only on the provider object, except for the preserved dates: period
    bounds and ``canceled_at`` keep their previous value when the provider omits them, and the
    billing window of an unchanged subscription never moves backwards.
    """
    base = existing or SubscriptionSnapshot.empty()
    plan = resolve_plan(subscription, premium_price_id)
    same_subscription = bool(base.subscription_id) and base.subscription_id == subscription.id

    canceled_at = base.canceled_at
    if subscription.status == STATUS_CANCELED:
        canceled_at = safe_date(subscription.canceled_at) or canceled_at

    return SubscriptionSnapshot(
        status=subscription.status,
        plan=plan,
        subscription_id=subscription.id,
        customer_id=base.customer_id or subscription.customer,
        current_period_start=_advance(
            base.current_period_start, safe_date(subscription.period_start), same_subscription
        ),
        current_period_end=_advance(
            base.current_period_end, safe_date(subscription.period_end), same_subscription
        ),
        cancel_at_period_end=subscription.cancel_at_period_end,
        canceled_at=canceled_at,
        subscription_started_at=base.subscription_started_at or now or utcnow(),
        subscribed=plan == PLAN_PREMIUM,
    )


def mark_deleted(existing: SubscriptionSnapshot, now: Optional[datetime] = None) -> SubscriptionSnapshot:
    return existing.copy(
        status=STATUS_CANCELED,
        plan=PLAN_FREE,
        subscribed=False,
        canceled_at=now or utcnow(),
        cancel_at_period_end=False,
    )


def mark_past_due(existing: SubscriptionSnapshot) -> SubscriptionSnapshot:
    return existing.copy(status=STATUS_PAST_DUE)


def attach_customer(existing: Optional[SubscriptionSnapshot], customer_id: str) -> SubscriptionSnapshot:
    if existing is None:
        return SubscriptionSnapshot.empty(customer_id=customer_id)
    return existing.copy(customer_id=customer_id)


def clear_subscription(existing: SubscriptionSnapshot) -> SubscriptionSnapshot:
    """Drop a subscription reference the provider no longer knows about."""
    return existing.copy(
        subscription_id="",
        status=STATUS_ACTIVE,
        plan=PLAN_FREE,
        subscribed=False,
        cancel_at_period_end=False,
    )
