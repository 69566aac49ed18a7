"""Domain models for the billing sync service."""

from .provider import (
    CheckoutSession,
    InvoicePage,
    ProviderCustomer,
    ProviderEvent,
    ProviderInvoice,
    ProviderSubscription,
)
from .subscription import SubscriptionSnapshot
from .user import User

__all__ = [
    "CheckoutSession",
    "InvoicePage",
    "ProviderCustomer",
    "ProviderEvent",
    "ProviderInvoice",
    "ProviderSubscription",
    "SubscriptionSnapshot",
    "User",
]
