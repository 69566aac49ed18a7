"""User record owning the subscription snapshot."""

from datetime import datetime, timezone
from typing import Optional

from .subscription import SubscriptionSnapshot


class User:
    """
    User entity as seen by the billing subsystem.

    Attributes:
        user_id: Stable external identifier
        email: User email address
        first_name: Given name, used for the provider customer
        last_name: Family name, used for the provider customer
        subscription: Embedded snapshot, ``None`` until the first checkout
        created_at: Record creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        subscription: Optional[SubscriptionSnapshot] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.user_id = user_id
        self.email = email
        self.first_name = first_name
        self.last_name = last_name
        self.subscription = subscription
        self.created_at = created_at or datetime.now(timezone.utc)
        self.updated_at = updated_at or datetime.now(timezone.utc)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def customer_id(self) -> Optional[str]:
        return self.subscription.customer_id if self.subscription else None

    def __repr__(self) -> str:
        return f"<User user_id={self.user_id} email={self.email} subscription={self.subscription!r}>"
