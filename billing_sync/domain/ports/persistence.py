from __future__ import annotations

from typing import Callable, Optional, Protocol

from ..models import SubscriptionSnapshot, User

SnapshotUpdate = Callable[[Optional[SubscriptionSnapshot]], Optional[SubscriptionSnapshot]]


class UserRepository(Protocol):
    """Lookup of the user records that own subscription snapshots."""

    def create_user(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        subscription: Optional[SubscriptionSnapshot] = None,
    ) -> User:
        ...

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    def get_user_by_customer_id(self, customer_id: str) -> Optional[User]:
        ...


class SubscriptionStore(Protocol):
    """Single write path for the snapshot embedded in a user record."""

    def update_subscription(self, user_id: str, update: SnapshotUpdate) -> Optional[SubscriptionSnapshot]:
        """Atomically apply ``update`` to the user's current snapshot and persist the result.

        Returning ``None`` from ``update`` leaves the record untouched.
        """
        ...


class PersistenceGateway(UserRepository, SubscriptionStore, Protocol):
    """Composite gateway combining every persistence concern used by the app."""

    def close(self) -> None:
        ...
