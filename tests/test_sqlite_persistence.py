"""
Test the SQLite user store and its atomic snapshot updates.
"""
import threading

from billing_sync.domain.models import SubscriptionSnapshot
from billing_sync.domain.reconciliation import merge
from fakes import NOW, PREMIUM_PRICE, make_subscription


def test_create_and_get_user(persistence):
    persistence.create_user("user_alice", "alice@example.com", "Alice", "Smith")

    user = persistence.get_user_by_id("user_alice")

    assert user is not None
    assert user.email == "alice@example.com"
    assert user.full_name == "Alice Smith"
    assert user.subscription is None
    assert user.customer_id is None
    assert persistence.get_user_by_id("user_missing") is None


def test_snapshot_round_trip(persistence):
    persistence.create_user("user_alice", "alice@example.com")
    snapshot = merge(None, make_subscription(), PREMIUM_PRICE, NOW)

    stored = persistence.update_subscription("user_alice", lambda current: snapshot)

    assert stored == snapshot
    user = persistence.get_user_by_id("user_alice")
    assert user.subscription == snapshot
    assert user.subscription.current_period_end.tzinfo is not None


def test_lookup_by_customer_id(persistence):
    persistence.create_user("user_alice", "alice@example.com")
    persistence.create_user("user_bob", "bob@example.com", subscription=SubscriptionSnapshot.empty("cus_bob"))

    assert persistence.get_user_by_customer_id("cus_alice") is None
    persistence.update_subscription("user_alice", lambda current: SubscriptionSnapshot.empty("cus_alice"))

    assert persistence.get_user_by_customer_id("cus_alice").user_id == "user_alice"
    assert persistence.get_user_by_customer_id("cus_bob").user_id == "user_bob"
    assert persistence.get_user_by_customer_id("") is None


def test_update_returning_none_leaves_record_untouched(persistence):
    original = SubscriptionSnapshot.empty("cus_1")
    persistence.create_user("user_alice", "alice@example.com", subscription=original)

    result = persistence.update_subscription("user_alice", lambda current: None)

    assert result == original
    assert persistence.get_user_by_id("user_alice").subscription == original


def test_update_unknown_user_returns_none(persistence):
    calls = []

    result = persistence.update_subscription("user_missing", lambda current: calls.append(current))

    assert result is None
    assert calls == []


def test_concurrent_updates_are_serialised(persistence):
    persistence.create_user("user_alice", "alice@example.com", subscription=SubscriptionSnapshot.empty("cus_1"))

    def _bump(current):
        count = int(current.subscription_id or "0")
        return current.copy(subscription_id=str(count + 1))

    threads = [
        threading.Thread(target=persistence.update_subscription, args=("user_alice", _bump))
        for _ in range(20)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert persistence.get_user_by_id("user_alice").subscription.subscription_id == "20"
