import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ...domain.models import SubscriptionSnapshot, User
from ...domain.ports.persistence import PersistenceGateway, SnapshotUpdate


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed user store; the snapshot lives as a JSON document in the user row."""

    def __init__(self, path: Union[Path, str]) -> None:
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._lock, self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    email TEXT NOT NULL,
                    first_name TEXT,
                    last_name TEXT,
                    customer_id TEXT,
                    subscription TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_users_customer_id
                    ON users(customer_id);
                """
            )

    def close(self) -> None:
        self._conn.close()

    # UserRepository API -----------------------------------------------------
    def create_user(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        subscription: Optional[SubscriptionSnapshot] = None,
    ) -> User:
        now = _now()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO users (
                    user_id, email, first_name, last_name, customer_id, subscription,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    email,
                    first_name,
                    last_name,
                    subscription.customer_id if subscription else None,
                    _dump(subscription),
                    now,
                    now,
                ),
            )
        return User(
            user_id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            subscription=subscription,
            created_at=datetime.fromisoformat(now),
            updated_at=datetime.fromisoformat(now),
        )

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            cur = self._conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_customer_id(self, customer_id: str) -> Optional[User]:
        if not customer_id:
            return None
        with self._lock:
            cur = self._conn.execute(
                "SELECT * FROM users WHERE customer_id = ? ORDER BY created_at LIMIT 1",
                (customer_id,),
            )
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    # SubscriptionStore API --------------------------------------------------
    def update_subscription(self, user_id: str, update: SnapshotUpdate) -> Optional[SubscriptionSnapshot]:
        with self._lock, self._conn:
            cur = self._conn.execute("SELECT subscription FROM users WHERE user_id = ?", (user_id,))
            row = cur.fetchone()
            if row is None:
                return None
            current = _load(row["subscription"])
            updated = update(current)
            if updated is None:
                return current
            self._conn.execute(
                "UPDATE users SET subscription = ?, customer_id = ?, updated_at = ? WHERE user_id = ?",
                (_dump(updated), updated.customer_id, _now(), user_id),
            )
        return updated

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            user_id=row["user_id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            subscription=_load(row["subscription"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(snapshot: Optional[SubscriptionSnapshot]) -> Optional[str]:
    if snapshot is None:
        return None
    return json.dumps(snapshot.to_document(), ensure_ascii=False)


def _load(raw: Optional[str]) -> Optional[SubscriptionSnapshot]:
    if not raw:
        return None
    return SubscriptionSnapshot.from_document(json.loads(raw))
