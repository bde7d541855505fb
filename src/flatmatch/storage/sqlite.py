"""SQLite-backed store for listings, users, criteria and sent alerts.

This module provides a local implementation of the collaborator contracts
used by the alert poller:
- ListingSource: listings ingested within a recency window
- UserStore: alertable users and their criteria
- DedupStore: one sent-alert row per (user, listing), enforced by a
  UNIQUE constraint so that concurrent pollers cannot both claim a pair
"""

import asyncio
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from ..alerts.sources import DedupStore, FetchError, ListingSource, UserStore
from ..models.criteria import User, UserCriteria
from ..models.listing import ListingRecord
from ..models.score import SentAlertRecord

logger = logging.getLogger(__name__)


def _utc_iso(value: datetime) -> str:
    """Normalize to a sortable UTC ISO string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class SQLiteStore(ListingSource, UserStore, DedupStore):
    """SQLite store implementing every data contract of the poller.

    Example:
        store = SQLiteStore(Path("data/flatmatch.db"))

        store.save_listings(listings)
        store.save_user(User(user_id=42, onboarding_completed=True))
        store.save_criteria(criteria)

        recent = await store.recent_listings(48)
        claimed = await store.record_alert(record)
    """

    name = "sqlite"

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file (created if missing)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=30)

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS listings (
                    id TEXT PRIMARY KEY,
                    created_at TIMESTAMP NOT NULL,
                    data JSON NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id INTEGER PRIMARY KEY,
                    is_active BOOLEAN NOT NULL DEFAULT 1,
                    is_paused BOOLEAN NOT NULL DEFAULT 0,
                    onboarding_completed BOOLEAN NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_criteria (
                    user_id INTEGER PRIMARY KEY,
                    data JSON NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sent_alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    listing_id TEXT NOT NULL,
                    score_total INTEGER NOT NULL,
                    data JSON NOT NULL,
                    sent_at TIMESTAMP NOT NULL,
                    UNIQUE (user_id, listing_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_listings_created ON listings(created_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_alerts_user ON sent_alerts(user_id, sent_at)"
            )
            conn.commit()

    # =========================================================================
    # Listings
    # =========================================================================

    def save_listing(self, listing: ListingRecord) -> None:
        """Insert or replace a single listing."""
        self.save_listings([listing])

    def save_listings(self, listings: list[ListingRecord]) -> int:
        """Insert or replace multiple listings.

        Returns:
            Number of listings saved
        """
        if not listings:
            return 0

        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO listings (id, created_at, data) VALUES (?, ?, ?)",
                [
                    (
                        listing.id,
                        _utc_iso(listing.created_at),
                        listing.model_dump_json(),
                    )
                    for listing in listings
                ],
            )
            conn.commit()

        logger.info(f"Stored {len(listings)} listings")
        return len(listings)

    def get_listing(self, listing_id: str) -> Optional[ListingRecord]:
        """Get a single listing by ID."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM listings WHERE id = ?", (listing_id,)
            ).fetchone()
        if row:
            return ListingRecord.model_validate_json(row[0])
        return None

    async def recent_listings(self, hours: int) -> list[ListingRecord]:
        return await asyncio.to_thread(self._recent_listings, hours)

    def _recent_listings(self, hours: int) -> list[ListingRecord]:
        cutoff = _utc_iso(datetime.now(timezone.utc) - timedelta(hours=hours))
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT data FROM listings WHERE created_at > ? ORDER BY created_at DESC",
                    (cutoff,),
                ).fetchall()
        except sqlite3.Error as e:
            raise FetchError(self.name, f"Error fetching recent listings: {e}") from e

        return [ListingRecord.model_validate_json(row[0]) for row in rows]

    # =========================================================================
    # Users and criteria
    # =========================================================================

    def save_user(self, user: User) -> None:
        """Insert or update a user."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (user_id, is_active, is_paused, onboarding_completed, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    is_active = excluded.is_active,
                    is_paused = excluded.is_paused,
                    onboarding_completed = excluded.onboarding_completed
                """,
                (
                    user.user_id,
                    user.is_active,
                    user.is_paused,
                    user.onboarding_completed,
                    _utc_iso(user.created_at),
                ),
            )
            conn.commit()

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT user_id, is_active, is_paused, onboarding_completed, created_at
                FROM users WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()
        return self._row_to_user(row) if row else None

    def set_paused(self, user_id: int, paused: bool) -> bool:
        """Pause or resume alerts for a user.

        Returns:
            True if the user exists
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET is_paused = ? WHERE user_id = ?",
                (paused, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def save_criteria(self, criteria: UserCriteria) -> None:
        """Replace a user's criteria wholesale and mark onboarding done."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO user_criteria (user_id, data, updated_at) VALUES (?, ?, ?)",
                (
                    criteria.user_id,
                    criteria.model_dump_json(),
                    _utc_iso(criteria.updated_at),
                ),
            )
            conn.execute(
                "UPDATE users SET onboarding_completed = 1 WHERE user_id = ?",
                (criteria.user_id,),
            )
            conn.commit()
        logger.info(f"Saved criteria for user {criteria.user_id}")

    async def active_users(self) -> list[User]:
        return await asyncio.to_thread(self._active_users)

    def _active_users(self) -> list[User]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT user_id, is_active, is_paused, onboarding_completed, created_at
                    FROM users
                    WHERE is_active = 1 AND is_paused = 0 AND onboarding_completed = 1
                    ORDER BY user_id
                    """
                ).fetchall()
        except sqlite3.Error as e:
            raise FetchError(self.name, f"Error fetching active users: {e}") from e

        return [self._row_to_user(row) for row in rows]

    async def criteria_for(self, user_id: int) -> Optional[UserCriteria]:
        return await asyncio.to_thread(self._criteria_for, user_id)

    def _criteria_for(self, user_id: int) -> Optional[UserCriteria]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT data FROM user_criteria WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise FetchError(self.name, f"Error fetching criteria for {user_id}: {e}") from e

        if row is None:
            return None
        return UserCriteria.model_validate_json(row[0])

    @staticmethod
    def _row_to_user(row: tuple) -> User:
        return User(
            user_id=row[0],
            is_active=bool(row[1]),
            is_paused=bool(row[2]),
            onboarding_completed=bool(row[3]),
            created_at=datetime.fromisoformat(row[4]),
        )

    # =========================================================================
    # Sent alerts
    # =========================================================================

    async def exists(self, user_id: int, listing_id: str) -> bool:
        return await asyncio.to_thread(self._exists, user_id, listing_id)

    def _exists(self, user_id: int, listing_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM sent_alerts WHERE user_id = ? AND listing_id = ?",
                (user_id, listing_id),
            ).fetchone()
        return row is not None

    async def record_alert(self, record: SentAlertRecord) -> bool:
        return await asyncio.to_thread(self._record_alert, record)

    async def set_user_action(self, user_id: int, listing_id: str, action: str) -> None:
        await asyncio.to_thread(self._set_user_action, user_id, listing_id, action)

    def _set_user_action(self, user_id: int, listing_id: str, action: str) -> None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM sent_alerts WHERE user_id = ? AND listing_id = ?",
                (user_id, listing_id),
            ).fetchone()
            if row is None:
                return
            record = SentAlertRecord.model_validate_json(row[0])
            conn.execute(
                "UPDATE sent_alerts SET data = ? WHERE user_id = ? AND listing_id = ?",
                (
                    record.model_copy(update={"user_action": action}).model_dump_json(),
                    user_id,
                    listing_id,
                ),
            )
            conn.commit()

    def _record_alert(self, record: SentAlertRecord) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO sent_alerts
                (user_id, listing_id, score_total, data, sent_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.user_id,
                    record.listing_id,
                    record.score_total,
                    record.model_dump_json(),
                    _utc_iso(record.sent_at),
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def alerts_for_user(self, user_id: int, limit: int = 10) -> list[SentAlertRecord]:
        """Most recent alerts sent to a user."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT data FROM sent_alerts
                WHERE user_id = ?
                ORDER BY sent_at DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        return [SentAlertRecord.model_validate_json(row[0]) for row in rows]

    def count_alerts(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM sent_alerts").fetchone()[0]
