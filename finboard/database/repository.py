"""
Repository classes for CRUD operations.
"""

import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from finboard.errors import ConflictError, NotFoundError, PersistenceError
from .connection import Database
from .models import (
    Alert,
    AlertSource,
    AlertStatus,
    AlertTrigger,
    AlertType,
    Notification,
    NotificationKind,
    Timeframe,
    Watchlist,
    WatchlistItem,
    as_utc,
    parse_timestamp,
    utcnow,
)


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Store timestamps as UTC ISO strings so they sort lexically."""
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc).isoformat()


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Translate driver errors into PersistenceError."""
    try:
        yield
    except sqlite3.Error as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e


class AlertRepository:
    """CRUD operations for alerts."""

    def __init__(self, db: Database):
        self.db = db

    def insert(self, alert: Alert) -> str:
        """Insert a new alert and return its id."""
        alert_id = alert.id or str(uuid.uuid4())
        with _storage_errors("insert alert"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                INSERT INTO alerts
                (id, symbol, alert_type, status, title, description, target_value,
                 percentage_value, timeframe, source, snoozed_until, triggered_at,
                 created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert_id,
                    alert.symbol,
                    alert.alert_type.value,
                    alert.status.value,
                    alert.title,
                    alert.description,
                    alert.target_value,
                    alert.percentage_value,
                    alert.timeframe.value,
                    alert.source.value,
                    _ts(alert.snoozed_until),
                    _ts(alert.triggered_at),
                    _ts(alert.created_at),
                ),
            )
            self.db.connection.commit()
        return alert_id

    def get(self, alert_id: str) -> Alert:
        """Get alert by ID, raising NotFoundError if it doesn't exist."""
        with _storage_errors("read alert"):
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Alert not found: {alert_id}")
        return self._row_to_alert(row)

    def update_status(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        new_status: AlertStatus,
        snoozed_until: Optional[datetime] = None,
        triggered_at: Optional[datetime] = None,
    ) -> None:
        """
        Compare-and-set the status of an alert.

        The row is only written if its stored status still equals
        expected_status.

        Raises:
            NotFoundError: If the alert doesn't exist
            ConflictError: If the status changed since it was read
            PersistenceError: On storage failure
        """
        with _storage_errors("update alert status"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                UPDATE alerts
                SET status = ?, snoozed_until = ?, triggered_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    new_status.value,
                    _ts(snoozed_until),
                    _ts(triggered_at),
                    alert_id,
                    expected_status.value,
                ),
            )
            self.db.connection.commit()
            updated = cursor.rowcount

        if updated == 0:
            current = self.get(alert_id)
            raise ConflictError(
                f"Alert {alert_id} is '{current.status.value}', "
                f"expected '{expected_status.value}'"
            )

    def delete(self, alert_id: str) -> None:
        """Delete an alert. Deleting a missing alert is not an error."""
        with _storage_errors("delete alert"):
            cursor = self.db.connection.cursor()
            cursor.execute("DELETE FROM alerts WHERE id = ?", (alert_id,))
            self.db.connection.commit()

    def list_alerts(self, status: Optional[AlertStatus] = None) -> list[Alert]:
        """List alerts, newest first, optionally filtered by status."""
        with _storage_errors("list alerts"):
            cursor = self.db.connection.cursor()
            if status is None:
                cursor.execute(
                    "SELECT * FROM alerts ORDER BY created_at DESC, rowid DESC"
                )
            else:
                cursor.execute(
                    """
                    SELECT * FROM alerts
                    WHERE status = ?
                    ORDER BY created_at DESC, rowid DESC
                    """,
                    (status.value,),
                )
            return [self._row_to_alert(row) for row in cursor.fetchall()]

    def list_snoozed_due(self, now: datetime) -> list[Alert]:
        """List snoozed alerts whose snooze has expired."""
        with _storage_errors("list snoozed alerts"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                SELECT * FROM alerts
                WHERE status = ? AND snoozed_until IS NOT NULL AND snoozed_until <= ?
                ORDER BY snoozed_until
                """,
                (AlertStatus.SNOOZED.value, _ts(now)),
            )
            return [self._row_to_alert(row) for row in cursor.fetchall()]

    def _row_to_alert(self, row) -> Alert:
        """Convert database row to Alert."""
        return Alert(
            id=row["id"],
            symbol=row["symbol"],
            alert_type=AlertType(row["alert_type"]),
            status=AlertStatus(row["status"]),
            title=row["title"],
            description=row["description"],
            target_value=row["target_value"],
            percentage_value=row["percentage_value"],
            timeframe=Timeframe(row["timeframe"]),
            source=AlertSource(row["source"]),
            snoozed_until=parse_timestamp(row["snoozed_until"]),
            triggered_at=parse_timestamp(row["triggered_at"]),
            created_at=parse_timestamp(row["created_at"]),
        )


class AlertTriggerRepository:
    """CRUD operations for alert trigger records."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, trigger: AlertTrigger) -> AlertTrigger:
        """Create a new trigger record."""
        with _storage_errors("insert alert trigger"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                INSERT INTO alert_triggers
                (alert_id, ticker, price, triggered_at, evaluation_window_minutes,
                 outcome, pnl_after_window, delivered_channels, dismissed,
                 acknowledged_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trigger.alert_id,
                    trigger.ticker,
                    trigger.price,
                    _ts(trigger.triggered_at),
                    trigger.evaluation_window_minutes,
                    trigger.outcome,
                    trigger.pnl_after_window,
                    json.dumps(trigger.delivered_channels),
                    1 if trigger.dismissed else 0,
                    _ts(trigger.acknowledged_at),
                ),
            )
            self.db.connection.commit()
        trigger.id = cursor.lastrowid
        return trigger

    def get(self, trigger_id: int) -> AlertTrigger:
        """Get trigger by ID, raising NotFoundError if it doesn't exist."""
        with _storage_errors("read alert trigger"):
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT * FROM alert_triggers WHERE id = ?", (trigger_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Alert trigger not found: {trigger_id}")
        return self._row_to_trigger(row)

    def list_for_alert(self, alert_id: str) -> list[AlertTrigger]:
        """List triggers of one alert, newest first."""
        with _storage_errors("list alert triggers"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                SELECT * FROM alert_triggers
                WHERE alert_id = ?
                ORDER BY triggered_at DESC, id DESC
                """,
                (alert_id,),
            )
            return [self._row_to_trigger(row) for row in cursor.fetchall()]

    def list_pending_outcomes(self, now: datetime) -> list[AlertTrigger]:
        """List triggers without an outcome whose evaluation window has elapsed."""
        with _storage_errors("list pending alert triggers"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                "SELECT * FROM alert_triggers WHERE outcome IS NULL ORDER BY id"
            )
            triggers = [self._row_to_trigger(row) for row in cursor.fetchall()]
        return [t for t in triggers if t.window_ends_at <= now]

    def set_outcome(self, trigger_id: int, outcome: str, pnl: float) -> None:
        """Record the outcome computed after the evaluation window."""
        with _storage_errors("update alert trigger"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                UPDATE alert_triggers
                SET outcome = ?, pnl_after_window = ?
                WHERE id = ?
                """,
                (outcome, pnl, trigger_id),
            )
            self.db.connection.commit()

    def acknowledge(self, trigger_id: int, dismissed: bool = False) -> None:
        """Mark a trigger as seen, optionally dismissing it."""
        with _storage_errors("acknowledge alert trigger"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                UPDATE alert_triggers
                SET acknowledged_at = ?, dismissed = ?
                WHERE id = ?
                """,
                (_ts(utcnow()), 1 if dismissed else 0, trigger_id),
            )
            self.db.connection.commit()

    def _row_to_trigger(self, row) -> AlertTrigger:
        """Convert database row to AlertTrigger."""
        return AlertTrigger(
            id=row["id"],
            alert_id=row["alert_id"],
            ticker=row["ticker"],
            price=row["price"],
            triggered_at=parse_timestamp(row["triggered_at"]),
            evaluation_window_minutes=row["evaluation_window_minutes"],
            outcome=row["outcome"],
            pnl_after_window=row["pnl_after_window"],
            delivered_channels=json.loads(row["delivered_channels"]),
            dismissed=bool(row["dismissed"]),
            acknowledged_at=parse_timestamp(row["acknowledged_at"]),
        )


class NotificationRepository:
    """CRUD operations for in-app notifications."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, notification: Notification) -> Notification:
        """Create a new notification."""
        with _storage_errors("insert notification"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                INSERT INTO notifications (kind, title, body, payload, created_at, read_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    notification.kind.value,
                    notification.title,
                    notification.body,
                    json.dumps(notification.payload, default=str),
                    _ts(notification.created_at),
                    _ts(notification.read_at),
                ),
            )
            self.db.connection.commit()
        notification.id = cursor.lastrowid
        return notification

    def list_recent(self, limit: int = 50) -> list[Notification]:
        """List newest notifications."""
        with _storage_errors("list notifications"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                SELECT * FROM notifications
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (limit,),
            )
            return [self._row_to_notification(row) for row in cursor.fetchall()]

    def unread_count(self) -> int:
        """Count notifications not yet read."""
        with _storage_errors("count notifications"):
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT COUNT(*) FROM notifications WHERE read_at IS NULL")
            return cursor.fetchone()[0]

    def mark_read(self, notification_id: int) -> None:
        """Mark one notification as read."""
        with _storage_errors("update notification"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                "UPDATE notifications SET read_at = ? WHERE id = ?",
                (_ts(utcnow()), notification_id),
            )
            self.db.connection.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"Notification not found: {notification_id}")

    def mark_all_read(self) -> int:
        """Mark every unread notification as read. Returns how many changed."""
        with _storage_errors("update notifications"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                "UPDATE notifications SET read_at = ? WHERE read_at IS NULL",
                (_ts(utcnow()),),
            )
            self.db.connection.commit()
        return cursor.rowcount

    def _row_to_notification(self, row) -> Notification:
        """Convert database row to Notification."""
        return Notification(
            id=row["id"],
            kind=NotificationKind(row["kind"]),
            title=row["title"],
            body=row["body"],
            payload=json.loads(row["payload"]),
            created_at=parse_timestamp(row["created_at"]),
            read_at=parse_timestamp(row["read_at"]),
        )


class WatchlistRepository:
    """CRUD operations for watchlists and their items."""

    def __init__(self, db: Database):
        self.db = db

    def create(self, watchlist: Watchlist) -> Watchlist:
        """Create a watchlist. The first one created becomes the default."""
        with _storage_errors("insert watchlist"):
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT COUNT(*) FROM watchlists")
            if cursor.fetchone()[0] == 0:
                watchlist.is_default = True
            cursor.execute(
                """
                INSERT INTO watchlists (name, description, is_default)
                VALUES (?, ?, ?)
                """,
                (watchlist.name, watchlist.description, 1 if watchlist.is_default else 0),
            )
            self.db.connection.commit()
        watchlist.id = cursor.lastrowid
        return watchlist

    def get_default(self) -> Optional[Watchlist]:
        """Get the default watchlist, falling back to the oldest one."""
        with _storage_errors("read watchlist"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                "SELECT * FROM watchlists ORDER BY is_default DESC, id LIMIT 1"
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_watchlist(row)

    def list_all(self) -> list[Watchlist]:
        """List watchlists with their items, oldest first."""
        with _storage_errors("list watchlists"):
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT * FROM watchlists ORDER BY id")
            return [self._row_to_watchlist(row) for row in cursor.fetchall()]

    def add_item(
        self,
        symbol: str,
        company_name: Optional[str] = None,
        watchlist_id: Optional[int] = None,
    ) -> Optional[WatchlistItem]:
        """
        Add a symbol to a watchlist.

        Args:
            symbol: Ticker, stored upper-cased
            company_name: Optional display name
            watchlist_id: Target list; the default watchlist when omitted

        Returns:
            The new item, or None if the symbol is already in the watchlist

        Raises:
            NotFoundError: If there is no watchlist to add to, or watchlist_id
                doesn't exist
        """
        if watchlist_id is None:
            default = self.get_default()
            if default is None:
                raise NotFoundError("No watchlist available")
            watchlist_id = default.id

        item = WatchlistItem(
            watchlist_id=watchlist_id,
            symbol=symbol.strip().upper(),
            company_name=company_name,
        )
        try:
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                INSERT INTO watchlist_items (watchlist_id, symbol, company_name)
                VALUES (?, ?, ?)
                """,
                (item.watchlist_id, item.symbol, item.company_name),
            )
            self.db.connection.commit()
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                return None
            if "FOREIGN KEY" in str(e):
                raise NotFoundError(f"Watchlist not found: {watchlist_id}") from e
            raise PersistenceError(f"Failed to add {item.symbol}: {e}") from e
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to add {item.symbol}: {e}") from e
        item.id = cursor.lastrowid
        return item

    def remove_item(self, watchlist_id: int, symbol: str) -> None:
        """Remove a symbol from a watchlist."""
        with _storage_errors("remove watchlist item"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                "DELETE FROM watchlist_items WHERE watchlist_id = ? AND symbol = ?",
                (watchlist_id, symbol.strip().upper()),
            )
            self.db.connection.commit()

    def get_items(self, watchlist_id: int) -> list[WatchlistItem]:
        """Get all items of a watchlist."""
        with _storage_errors("list watchlist items"):
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                SELECT * FROM watchlist_items
                WHERE watchlist_id = ?
                ORDER BY symbol
                """,
                (watchlist_id,),
            )
            return [
                WatchlistItem(
                    id=row["id"],
                    watchlist_id=row["watchlist_id"],
                    symbol=row["symbol"],
                    company_name=row["company_name"],
                    notes=row["notes"],
                    added_at=parse_timestamp(row["added_at"]),
                )
                for row in cursor.fetchall()
            ]

    def all_symbols(self) -> list[str]:
        """Distinct symbols across every watchlist."""
        with _storage_errors("list watchlist symbols"):
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT DISTINCT symbol FROM watchlist_items ORDER BY symbol")
            return [row["symbol"] for row in cursor.fetchall()]

    def _row_to_watchlist(self, row) -> Watchlist:
        """Convert database row to Watchlist."""
        return Watchlist(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            is_default=bool(row["is_default"]),
            created_at=parse_timestamp(row["created_at"]),
            items=self.get_items(row["id"]),
        )
