"""
In-app inbox notifier.
"""

from typing import Any

from finboard.database.connection import Database
from finboard.database.models import Notification, NotificationKind
from finboard.database.repository import NotificationRepository
from finboard.errors import PersistenceError
from .base import Notifier, NotificationResult


class InboxNotifier(Notifier):
    """Stores notifications in the notifications table."""

    channel = "inbox"

    def __init__(self, db: Database):
        self.repo = NotificationRepository(db)

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> NotificationResult:
        """Write the notification to the inbox."""
        notification = Notification(
            kind=kind,
            title=payload.get("title"),
            body=payload.get("body"),
            payload=payload,
        )
        try:
            self.repo.create(notification)
        except PersistenceError as e:
            return NotificationResult(success=False, channel=self.channel, error=str(e))
        return NotificationResult(success=True, channel=self.channel)
