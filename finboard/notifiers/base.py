"""
Base notifier classes.

A notification is a kind plus a payload dict. Payloads built by the alert
manager carry "title", "body", "symbol" and, when known, "price" and the
serialized "alert".
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from finboard.database.models import NotificationKind


@dataclass
class NotificationResult:
    """Result of a notification attempt."""

    success: bool
    channel: str
    error: Optional[str] = None


class Notifier(ABC):
    """Abstract base class for notifiers."""

    channel = "base"

    @abstractmethod
    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> NotificationResult:
        """
        Deliver a single notification.

        Args:
            kind: Notification category
            payload: Notification content

        Returns:
            NotificationResult indicating success or failure
        """
        pass

    def notify_batch(
        self, kind: NotificationKind, payloads: list[dict[str, Any]]
    ) -> list[NotificationResult]:
        """Deliver several notifications of the same kind."""
        return [self.notify(kind, payload) for payload in payloads]


class NotifierFactory:
    """Factory for creating notifier instances."""

    @staticmethod
    def create(config: dict[str, Any], db=None) -> Notifier:
        """
        Create a notifier from configuration.

        Args:
            config: Notifier configuration dict
            db: Database, required for the "inbox" notifier

        Returns:
            Appropriate Notifier instance

        Raises:
            ValueError: If notifier type is unknown
        """
        notifier_type = config.get("type")

        if notifier_type == "discord":
            from .discord import DiscordNotifier

            return DiscordNotifier(
                webhook_url=config.get("webhook_url", ""),
                mention_on_trigger=config.get("mention_on_trigger", True),
                include_chart_link=config.get("include_chart_link", True),
            )

        elif notifier_type == "email":
            from .email import EmailNotifier

            return EmailNotifier(
                smtp_host=config.get("smtp_host", ""),
                smtp_port=config.get("smtp_port", 587),
                smtp_user=config.get("smtp_user", ""),
                smtp_password=config.get("smtp_password", ""),
                from_address=config.get("from_address", ""),
                to_addresses=config.get("to_addresses", []),
            )

        elif notifier_type == "inbox":
            if db is None:
                raise ValueError("The inbox notifier needs a database")
            from .inbox import InboxNotifier

            return InboxNotifier(db)

        else:
            raise ValueError(f"Unknown notifier type: {notifier_type}")
