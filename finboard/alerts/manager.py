"""
Alert lifecycle manager.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from finboard.database.models import (
    Alert,
    AlertStatus,
    AlertTrigger,
    NewAlert,
    NotificationKind,
    as_utc,
    utcnow,
)
from finboard.errors import ConflictError, ValidationError
from finboard.notifiers.base import Notifier
from finboard.validation import coerce_choice, coerce_number
from .lifecycle import apply_transition, build_alert

logger = logging.getLogger(__name__)


class AlertStore(Protocol):
    """Storage collaborator for alerts."""

    def insert(self, alert: Alert) -> str: ...

    def get(self, alert_id: str) -> Alert: ...

    def update_status(
        self,
        alert_id: str,
        expected_status: AlertStatus,
        new_status: AlertStatus,
        snoozed_until: Optional[datetime] = None,
        triggered_at: Optional[datetime] = None,
    ) -> None: ...

    def delete(self, alert_id: str) -> None: ...

    def list_alerts(self, status: Optional[AlertStatus] = None) -> list[Alert]: ...

    def list_snoozed_due(self, now: datetime) -> list[Alert]: ...


class TriggerStore(Protocol):
    """Storage collaborator for trigger records."""

    def create(self, trigger: AlertTrigger) -> AlertTrigger: ...

    def get(self, trigger_id: int) -> AlertTrigger: ...

    def set_outcome(self, trigger_id: int, outcome: str, pnl: float) -> None: ...


class AlertManager:
    """Creates alerts and moves them through their lifecycle."""

    def __init__(
        self,
        store: AlertStore,
        trigger_store: Optional[TriggerStore] = None,
        notifiers: Optional[list[Notifier]] = None,
        clock: Callable[[], datetime] = utcnow,
        default_snooze_hours: float = 24,
        evaluation_window_minutes: int = 60,
    ):
        """
        Initialize the alert manager.

        Args:
            store: Alert storage collaborator
            trigger_store: Storage for trigger records, optional
            notifiers: Emitters called after alerts are created or triggered
            clock: Returns the current time
            default_snooze_hours: Snooze length used by snooze() when none is given
            evaluation_window_minutes: Default window for trigger outcomes
        """
        self.store = store
        self.trigger_store = trigger_store
        self.notifiers = notifiers or []
        self.clock = clock
        self.default_snooze_hours = default_snooze_hours
        self.evaluation_window_minutes = evaluation_window_minutes

    def create_alert(self, data: NewAlert) -> Alert:
        """
        Validate and persist a new alert.

        Each call creates a new record; retries are not de-duplicated.

        Raises:
            ValidationError: If the input is invalid (nothing is stored)
            PersistenceError: If the store fails
        """
        alert = build_alert(data, self.clock())
        alert.id = self.store.insert(alert)
        logger.info(f"Created {alert.alert_type.value} alert {alert.id} for {alert.symbol}")

        self._emit(
            NotificationKind.SYSTEM,
            self._payload(alert, body=f"Alert created: {alert.title}"),
        )
        return alert

    def update_status(
        self,
        alert_id: str,
        new_status: Any,
        snooze_until: Optional[datetime] = None,
    ) -> Alert:
        """
        Move an alert to a new status.

        The write is a compare-and-set against the status read here, so a
        concurrent change makes this call fail instead of overwriting it.

        Raises:
            NotFoundError: If the alert doesn't exist
            InvalidTransitionError: If the edge is not allowed
            ValidationError: If snoozing without a future snooze_until
            ConflictError: If the status changed concurrently
            PersistenceError: If the store fails
        """
        new_status = coerce_choice(AlertStatus, new_status, "status")
        updated, _ = self._change_status(alert_id, new_status, snooze_until)
        return updated

    def fire(self, alert_id: str, price: Optional[float] = None) -> Optional[AlertTrigger]:
        """
        Trigger an alert and record the firing.

        Returns:
            The trigger record, or None if no trigger store is configured
            or the alert had already fired
        """
        current = self.store.get(alert_id)
        now = self.clock()
        updated, channels = self._change_status(
            alert_id, AlertStatus.TRIGGERED, price=price, current=current, now=now
        )
        if self.trigger_store is None or current.status == AlertStatus.TRIGGERED:
            return None
        return self.record_trigger(updated, price, channels, triggered_at=now)

    def _change_status(
        self,
        alert_id: str,
        new_status: AlertStatus,
        snooze_until: Optional[datetime] = None,
        price: Optional[float] = None,
        current: Optional[Alert] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Alert, list[str]]:
        if current is None:
            current = self.store.get(alert_id)
        if now is None:
            now = self.clock()
        updated = apply_transition(current, new_status, now, snooze_until)

        self.store.update_status(
            alert_id,
            expected_status=current.status,
            new_status=updated.status,
            snoozed_until=updated.snoozed_until,
            triggered_at=updated.triggered_at,
        )
        logger.info(
            f"Alert {alert_id} {current.status.value} -> {updated.status.value}"
        )

        channels: list[str] = []
        if (
            updated.status == AlertStatus.TRIGGERED
            and current.status != AlertStatus.TRIGGERED
        ):
            channels = self._emit(
                NotificationKind.ALERT_TRIGGER,
                self._payload(updated, body=f"{updated.title} triggered", price=price),
            )
        return updated, channels

    def snooze(self, alert_id: str, hours: Optional[float] = None) -> Alert:
        """Snooze an alert for the given number of hours (default from config)."""
        if hours is None:
            hours = self.default_snooze_hours
        hours = coerce_number(hours, "hours")
        if hours is None or hours <= 0:
            raise ValidationError("Snooze length must be a positive number of hours")
        until = self.clock() + timedelta(hours=hours)
        return self.update_status(alert_id, AlertStatus.SNOOZED, snooze_until=until)

    def delete_alert(self, alert_id: str) -> None:
        """Permanently remove an alert. Deleting twice is not an error."""
        self.store.delete(alert_id)
        logger.info(f"Deleted alert {alert_id}")

    def list_active(self) -> list[Alert]:
        """Active alerts, newest first."""
        return self.store.list_alerts(AlertStatus.ACTIVE)

    def list_all(self) -> list[Alert]:
        """All alerts, newest first."""
        return self.store.list_alerts()

    def wake_expired_snoozes(self) -> list[Alert]:
        """
        Return snoozed alerts whose snooze has passed to active.

        Returns:
            The alerts that were re-activated
        """
        woken = []
        for alert in self.store.list_snoozed_due(self.clock()):
            try:
                updated, _ = self._change_status(
                    alert.id, AlertStatus.ACTIVE, current=alert
                )
                woken.append(updated)
            except ConflictError as e:
                logger.warning(f"Skipped waking alert {alert.id}: {e}")
        if woken:
            logger.info(f"Re-activated {len(woken)} snoozed alert(s)")
        return woken

    def record_trigger(
        self,
        alert: Alert,
        price: Optional[float],
        channels: Optional[list[str]] = None,
        evaluation_window_minutes: Optional[int] = None,
        triggered_at: Optional[datetime] = None,
    ) -> AlertTrigger:
        """
        Store the evaluation record for one firing of an alert.

        triggered_at is the time of this firing. The alert keeps the time
        of its first firing, so a re-armed alert must pass it explicitly.
        """
        if self.trigger_store is None:
            raise ValidationError("No trigger store configured")
        window = evaluation_window_minutes or self.evaluation_window_minutes
        trigger = AlertTrigger(
            alert_id=alert.id,
            ticker=alert.symbol,
            price=price,
            triggered_at=triggered_at or self.clock(),
            evaluation_window_minutes=window,
            delivered_channels=list(channels or []),
        )
        return self.trigger_store.create(trigger)

    def record_outcome(self, trigger_id: int, price_after: float) -> AlertTrigger:
        """
        Compute and store the outcome of a trigger once its window has elapsed.

        Raises:
            NotFoundError: If the trigger doesn't exist
            ValidationError: If the window hasn't elapsed or prices are unusable
        """
        if self.trigger_store is None:
            raise ValidationError("No trigger store configured")
        trigger = self.trigger_store.get(trigger_id)
        if as_utc(self.clock()) < trigger.window_ends_at:
            raise ValidationError(
                f"Evaluation window of trigger {trigger_id} ends at "
                f"{trigger.window_ends_at.isoformat()}"
            )

        price_after = coerce_number(price_after, "priceAfter")
        if not trigger.price or price_after is None:
            raise ValidationError(f"Trigger {trigger_id} has no usable price")

        pnl = (price_after - trigger.price) / trigger.price * 100
        if pnl > 0:
            outcome = "win"
        elif pnl < 0:
            outcome = "loss"
        else:
            outcome = "flat"

        self.trigger_store.set_outcome(trigger_id, outcome, pnl)
        return replace(trigger, outcome=outcome, pnl_after_window=pnl)

    def _payload(self, alert: Alert, body: str, price: Optional[float] = None) -> dict:
        return {
            "title": alert.title,
            "body": body,
            "symbol": alert.symbol,
            "price": price,
            "timestamp": self.clock().isoformat(),
            "alert": alert.to_dict(),
        }

    def _emit(self, kind: NotificationKind, payload: dict) -> list[str]:
        """Send to every notifier; failures are logged, never raised."""
        delivered = []
        for notifier in self.notifiers:
            try:
                result = notifier.notify(kind, payload)
            except Exception:
                logger.exception(f"Notifier {notifier.channel} raised")
                continue
            if result.success:
                delivered.append(result.channel)
            else:
                logger.warning(f"Notification via {result.channel} failed: {result.error}")
        return delivered
