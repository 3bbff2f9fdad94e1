"""
Alert status state machine.

Everything here is pure: functions take an alert and return a new one,
leaving storage to the caller.

    active    -> triggered | snoozed | cancelled
    snoozed   -> active | cancelled
    triggered -> triggered | active | cancelled
    cancelled -> (terminal)

triggered -> triggered is accepted as a no-op so a repeated firing keeps the
first triggered_at. triggered -> active re-arms an alert that already fired.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from finboard.database.models import (
    PRICE_THRESHOLD_TYPES,
    Alert,
    AlertSource,
    AlertStatus,
    AlertType,
    NewAlert,
    Timeframe,
    as_utc,
)
from finboard.errors import InvalidTransitionError, ValidationError
from finboard.validation import coerce_choice, coerce_number

TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset(
        {AlertStatus.TRIGGERED, AlertStatus.SNOOZED, AlertStatus.CANCELLED}
    ),
    AlertStatus.SNOOZED: frozenset({AlertStatus.ACTIVE, AlertStatus.CANCELLED}),
    AlertStatus.TRIGGERED: frozenset(
        {AlertStatus.TRIGGERED, AlertStatus.ACTIVE, AlertStatus.CANCELLED}
    ),
    AlertStatus.CANCELLED: frozenset(),
}


def can_transition(current: AlertStatus, new_status: AlertStatus) -> bool:
    """Check whether current -> new_status is an edge of the state machine."""
    return new_status in TRANSITIONS[current]


def build_alert(data: NewAlert, now: datetime) -> Alert:
    """
    Validate creation input and build a new active alert.

    Args:
        data: Raw creation input
        now: Creation timestamp

    Returns:
        Alert without an id

    Raises:
        ValidationError: If required fields are missing or malformed
    """
    symbol = (data.symbol or "").strip().upper()
    if not symbol:
        raise ValidationError("symbol is required")

    title = (data.title or "").strip()
    if not title:
        raise ValidationError("title is required")

    alert_type = coerce_choice(AlertType, data.alert_type, "alertType")
    timeframe = coerce_choice(Timeframe, data.timeframe or Timeframe.DAILY, "timeframe")
    source = coerce_choice(AlertSource, data.source or AlertSource.USER, "source")

    target_value = None
    percentage_value = None

    if alert_type in PRICE_THRESHOLD_TYPES:
        target_value = coerce_number(data.target_value, "targetValue")
        if target_value is None:
            raise ValidationError(f"targetValue is required for {alert_type.value} alerts")
    elif alert_type == AlertType.PERCENT_CHANGE:
        percentage_value = coerce_number(data.percentage_value, "percentageValue")
        if percentage_value is None:
            raise ValidationError("percentageValue is required for percent_change alerts")

    return Alert(
        symbol=symbol,
        alert_type=alert_type,
        title=title,
        status=AlertStatus.ACTIVE,
        description=data.description or None,
        target_value=target_value,
        percentage_value=percentage_value,
        timeframe=timeframe,
        source=source,
        created_at=now,
    )


def apply_transition(
    alert: Alert,
    new_status: AlertStatus,
    now: datetime,
    snooze_until: Optional[datetime] = None,
) -> Alert:
    """
    Apply a status change to an alert.

    Args:
        alert: Current alert
        new_status: Requested status
        now: Current time
        snooze_until: Required when new_status is snoozed

    Returns:
        A new Alert carrying the new status

    Raises:
        InvalidTransitionError: If the edge is not allowed
        ValidationError: If snoozing without a future snooze_until
    """
    now = as_utc(now)
    if not can_transition(alert.status, new_status):
        raise InvalidTransitionError(alert.status.value, new_status.value)

    snoozed_until = None
    if new_status == AlertStatus.SNOOZED:
        if snooze_until is None:
            raise ValidationError("snoozeUntil is required when snoozing an alert")
        snoozed_until = as_utc(snooze_until)
        if snoozed_until <= now:
            raise ValidationError(
                f"snoozeUntil must be in the future, got {snoozed_until.isoformat()}"
            )

    triggered_at = alert.triggered_at
    if new_status == AlertStatus.TRIGGERED and triggered_at is None:
        triggered_at = now

    return replace(
        alert,
        status=new_status,
        snoozed_until=snoozed_until,
        triggered_at=triggered_at,
    )
