"""
Data models for Finboard.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional


class AlertType(str, Enum):
    """Condition an alert watches for."""

    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PERCENT_CHANGE = "percent_change"
    VOLUME_SPIKE = "volume_spike"
    TECHNICAL_INDICATOR = "technical_indicator"
    NEWS_EVENT = "news_event"
    EARNINGS = "earnings"


class AlertStatus(str, Enum):
    """Lifecycle state of an alert."""

    ACTIVE = "active"
    TRIGGERED = "triggered"
    SNOOZED = "snoozed"
    CANCELLED = "cancelled"


class Timeframe(str, Enum):
    """Evaluation timeframe of an alert."""

    ONE_MIN = "1min"
    FIVE_MIN = "5min"
    FIFTEEN_MIN = "15min"
    THIRTY_MIN = "30min"
    ONE_HOUR = "1hr"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class AlertSource(str, Enum):
    """Who created the alert."""

    USER = "user"
    AI = "ai"
    COMMUNITY = "community"


class NotificationKind(str, Enum):
    """Category of a user-visible notification."""

    ALERT_TRIGGER = "alert_trigger"
    SYSTEM = "system"
    NEWS = "news"


PRICE_THRESHOLD_TYPES = frozenset({AlertType.PRICE_ABOVE, AlertType.PRICE_BELOW})


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO-8601, passing None through."""
    return value.isoformat() if value is not None else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    # fromisoformat() before 3.11 rejects the "Z" suffix
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


@dataclass
class NewAlert:
    """Unvalidated alert creation input."""

    symbol: str
    title: str
    alert_type: Any = AlertType.PRICE_ABOVE
    description: Optional[str] = None
    target_value: Any = None
    percentage_value: Any = None
    timeframe: Any = Timeframe.DAILY
    source: Any = AlertSource.USER

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NewAlert":
        """Build creation input from a JSON request body."""
        return cls(
            symbol=data.get("symbol") or "",
            title=data.get("title") or "",
            alert_type=data.get("alertType", AlertType.PRICE_ABOVE),
            description=data.get("description"),
            target_value=data.get("targetValue"),
            percentage_value=data.get("percentageValue"),
            timeframe=data.get("timeframe") or Timeframe.DAILY,
            source=data.get("source") or AlertSource.USER,
        )


@dataclass
class Alert:
    """A watch condition on a ticker."""

    symbol: str
    alert_type: AlertType
    title: str
    status: AlertStatus = AlertStatus.ACTIVE
    description: Optional[str] = None
    target_value: Optional[float] = None
    percentage_value: Optional[float] = None
    timeframe: Timeframe = Timeframe.DAILY
    source: AlertSource = AlertSource.USER
    snoozed_until: Optional[datetime] = None
    triggered_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON contract."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "alertType": self.alert_type.value,
            "status": self.status.value,
            "title": self.title,
            "description": self.description,
            "targetValue": self.target_value,
            "percentageValue": self.percentage_value,
            "timeframe": self.timeframe.value,
            "source": self.source.value,
            "snoozedUntil": format_timestamp(self.snoozed_until),
            "triggeredAt": format_timestamp(self.triggered_at),
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Parse a record produced by to_dict()."""
        return cls(
            id=data.get("id"),
            symbol=data["symbol"],
            alert_type=AlertType(data["alertType"]),
            status=AlertStatus(data.get("status", AlertStatus.ACTIVE.value)),
            title=data["title"],
            description=data.get("description"),
            target_value=data.get("targetValue"),
            percentage_value=data.get("percentageValue"),
            timeframe=Timeframe(data.get("timeframe", Timeframe.DAILY.value)),
            source=AlertSource(data.get("source", AlertSource.USER.value)),
            snoozed_until=parse_timestamp(data.get("snoozedUntil")),
            triggered_at=parse_timestamp(data.get("triggeredAt")),
            created_at=parse_timestamp(data["createdAt"]),
        )


@dataclass
class AlertTrigger:
    """Record of one alert firing and its outcome after the evaluation window."""

    alert_id: str
    ticker: str
    price: Optional[float]
    triggered_at: datetime = field(default_factory=utcnow)
    evaluation_window_minutes: int = 60
    outcome: Optional[str] = None  # "win", "loss", "flat"
    pnl_after_window: Optional[float] = None
    delivered_channels: list[str] = field(default_factory=list)
    dismissed: bool = False
    acknowledged_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def window_ends_at(self) -> datetime:
        return self.triggered_at + timedelta(minutes=self.evaluation_window_minutes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "alertId": self.alert_id,
            "ticker": self.ticker,
            "price": self.price,
            "triggeredAt": format_timestamp(self.triggered_at),
            "evaluationWindowMinutes": self.evaluation_window_minutes,
            "outcome": self.outcome,
            "pnlAfterWindow": self.pnl_after_window,
            "deliveredChannels": list(self.delivered_channels),
            "dismissed": self.dismissed,
            "acknowledgedAt": format_timestamp(self.acknowledged_at),
        }


@dataclass
class Notification:
    """In-app notification shown in the user's inbox."""

    kind: NotificationKind
    title: Optional[str] = None
    body: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    read_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


@dataclass
class WatchlistItem:
    """Symbol tracked in a watchlist."""

    watchlist_id: int
    symbol: str
    company_name: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None
    added_at: Optional[datetime] = None


@dataclass
class Watchlist:
    """Named list of symbols."""

    name: str
    description: Optional[str] = None
    is_default: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    items: list[WatchlistItem] = field(default_factory=list)
