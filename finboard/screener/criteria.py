"""
Screener criteria.

Every field is optional; a missing field places no constraint. Values are
validated when the criteria object is built so malformed numbers fail
early instead of silently matching nothing.
"""

from dataclasses import dataclass
from typing import Any, Optional

from finboard.errors import ValidationError
from finboard.validation import coerce_number

ANY = "any"

GUIDANCE_CHOICES = ("raised", "lowered")
REVENUE_GROWTH_CHOICES = ("increasing", "decreasing")
ANALYST_ACTION_CHOICES = ("upgrade", "downgrade")
EARNINGS_RESULT_CHOICES = ("beat", "miss")
MA_COMPARISONS = ("above", "below", "cross")

# JSON key -> attribute
_FIELD_NAMES = {
    "symbol": "symbol",
    "marketCapMin": "market_cap_min",
    "marketCapMax": "market_cap_max",
    "guidanceChange": "guidance_change",
    "revenueGrowth": "revenue_growth",
    "analystAction": "analyst_action",
    "earningsResult": "earnings_result",
    "volumeAnomaly": "volume_anomaly",
    "athDistance": "ath_distance",
}
_MA_KEYS = ("ma1Period", "ma2Period", "maComparison")


def _choice(value: Any, choices: tuple[str, ...], field_name: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or value not in choices + (ANY,):
        allowed = ", ".join(choices + (ANY,))
        raise ValidationError(f"{field_name} must be one of: {allowed}; got {value!r}")
    return value


def _period(value: Any, field_name: str) -> int:
    number = coerce_number(value, field_name)
    if number is None or number <= 0 or number != int(number):
        raise ValidationError(f"{field_name} must be a positive whole number, got {value!r}")
    return int(number)


@dataclass(frozen=True)
class MovingAverageSpec:
    """Comparison between two moving averages."""

    period1: int
    period2: int
    comparison: str

    def __post_init__(self):
        object.__setattr__(self, "period1", _period(self.period1, "ma1Period"))
        object.__setattr__(self, "period2", _period(self.period2, "ma2Period"))
        if self.comparison not in MA_COMPARISONS:
            raise ValidationError(
                f"maComparison must be one of: {', '.join(MA_COMPARISONS)}; "
                f"got {self.comparison!r}"
            )


@dataclass
class ScreenerCriteria:
    """Constraints applied by the screener."""

    symbol: Optional[str] = None
    market_cap_min: Optional[float] = None
    market_cap_max: Optional[float] = None
    guidance_change: Optional[str] = None
    revenue_growth: Optional[str] = None
    analyst_action: Optional[str] = None
    earnings_result: Optional[str] = None
    volume_anomaly: Optional[bool] = None
    moving_average: Optional[MovingAverageSpec] = None
    ath_distance: Optional[float] = None

    def __post_init__(self):
        if self.symbol is not None:
            if not isinstance(self.symbol, str):
                raise ValidationError(f"symbol must be text, got {self.symbol!r}")
            self.symbol = self.symbol.strip() or None

        self.market_cap_min = coerce_number(self.market_cap_min, "marketCapMin")
        self.market_cap_max = coerce_number(self.market_cap_max, "marketCapMax")
        if (
            self.market_cap_min is not None
            and self.market_cap_max is not None
            and self.market_cap_min > self.market_cap_max
        ):
            raise ValidationError(
                f"marketCapMin ({self.market_cap_min}) is greater than "
                f"marketCapMax ({self.market_cap_max})"
            )

        self.guidance_change = _choice(self.guidance_change, GUIDANCE_CHOICES, "guidanceChange")
        self.revenue_growth = _choice(
            self.revenue_growth, REVENUE_GROWTH_CHOICES, "revenueGrowth"
        )
        self.analyst_action = _choice(
            self.analyst_action, ANALYST_ACTION_CHOICES, "analystAction"
        )
        self.earnings_result = _choice(
            self.earnings_result, EARNINGS_RESULT_CHOICES, "earningsResult"
        )

        if isinstance(self.volume_anomaly, str):
            lowered = self.volume_anomaly.strip().lower()
            if lowered not in ("true", "false"):
                raise ValidationError(
                    f"volumeAnomaly must be true or false, got {self.volume_anomaly!r}"
                )
            self.volume_anomaly = lowered == "true"
        elif self.volume_anomaly is not None and not isinstance(self.volume_anomaly, bool):
            raise ValidationError(
                f"volumeAnomaly must be true or false, got {self.volume_anomaly!r}"
            )

        self.ath_distance = coerce_number(self.ath_distance, "athDistance")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScreenerCriteria":
        """
        Build criteria from a JSON object with camelCase keys.

        Raises:
            ValidationError: On unknown keys or invalid values
        """
        if not isinstance(data, dict):
            raise ValidationError("Screener criteria must be a JSON object")

        unknown = set(data) - set(_FIELD_NAMES) - set(_MA_KEYS)
        if unknown:
            raise ValidationError(f"Unknown screener criteria: {', '.join(sorted(unknown))}")

        kwargs = {attr: data[key] for key, attr in _FIELD_NAMES.items() if key in data}

        ma_given = [key for key in _MA_KEYS if data.get(key) not in (None, "")]
        if ma_given:
            missing = [key for key in _MA_KEYS if key not in ma_given]
            if missing:
                raise ValidationError(
                    f"Moving-average comparison needs {', '.join(missing)}"
                )
            kwargs["moving_average"] = MovingAverageSpec(
                period1=data["ma1Period"],
                period2=data["ma2Period"],
                comparison=data["maComparison"],
            )

        return cls(**kwargs)

    def is_empty(self) -> bool:
        """True when no field constrains the result."""
        return not any(
            (
                self.symbol,
                self.market_cap_min is not None,
                self.market_cap_max is not None,
                self.guidance_change not in (None, ANY),
                self.revenue_growth not in (None, ANY),
                self.analyst_action not in (None, ANY),
                self.earnings_result not in (None, ANY),
                self.volume_anomaly,
                self.ath_distance is not None,
            )
        )
