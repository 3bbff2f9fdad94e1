"""
Stock metric snapshots fed to the screener.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from finboard.errors import ValidationError
from finboard.validation import coerce_number

_MARKET_CAP_RE = re.compile(r"^\$?\s*([0-9][0-9,]*(?:\.[0-9]+)?)\s*([KMBT]?)$", re.IGNORECASE)

# Multipliers into billions
_CAP_UNITS = {
    "": 1e-9,
    "K": 1e-6,
    "M": 1e-3,
    "B": 1.0,
    "T": 1000.0,
}


def parse_market_cap(value: Any) -> float:
    """
    Normalize a market cap to billions.

    Numbers are taken to already be in billions. Display strings such as
    "$2.16T", "$231B" or "850M" are converted.

    Raises:
        ValidationError: If the value can't be read as a market cap
    """
    if isinstance(value, str):
        match = _MARKET_CAP_RE.match(value.strip())
        if not match:
            raise ValidationError(f"Unreadable market cap: {value!r}")
        amount = float(match.group(1).replace(",", ""))
        return amount * _CAP_UNITS[match.group(2).upper()]

    number = coerce_number(value, "marketCap")
    if number is None:
        raise ValidationError("marketCap is required")
    return number


@dataclass(frozen=True)
class StockMetricSnapshot:
    """Point-in-time metrics for one symbol."""

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    market_cap_billions: float
    volume: int
    avg_volume_30d: float
    volume_ratio: float
    guidance_change: Optional[str]  # "raised", "lowered"
    revenue_growth: Optional[str]  # "increasing", "decreasing"
    recent_analyst_action: Optional[str]  # "upgrade", "downgrade"
    earnings_result: Optional[str]  # "beat", "miss"
    ath_distance_percent: float
    ma20: Optional[float] = None
    ma50: Optional[float] = None
    ma200: Optional[float] = None

    @staticmethod
    def compute_volume_ratio(volume: float, avg_volume_30d: float) -> float:
        if not avg_volume_30d:
            return 0.0
        return volume / avg_volume_30d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StockMetricSnapshot":
        """
        Parse a snapshot from a JSON object.

        Accepts camelCase keys, a "marketCap" display string in place of
        "marketCapBillions", and the "recentAction" / "athDistance" aliases.
        volumeRatio is derived from volume and avgVolume30d when missing.
        """
        try:
            symbol = str(data["symbol"]).upper()
        except KeyError:
            raise ValidationError("Snapshot is missing 'symbol'") from None

        def number(key: str, default: Any = None) -> Optional[float]:
            return coerce_number(data.get(key, default), f"{symbol}.{key}")

        if "marketCapBillions" in data:
            market_cap = parse_market_cap(data["marketCapBillions"])
        else:
            market_cap = parse_market_cap(data.get("marketCap"))

        volume = number("volume", 0) or 0.0
        avg_volume = number("avgVolume30d", 0) or 0.0
        volume_ratio = number("volumeRatio")
        if volume_ratio is None:
            volume_ratio = cls.compute_volume_ratio(volume, avg_volume)

        ath = data.get("athDistancePercent", data.get("athDistance"))

        return cls(
            symbol=symbol,
            name=str(data.get("name") or symbol),
            price=number("price", 0) or 0.0,
            change=number("change", 0) or 0.0,
            change_percent=number("changePercent", 0) or 0.0,
            market_cap_billions=market_cap,
            volume=int(volume),
            avg_volume_30d=avg_volume,
            volume_ratio=volume_ratio,
            guidance_change=data.get("guidanceChange"),
            revenue_growth=data.get("revenueGrowth"),
            recent_analyst_action=data.get("recentAnalystAction", data.get("recentAction")),
            earnings_result=data.get("earningsResult"),
            ath_distance_percent=coerce_number(ath, f"{symbol}.athDistancePercent") or 0.0,
            ma20=number("ma20"),
            ma50=number("ma50"),
            ma200=number("ma200"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
            "marketCapBillions": self.market_cap_billions,
            "volume": self.volume,
            "avgVolume30d": self.avg_volume_30d,
            "volumeRatio": self.volume_ratio,
            "guidanceChange": self.guidance_change,
            "revenueGrowth": self.revenue_growth,
            "recentAnalystAction": self.recent_analyst_action,
            "earningsResult": self.earnings_result,
            "athDistancePercent": self.ath_distance_percent,
            "ma20": self.ma20,
            "ma50": self.ma50,
            "ma200": self.ma200,
        }
