"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone

import pytest

from finboard.database.connection import Database
from finboard.screener.snapshot import StockMetricSnapshot


class FakeClock:
    """Controllable clock passed to the alert manager."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock fixed at 2024-03-01 14:30 UTC."""
    return FakeClock(datetime(2024, 3, 1, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def db():
    """Fresh in-memory database with schema."""
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def sample_snapshot_dicts():
    """Screener rows as they arrive from the dashboard."""
    return [
        {
            "symbol": "NVDA", "name": "NVIDIA Corporation", "price": 875.30,
            "change": 12.45, "changePercent": 1.44, "marketCap": "$2.16T",
            "volume": 45230000, "avgVolume30d": 28500000, "volumeRatio": 1.59,
            "guidanceChange": "raised", "revenueGrowth": "increasing",
            "recentAction": "upgrade", "earningsResult": "beat", "athDistance": -8.2,
            "ma20": 840.50, "ma50": 780.25, "ma200": 650.75,
        },
        {
            "symbol": "AMD", "name": "Advanced Micro Devices", "price": 142.85,
            "change": -2.15, "changePercent": -1.48, "marketCap": "$231B",
            "volume": 52150000, "avgVolume30d": 35200000, "volumeRatio": 1.48,
            "guidanceChange": None, "revenueGrowth": "increasing",
            "recentAction": "downgrade", "earningsResult": "miss", "athDistance": -35.6,
            "ma20": 138.75, "ma50": 125.30, "ma200": 110.45,
        },
        {
            "symbol": "TSLA", "name": "Tesla Inc", "price": 248.50,
            "change": 8.75, "changePercent": 3.65, "marketCap": "$792B",
            "volume": 89450000, "avgVolume30d": 45600000, "volumeRatio": 1.96,
            "guidanceChange": "raised", "revenueGrowth": "decreasing",
            "recentAction": "upgrade", "earningsResult": "beat", "athDistance": -67.8,
            "ma20": 235.60, "ma50": 220.15, "ma200": 185.90,
        },
        {
            "symbol": "GOOGL", "name": "Alphabet Inc", "price": 168.75,
            "change": 3.20, "changePercent": 1.93, "marketCap": "$2.08T",
            "volume": 28750000, "avgVolume30d": 22100000, "volumeRatio": 1.30,
            "guidanceChange": None, "revenueGrowth": "increasing",
            "recentAction": None, "earningsResult": "beat", "athDistance": -12.3,
            "ma20": 162.40, "ma50": 155.85, "ma200": 145.20,
        },
        {
            "symbol": "META", "name": "Meta Platforms Inc", "price": 528.90,
            "change": -8.45, "changePercent": -1.57, "marketCap": "$1.34T",
            "volume": 19850000, "avgVolume30d": 15600000, "volumeRatio": 1.27,
            "guidanceChange": "lowered", "revenueGrowth": "increasing",
            "recentAction": "downgrade", "earningsResult": "miss", "athDistance": -21.4,
            "ma20": 515.30, "ma50": 490.75, "ma200": 445.60,
        },
    ]


@pytest.fixture
def sample_snapshots(sample_snapshot_dicts):
    """Parsed screener snapshots: NVDA, AMD, TSLA, GOOGL, META."""
    return [StockMetricSnapshot.from_dict(d) for d in sample_snapshot_dicts]


def _make_snapshot(symbol: str = "AAPL", **overrides) -> StockMetricSnapshot:
    values = dict(
        symbol=symbol,
        name=f"{symbol} Inc.",
        price=100.0,
        change=0.0,
        change_percent=0.0,
        market_cap_billions=500.0,
        volume=1_000_000,
        avg_volume_30d=1_000_000.0,
        volume_ratio=1.0,
        guidance_change=None,
        revenue_growth="increasing",
        recent_analyst_action=None,
        earnings_result=None,
        ath_distance_percent=-5.0,
    )
    values.update(overrides)
    return StockMetricSnapshot(**values)


@pytest.fixture
def make_snapshot():
    """Factory for snapshots with neutral defaults."""
    return _make_snapshot


@pytest.fixture
def sample_stock_info():
    """Sample Yahoo Finance stock info response."""
    return {
        "regularMarketPrice": 175.50,
        "previousClose": 173.25,
        "open": 174.00,
        "dayHigh": 176.00,
        "dayLow": 173.50,
        "volume": 50_000_000,
        "marketCap": 2_800_000_000_000,
        "shortName": "Apple Inc.",
        "revenueGrowth": 0.06,
    }


@pytest.fixture
def sample_discord_webhook_url():
    """Sample Discord webhook URL for testing."""
    return "https://discord.com/api/webhooks/123456789/abcdefghijklmnop"


@pytest.fixture
def sample_smtp_config():
    """Sample SMTP configuration for testing."""
    return {
        "smtp_host": "smtp.gmail.com",
        "smtp_port": 587,
        "smtp_user": "test@gmail.com",
        "smtp_password": "test-app-password",
        "from_address": "alerts@finboard.app",
        "to_addresses": ["recipient@example.com"],
    }
