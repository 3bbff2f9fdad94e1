"""
Yahoo Finance snapshot fetcher.
"""

import logging
from typing import Any, Optional

import pandas as pd
import yfinance as yf

from finboard.screener.snapshot import StockMetricSnapshot

logger = logging.getLogger(__name__)

_ANALYST_ACTIONS = {"up": "upgrade", "down": "downgrade"}


def _clean(value: Any) -> Optional[float]:
    """Convert pandas/numpy scalars to float, NaN to None."""
    if value is None or pd.isna(value):
        return None
    return float(value)


class SnapshotFetcher:
    """Builds stock metric snapshots from Yahoo Finance."""

    def __init__(self, history_period: str = "max"):
        """
        Args:
            history_period: yfinance period used for moving averages and the
                all-time high
        """
        self.history_period = history_period

    def get_snapshot(self, ticker: str) -> StockMetricSnapshot:
        """
        Fetch a snapshot for one symbol.

        Args:
            ticker: Stock symbol (e.g., "AAPL")

        Returns:
            StockMetricSnapshot with current metrics

        Raises:
            ValueError: If symbol is invalid or data unavailable
        """
        ticker = ticker.upper()
        stock = yf.Ticker(ticker)
        info = stock.info or {}

        # Use regularMarketPrice if available, otherwise fall back to previousClose
        price = info.get("regularMarketPrice") or info.get("currentPrice")
        if price is None:
            price = info.get("previousClose")
        if price is None:
            raise ValueError(f"Invalid symbol or no data available: {ticker}")

        hist = stock.history(period=self.history_period)
        if hist.empty:
            raise ValueError(f"No historical data available: {ticker}")

        closes = hist["Close"]
        volumes = hist["Volume"]

        previous_close = info.get("previousClose", price)
        change = price - previous_close
        change_percent = (change / previous_close * 100) if previous_close else 0.0

        volume = int(info.get("volume") or volumes.iloc[-1])
        avg_volume_30d = _clean(volumes.tail(30).mean()) or 0.0

        all_time_high = _clean(closes.max())
        ath_distance = 0.0
        if all_time_high:
            ath_distance = (price - all_time_high) / all_time_high * 100

        return StockMetricSnapshot(
            symbol=ticker,
            name=info.get("shortName") or info.get("longName") or ticker,
            price=float(price),
            change=float(change),
            change_percent=float(change_percent),
            market_cap_billions=(info.get("marketCap") or 0) / 1e9,
            volume=volume,
            avg_volume_30d=avg_volume_30d,
            volume_ratio=StockMetricSnapshot.compute_volume_ratio(volume, avg_volume_30d),
            # No public source for guidance revisions
            guidance_change=None,
            revenue_growth=self._revenue_growth(info),
            recent_analyst_action=self._analyst_action(stock),
            earnings_result=self._earnings_result(stock),
            ath_distance_percent=ath_distance,
            ma20=self._moving_average(closes, 20),
            ma50=self._moving_average(closes, 50),
            ma200=self._moving_average(closes, 200),
        )

    def fetch_snapshots(self, tickers: list[str]) -> list[StockMetricSnapshot]:
        """
        Fetch snapshots for multiple symbols, skipping ones without data.

        Args:
            tickers: List of stock symbols

        Returns:
            Snapshots in the order of the given tickers
        """
        results = []
        for ticker in tickers:
            try:
                results.append(self.get_snapshot(ticker))
            except ValueError as e:
                logger.warning(f"Skipping {ticker}: {e}")
                continue
            except Exception as e:
                logger.error(f"Error fetching {ticker}: {e}")
                continue
        return results

    @staticmethod
    def _moving_average(closes: pd.Series, period: int) -> Optional[float]:
        if len(closes) < period:
            return None
        return _clean(closes.rolling(period).mean().iloc[-1])

    @staticmethod
    def _revenue_growth(info: dict[str, Any]) -> Optional[str]:
        growth = info.get("revenueGrowth")
        if growth is None:
            return None
        return "increasing" if growth >= 0 else "decreasing"

    @staticmethod
    def _analyst_action(stock: yf.Ticker) -> Optional[str]:
        """Most recent analyst rating change, if it was an upgrade or downgrade."""
        try:
            actions = stock.upgrades_downgrades
        except Exception as e:
            logger.debug(f"No analyst actions for {stock.ticker}: {e}")
            return None
        if actions is None or actions.empty or "Action" not in actions:
            return None
        latest = actions.sort_index(ascending=False).iloc[0]
        return _ANALYST_ACTIONS.get(str(latest["Action"]).lower())

    @staticmethod
    def _earnings_result(stock: yf.Ticker) -> Optional[str]:
        """Whether the last reported EPS beat or missed the estimate."""
        try:
            dates = stock.earnings_dates
        except Exception as e:
            logger.debug(f"No earnings dates for {stock.ticker}: {e}")
            return None
        if dates is None or dates.empty or "Reported EPS" not in dates:
            return None
        reported = dates.dropna(subset=["Reported EPS", "EPS Estimate"])
        if reported.empty:
            return None
        latest = reported.sort_index(ascending=False).iloc[0]
        actual = _clean(latest["Reported EPS"])
        estimate = _clean(latest["EPS Estimate"])
        if actual > estimate:
            return "beat"
        if actual < estimate:
            return "miss"
        return None
