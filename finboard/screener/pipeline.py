"""
Screener filter pipeline.

Each predicate is a pure function of (snapshot, criteria) and is only
applied when its criteria field is set. The result keeps input order.
"""

import logging
from typing import Callable, Iterable

from .criteria import ANY, ScreenerCriteria
from .snapshot import StockMetricSnapshot

logger = logging.getLogger(__name__)

VOLUME_ANOMALY_RATIO = 1.5

Predicate = Callable[[StockMetricSnapshot, ScreenerCriteria], bool]


def matches_symbol(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    """Case-insensitive substring of symbol or name."""
    needle = criteria.symbol.lower()
    return needle in snapshot.symbol.lower() or needle in snapshot.name.lower()


def matches_market_cap(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    """Inclusive market cap bounds, in billions."""
    cap = snapshot.market_cap_billions
    if criteria.market_cap_min is not None and cap < criteria.market_cap_min:
        return False
    if criteria.market_cap_max is not None and cap > criteria.market_cap_max:
        return False
    return True


def matches_guidance(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    return snapshot.guidance_change == criteria.guidance_change


def matches_revenue_growth(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    return snapshot.revenue_growth == criteria.revenue_growth


def matches_analyst_action(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    return snapshot.recent_analyst_action == criteria.analyst_action


def matches_earnings_result(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    return snapshot.earnings_result == criteria.earnings_result


def matches_volume_anomaly(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    return snapshot.volume_ratio > VOLUME_ANOMALY_RATIO


def matches_ath_distance(snapshot: StockMetricSnapshot, criteria: ScreenerCriteria) -> bool:
    """At least the given distance from the all-time high, in either direction."""
    return abs(snapshot.ath_distance_percent) >= abs(criteria.ath_distance)


def _is_set(value) -> bool:
    return value is not None and value != ANY


class ScreenerPipeline:
    """Filters snapshots down to those matching every given constraint."""

    def __init__(self, criteria: ScreenerCriteria):
        self.criteria = criteria
        self.predicates = self._build_predicates(criteria)

        if criteria.moving_average is not None:
            ma = criteria.moving_average
            # TODO: apply once the comparison semantics for arbitrary periods are settled
            logger.warning(
                f"Moving-average comparison ma{ma.period1} {ma.comparison} "
                f"ma{ma.period2} is not applied"
            )

    @staticmethod
    def _build_predicates(criteria: ScreenerCriteria) -> list[tuple[str, Predicate]]:
        predicates: list[tuple[str, Predicate]] = []
        if criteria.symbol:
            predicates.append(("symbol", matches_symbol))
        if criteria.market_cap_min is not None or criteria.market_cap_max is not None:
            predicates.append(("market_cap", matches_market_cap))
        if _is_set(criteria.guidance_change):
            predicates.append(("guidance_change", matches_guidance))
        if _is_set(criteria.revenue_growth):
            predicates.append(("revenue_growth", matches_revenue_growth))
        if _is_set(criteria.analyst_action):
            predicates.append(("analyst_action", matches_analyst_action))
        if _is_set(criteria.earnings_result):
            predicates.append(("earnings_result", matches_earnings_result))
        if criteria.volume_anomaly:
            predicates.append(("volume_anomaly", matches_volume_anomaly))
        if criteria.ath_distance is not None:
            predicates.append(("ath_distance", matches_ath_distance))
        return predicates

    @property
    def active_filters(self) -> list[str]:
        """Names of the predicates this pipeline applies."""
        return [name for name, _ in self.predicates]

    def matches(self, snapshot: StockMetricSnapshot) -> bool:
        return all(predicate(snapshot, self.criteria) for _, predicate in self.predicates)

    def run(self, snapshots: Iterable[StockMetricSnapshot]) -> list[StockMetricSnapshot]:
        """Return the matching snapshots in their input order."""
        results = [snapshot for snapshot in snapshots if self.matches(snapshot)]
        logger.debug(f"Screener kept {len(results)} snapshot(s) using {self.active_filters}")
        return results


def screen(
    snapshots: Iterable[StockMetricSnapshot], criteria: ScreenerCriteria
) -> list[StockMetricSnapshot]:
    """Filter snapshots with the given criteria."""
    return ScreenerPipeline(criteria).run(snapshots)
