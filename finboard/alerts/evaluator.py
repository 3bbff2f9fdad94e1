"""
Alert evaluation against stock metric snapshots.
"""

import logging
from typing import Optional

from finboard.database.models import Alert, AlertStatus, AlertType
from finboard.screener.pipeline import VOLUME_ANOMALY_RATIO
from finboard.screener.snapshot import StockMetricSnapshot

logger = logging.getLogger(__name__)

# Types that need data a snapshot doesn't carry (indicators, news, earnings calendar)
UNEVALUATED_TYPES = frozenset(
    {AlertType.TECHNICAL_INDICATOR, AlertType.NEWS_EVENT, AlertType.EARNINGS}
)


class AlertEvaluator:
    """Decides whether active alerts have fired."""

    def should_trigger(self, alert: Alert, snapshot: StockMetricSnapshot) -> bool:
        """
        Check if an alert condition is met by a snapshot.

        Args:
            alert: Alert to evaluate
            snapshot: Current metrics for the alert's symbol

        Returns:
            True if the alert should fire
        """
        if alert.status != AlertStatus.ACTIVE:
            return False

        alert_type = alert.alert_type

        if alert_type == AlertType.PRICE_ABOVE:
            return snapshot.price >= alert.target_value

        elif alert_type == AlertType.PRICE_BELOW:
            return snapshot.price <= alert.target_value

        elif alert_type == AlertType.PERCENT_CHANGE:
            return abs(snapshot.change_percent) >= abs(alert.percentage_value)

        elif alert_type == AlertType.VOLUME_SPIKE:
            return snapshot.volume_ratio > VOLUME_ANOMALY_RATIO

        elif alert_type in UNEVALUATED_TYPES:
            return False

        else:
            logger.warning(f"Unknown alert type: {alert_type}")
            return False

    def evaluate(
        self,
        alerts: list[Alert],
        snapshots: dict[str, StockMetricSnapshot],
    ) -> list[tuple[Alert, StockMetricSnapshot]]:
        """
        Evaluate alerts against snapshots keyed by symbol.

        Returns:
            (alert, snapshot) pairs for every alert that should fire
        """
        fired = []
        for alert in alerts:
            snapshot: Optional[StockMetricSnapshot] = snapshots.get(alert.symbol)
            if snapshot is None:
                logger.debug(f"No snapshot for {alert.symbol}, skipping alert {alert.id}")
                continue
            if self.should_trigger(alert, snapshot):
                fired.append((alert, snapshot))
        return fired
