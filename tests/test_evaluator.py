"""
Alert evaluator tests.
"""

import pytest

from finboard.alerts.evaluator import AlertEvaluator
from finboard.database.models import Alert, AlertStatus, AlertType


def make_alert(alert_type: AlertType, symbol: str = "AAPL", **kwargs) -> Alert:
    return Alert(
        id=f"{symbol}-{alert_type.value}",
        symbol=symbol,
        alert_type=alert_type,
        title=f"{symbol} {alert_type.value}",
        **kwargs,
    )


class TestShouldTrigger:
    """Test individual alert conditions."""

    @pytest.fixture
    def evaluator(self):
        return AlertEvaluator()

    @pytest.mark.parametrize("price,expected", [(199.99, False), (200.0, True), (210.0, True)])
    def test_price_above(self, evaluator, make_snapshot, price, expected):
        alert = make_alert(AlertType.PRICE_ABOVE, target_value=200.0)
        assert evaluator.should_trigger(alert, make_snapshot(price=price)) is expected

    @pytest.mark.parametrize("price,expected", [(150.01, False), (150.0, True), (140.0, True)])
    def test_price_below(self, evaluator, make_snapshot, price, expected):
        alert = make_alert(AlertType.PRICE_BELOW, target_value=150.0)
        assert evaluator.should_trigger(alert, make_snapshot(price=price)) is expected

    @pytest.mark.parametrize("change,expected", [(-5.5, True), (5.0, True), (4.9, False)])
    def test_percent_change_either_direction(self, evaluator, make_snapshot, change, expected):
        alert = make_alert(AlertType.PERCENT_CHANGE, percentage_value=-5.0)
        snapshot = make_snapshot(change_percent=change)
        assert evaluator.should_trigger(alert, snapshot) is expected

    def test_volume_spike(self, evaluator, make_snapshot):
        alert = make_alert(AlertType.VOLUME_SPIKE)
        assert evaluator.should_trigger(alert, make_snapshot(volume_ratio=1.96))
        assert not evaluator.should_trigger(alert, make_snapshot(volume_ratio=1.5))

    @pytest.mark.parametrize(
        "alert_type",
        [AlertType.TECHNICAL_INDICATOR, AlertType.NEWS_EVENT, AlertType.EARNINGS],
    )
    def test_unevaluated_types(self, evaluator, make_snapshot, alert_type):
        """Should never fire types a snapshot can't answer."""
        snapshot = make_snapshot(volume_ratio=5.0, change_percent=20.0)
        assert not evaluator.should_trigger(make_alert(alert_type), snapshot)

    @pytest.mark.parametrize(
        "status", [AlertStatus.TRIGGERED, AlertStatus.SNOOZED, AlertStatus.CANCELLED]
    )
    def test_only_active_alerts(self, evaluator, make_snapshot, status):
        alert = make_alert(AlertType.PRICE_ABOVE, target_value=1.0, status=status)
        assert not evaluator.should_trigger(alert, make_snapshot(price=100.0))


class TestEvaluate:
    """Test evaluating many alerts at once."""

    def test_pairs_alerts_with_snapshots(self, make_snapshot):
        above = make_alert(AlertType.PRICE_ABOVE, symbol="NVDA", target_value=800.0)
        below = make_alert(AlertType.PRICE_BELOW, symbol="AMD", target_value=100.0)
        orphan = make_alert(AlertType.VOLUME_SPIKE, symbol="IBM")
        snapshots = {
            "NVDA": make_snapshot("NVDA", price=875.30),
            "AMD": make_snapshot("AMD", price=142.85),
        }

        fired = AlertEvaluator().evaluate([above, below, orphan], snapshots)

        assert [(alert.id, snap.symbol) for alert, snap in fired] == [(above.id, "NVDA")]
