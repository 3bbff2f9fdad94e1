"""
Integration tests.
End-to-end tests for the alert check from snapshot fetch to notification.
"""

from unittest.mock import Mock, patch

import pytest

from finboard.config import AppConfig
from finboard.database.connection import Database
from finboard.database.models import AlertStatus, NewAlert, NotificationKind
from finboard.main import FinboardApp, build_notifiers, open_app
from finboard.notifiers.discord import DiscordNotifier
from finboard.notifiers.email import EmailNotifier
from finboard.notifiers.inbox import InboxNotifier


@pytest.fixture
def fetcher(sample_snapshots):
    """Fetcher returning the sample snapshots for whatever is requested."""
    by_symbol = {s.symbol: s for s in sample_snapshots}
    mock = Mock()
    mock.fetch_snapshots.side_effect = lambda tickers: [
        by_symbol[t] for t in tickers if t in by_symbol
    ]
    return mock


@pytest.fixture
def mock_post():
    """Discord webhook accepting every message."""
    with patch("requests.post") as post:
        post.return_value.status_code = 204
        post.return_value.ok = True
        yield post


@pytest.fixture
def app(db: Database, fetcher, clock, mock_post, sample_discord_webhook_url):
    """App wired with the inbox and Discord, and a fixed clock."""
    config = AppConfig()
    config.notifications.discord.webhook_url = sample_discord_webhook_url
    finboard = FinboardApp(db=db, config=config, fetcher=fetcher)
    finboard.manager.clock = clock
    return finboard


def create(app: FinboardApp, symbol: str, alert_type: str, **kwargs):
    return app.manager.create_alert(
        NewAlert(symbol=symbol, title=f"{symbol} {alert_type}", alert_type=alert_type, **kwargs)
    )


class TestBuildNotifiers:
    """Test notifier wiring from configuration."""

    def test_inbox_only_by_default(self, db: Database):
        notifiers = build_notifiers(AppConfig(), db)
        assert [type(n) for n in notifiers] == [InboxNotifier]

    def test_all_channels(self, db: Database, sample_discord_webhook_url):
        config = AppConfig()
        config.notifications.discord.webhook_url = sample_discord_webhook_url
        config.notifications.email.smtp_user = "me@example.com"
        config.notifications.email.to_addresses = ["me@example.com"]

        notifiers = build_notifiers(config, db)

        assert [type(n) for n in notifiers] == [InboxNotifier, DiscordNotifier, EmailNotifier]
        assert notifiers[2].from_address == "me@example.com"

    def test_empty_webhook_disables_discord(self, db: Database):
        config = AppConfig()
        config.notifications.discord.webhook_url = ""
        assert [type(n) for n in build_notifiers(config, db)] == [InboxNotifier]


class TestRunCheck:
    """Test the complete check flow."""

    def test_fires_matching_alerts(self, app: FinboardApp, fetcher, mock_post):
        """Should fire only the alerts whose condition holds."""
        nvda = create(app, "NVDA", "price_above", target_value=800)
        amd = create(app, "AMD", "price_below", target_value=100)
        tsla = create(app, "TSLA", "volume_spike")
        mock_post.reset_mock()

        fired = app.run_check()

        assert sorted(fired) == sorted([nvda.id, tsla.id])
        assert app.alert_repo.get(nvda.id).status == AlertStatus.TRIGGERED
        assert app.alert_repo.get(tsla.id).status == AlertStatus.TRIGGERED
        assert app.alert_repo.get(amd.id).status == AlertStatus.ACTIVE
        assert mock_post.call_count == 2
        fetcher.fetch_snapshots.assert_called_once_with(["AMD", "NVDA", "TSLA"])

        trigger = app.trigger_repo.list_for_alert(nvda.id)[0]
        assert trigger.price == 875.30
        assert trigger.delivered_channels == ["inbox", "discord"]

    def test_trigger_message_mentions_here(self, app: FinboardApp, mock_post):
        create(app, "NVDA", "price_above", target_value=800)
        app.run_check()

        body = mock_post.call_args.kwargs["json"]
        assert body["content"] == "@here"
        assert "NVDA" in body["embeds"][0]["title"]

    def test_inbox_receives_trigger(self, app: FinboardApp):
        create(app, "NVDA", "price_above", target_value=800)
        app.run_check()

        kinds = [n.kind for n in app.notification_repo.list_recent()]
        assert kinds == [NotificationKind.ALERT_TRIGGER, NotificationKind.SYSTEM]

    def test_discord_outage_keeps_trigger(self, app: FinboardApp, mock_post):
        """Should still record the trigger when the webhook fails."""
        nvda = create(app, "NVDA", "price_above", target_value=800)
        mock_post.return_value.status_code = 500
        mock_post.return_value.ok = False
        mock_post.return_value.text = "Internal Server Error"

        app.run_check()

        assert app.alert_repo.get(nvda.id).status == AlertStatus.TRIGGERED
        trigger = app.trigger_repo.list_for_alert(nvda.id)[0]
        assert trigger.delivered_channels == ["inbox"]

    def test_does_not_refire(self, app: FinboardApp):
        create(app, "NVDA", "price_above", target_value=800)
        assert len(app.run_check()) == 1
        assert app.run_check() == []

    def test_dry_run(self, app: FinboardApp, mock_post):
        """Should report matches without changing anything."""
        nvda = create(app, "NVDA", "price_above", target_value=800)
        mock_post.reset_mock()

        fired = app.run_check(dry_run=True)

        assert fired == [nvda.id]
        assert app.alert_repo.get(nvda.id).status == AlertStatus.ACTIVE
        mock_post.assert_not_called()

    def test_wakes_snoozed_alerts(self, app: FinboardApp, clock):
        """Should evaluate alerts whose snooze ran out."""
        nvda = create(app, "NVDA", "price_above", target_value=800)
        app.manager.snooze(nvda.id, hours=1)

        assert app.run_check() == []
        clock.advance(hours=2)
        assert app.run_check() == [nvda.id]

    def test_settles_outcomes(self, app: FinboardApp, clock, fetcher, make_snapshot):
        """Should record the outcome once the evaluation window has passed."""
        nvda = create(app, "NVDA", "price_above", target_value=800)
        app.run_check()

        clock.advance(minutes=61)
        fetcher.fetch_snapshots.side_effect = None
        fetcher.fetch_snapshots.return_value = [make_snapshot("NVDA", price=919.065)]
        app.run_check()

        trigger = app.trigger_repo.list_for_alert(nvda.id)[0]
        assert trigger.outcome == "win"
        assert trigger.pnl_after_window == pytest.approx(5.0)

    def test_no_active_alerts(self, app: FinboardApp, fetcher):
        assert app.run_check() == []
        fetcher.fetch_snapshots.assert_not_called()


class TestOpenApp:
    """Test opening the app from a config path."""

    def test_missing_config_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        app = open_app(str(tmp_path / "missing.yaml"))
        try:
            assert app.config == AppConfig()
            assert (tmp_path / "data" / "finboard.db").exists()
        finally:
            app.db.close()

    def test_config_file(self, tmp_path):
        db_path = tmp_path / "custom.db"
        config_path = tmp_path / "config.yaml"
        config_path.write_text(f"database:\n  path: {db_path}\n  timeout_seconds: 1\n")

        app = open_app(str(config_path))
        try:
            assert app.db.db_path == str(db_path)
            assert app.db.timeout == 1
        finally:
            app.db.close()
