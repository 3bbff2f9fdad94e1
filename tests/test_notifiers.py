"""
Notifier tests.
Tests for Discord, email and inbox notification delivery.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from finboard.database.connection import Database
from finboard.database.models import NotificationKind
from finboard.database.repository import NotificationRepository
from finboard.notifiers.base import NotificationResult, NotifierFactory
from finboard.notifiers.discord import DiscordNotifier
from finboard.notifiers.email import EmailNotifier
from finboard.notifiers.inbox import InboxNotifier


@pytest.fixture
def trigger_payload():
    """Payload the alert manager sends when an alert fires."""
    return {
        "title": "AAPL above 200",
        "body": "AAPL above 200 triggered",
        "symbol": "AAPL",
        "price": 201.5,
        "timestamp": "2024-03-01T14:30:00+00:00",
        "alert": {"id": "a1", "alertType": "price_above", "status": "triggered"},
    }


class TestNotificationResult:
    """Test NotificationResult model."""

    def test_success_result(self):
        result = NotificationResult(success=True, channel="discord")
        assert result.success is True
        assert result.error is None

    def test_failure_result(self):
        result = NotificationResult(success=False, channel="email", error="SMTP connection failed")
        assert result.success is False
        assert result.error == "SMTP connection failed"


class TestDiscordNotifier:
    """Test Discord webhook notifications."""

    @pytest.fixture
    def notifier(self, sample_discord_webhook_url):
        return DiscordNotifier(
            webhook_url=sample_discord_webhook_url,
            mention_on_trigger=True,
            include_chart_link=True,
        )

    def test_notify_success(self, notifier: DiscordNotifier, trigger_payload):
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 204
            mock_post.return_value.ok = True

            result = notifier.notify(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert result.success is True
        assert result.channel == "discord"
        mock_post.assert_called_once()

    def test_notify_http_failure(self, notifier: DiscordNotifier, trigger_payload):
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 400
            mock_post.return_value.ok = False
            mock_post.return_value.text = "Bad Request"

            result = notifier.notify(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert result.success is False
        assert "400" in result.error

    def test_notify_connection_error(self, notifier: DiscordNotifier, trigger_payload):
        with patch("requests.post", side_effect=requests.exceptions.ConnectionError("refused")):
            result = notifier.notify(NotificationKind.SYSTEM, trigger_payload)

        assert result.success is False
        assert "Connection error" in result.error

    def test_rate_limit_retry(self, notifier: DiscordNotifier, trigger_payload):
        """Should wait and retry once on HTTP 429."""
        limited = MagicMock(status_code=429, headers={"Retry-After": "0"})
        accepted = MagicMock(status_code=204, ok=True)

        with patch("requests.post", side_effect=[limited, accepted]) as mock_post:
            with patch("time.sleep") as mock_sleep:
                result = notifier.notify(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert result.success is True
        assert mock_post.call_count == 2
        mock_sleep.assert_called_once_with(0.0)

    def test_embed_for_trigger(self, notifier: DiscordNotifier, trigger_payload):
        embed = notifier._create_embed(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert "AAPL above 200" in embed["title"]
        assert embed["color"] == 0xFF0000
        field_names = [f["name"] for f in embed["fields"]]
        assert field_names == ["Current Price", "Alert", "Chart"]
        assert embed["fields"][0]["value"] == "$201.50"
        assert embed["fields"][1]["value"] == "Price Above"

    def test_embed_colors(self, notifier: DiscordNotifier, trigger_payload):
        assert notifier._create_embed(NotificationKind.SYSTEM, trigger_payload)["color"] == 0x3498DB
        assert notifier._create_embed(NotificationKind.NEWS, trigger_payload)["color"] == 0xFFA500

    def test_chart_link(self, notifier: DiscordNotifier, trigger_payload):
        embed = notifier._create_embed(NotificationKind.SYSTEM, trigger_payload)
        assert any(
            "tradingview.com/symbols/AAPL" in field["value"] for field in embed["fields"]
        )

    def test_no_chart_link(self, sample_discord_webhook_url, trigger_payload):
        notifier = DiscordNotifier(sample_discord_webhook_url, include_chart_link=False)
        embed = notifier._create_embed(NotificationKind.SYSTEM, trigger_payload)
        assert all(field["name"] != "Chart" for field in embed["fields"])

    def test_mention_only_on_trigger(self, notifier: DiscordNotifier, trigger_payload):
        """Should @here only when an alert fires."""
        assert notifier._create_payload(NotificationKind.ALERT_TRIGGER, trigger_payload)["content"] == "@here"
        assert "content" not in notifier._create_payload(NotificationKind.SYSTEM, trigger_payload)


class TestEmailNotifier:
    """Test email SMTP notifications."""

    @pytest.fixture
    def notifier(self, sample_smtp_config):
        return EmailNotifier(**sample_smtp_config)

    def test_notify_success(self, notifier: EmailNotifier, trigger_payload):
        with patch("smtplib.SMTP") as mock_smtp:
            server = mock_smtp.return_value.__enter__.return_value

            result = notifier.notify(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert result.success is True
        assert result.channel == "email"
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("test@gmail.com", "test-app-password")
        server.send_message.assert_called_once()

    def test_notify_failure(self, notifier: EmailNotifier, trigger_payload):
        with patch("smtplib.SMTP", side_effect=OSError("no route")):
            result = notifier.notify(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert result.success is False
        assert "no route" in result.error

    def test_subject(self, notifier: EmailNotifier, trigger_payload):
        subject = notifier._create_subject(NotificationKind.ALERT_TRIGGER, trigger_payload)
        assert subject == "[Triggered] Finboard: AAPL above 200"
        assert notifier._create_subject(NotificationKind.SYSTEM, trigger_payload).startswith("[Info]")

    def test_text_body(self, notifier: EmailNotifier, trigger_payload):
        body = notifier._create_text_body(trigger_payload)
        assert "Ticker: AAPL" in body
        assert "Price: $201.50" in body

    def test_html_body_escapes(self, notifier: EmailNotifier, trigger_payload):
        trigger_payload["body"] = "<script>alert(1)</script>"
        html = notifier._create_body(NotificationKind.ALERT_TRIGGER, trigger_payload)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_message_headers(self, notifier: EmailNotifier, trigger_payload):
        message = notifier._create_message(NotificationKind.ALERT_TRIGGER, trigger_payload)
        assert message["From"] == "alerts@finboard.app"
        assert message["To"] == "recipient@example.com"


class TestInboxNotifier:
    """Test in-app inbox notifications."""

    def test_writes_notification(self, db: Database, trigger_payload):
        result = InboxNotifier(db).notify(NotificationKind.ALERT_TRIGGER, trigger_payload)

        assert result.success is True
        stored = NotificationRepository(db).list_recent()
        assert len(stored) == 1
        assert stored[0].title == "AAPL above 200"
        assert stored[0].payload["alert"]["id"] == "a1"

    def test_storage_failure(self, db: Database, trigger_payload):
        db.connection.execute("DROP TABLE notifications")
        result = InboxNotifier(db).notify(NotificationKind.SYSTEM, trigger_payload)

        assert result.success is False
        assert result.channel == "inbox"


class TestNotifierFactory:
    """Test NotifierFactory."""

    def test_create_discord(self, sample_discord_webhook_url):
        notifier = NotifierFactory.create({"type": "discord", "webhook_url": sample_discord_webhook_url})
        assert isinstance(notifier, DiscordNotifier)
        assert notifier.webhook_url == sample_discord_webhook_url

    def test_create_email(self, sample_smtp_config):
        notifier = NotifierFactory.create({"type": "email", **sample_smtp_config})
        assert isinstance(notifier, EmailNotifier)

    def test_create_inbox(self, db: Database):
        assert isinstance(NotifierFactory.create({"type": "inbox"}, db=db), InboxNotifier)

    def test_inbox_needs_db(self):
        with pytest.raises(ValueError):
            NotifierFactory.create({"type": "inbox"})

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown notifier type"):
            NotifierFactory.create({"type": "pager"})
