"""
Discord webhook notifier.
"""

import time
from typing import Any

import requests

from finboard.database.models import NotificationKind
from .base import Notifier, NotificationResult


class DiscordNotifier(Notifier):
    """Sends notifications via Discord webhook."""

    channel = "discord"

    # Discord embed colors
    COLOR_SYSTEM = 0x3498DB  # Blue
    COLOR_NEWS = 0xFFA500  # Orange
    COLOR_ALERT_TRIGGER = 0xFF0000  # Red

    def __init__(
        self,
        webhook_url: str,
        mention_on_trigger: bool = True,
        include_chart_link: bool = True,
    ):
        """
        Initialize Discord notifier.

        Args:
            webhook_url: Discord webhook URL
            mention_on_trigger: Whether to @here when an alert fires
            include_chart_link: Whether to include TradingView chart link
        """
        self.webhook_url = webhook_url
        self.mention_on_trigger = mention_on_trigger
        self.include_chart_link = include_chart_link

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> NotificationResult:
        """Send notification to Discord."""
        try:
            body = self._create_payload(kind, payload)
            response = self._send_webhook(body)

            if response.ok:
                return NotificationResult(success=True, channel=self.channel)
            else:
                return NotificationResult(
                    success=False,
                    channel=self.channel,
                    error=f"HTTP {response.status_code}: {response.text}",
                )

        except requests.exceptions.ConnectionError as e:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Connection error: {str(e)}",
            )
        except Exception as e:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=str(e),
            )

    def _send_webhook(self, payload: dict[str, Any]) -> requests.Response:
        """Send webhook with rate limit handling."""
        response = requests.post(
            self.webhook_url,
            json=payload,
            timeout=10,
        )

        # Handle rate limiting
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "1")
            time.sleep(float(retry_after))
            response = requests.post(
                self.webhook_url,
                json=payload,
                timeout=10,
            )

        return response

    def _create_payload(
        self, kind: NotificationKind, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Create Discord webhook payload."""
        body: dict[str, Any] = {
            "embeds": [self._create_embed(kind, payload)],
        }

        if self.mention_on_trigger and kind == NotificationKind.ALERT_TRIGGER:
            body["content"] = "@here"

        return body

    def _create_embed(
        self, kind: NotificationKind, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Create Discord embed for a notification."""
        symbol = payload.get("symbol")

        embed: dict[str, Any] = {
            "title": self._get_title(kind, payload),
            "description": payload.get("body") or "",
            "color": self._get_color(kind),
            "fields": [],
        }
        if payload.get("timestamp"):
            embed["timestamp"] = payload["timestamp"]

        if payload.get("price") is not None:
            embed["fields"].append({
                "name": "Current Price",
                "value": f"${payload['price']:.2f}",
                "inline": True,
            })

        alert = payload.get("alert") or {}
        if alert.get("alertType"):
            embed["fields"].append({
                "name": "Alert",
                "value": alert["alertType"].replace("_", " ").title(),
                "inline": True,
            })

        if self.include_chart_link and symbol:
            chart_url = f"https://www.tradingview.com/symbols/{symbol}"
            embed["fields"].append({
                "name": "Chart",
                "value": f"[TradingView]({chart_url})",
                "inline": True,
            })

        return embed

    def _get_color(self, kind: NotificationKind) -> int:
        """Get embed color based on notification kind."""
        if kind == NotificationKind.ALERT_TRIGGER:
            return self.COLOR_ALERT_TRIGGER
        elif kind == NotificationKind.NEWS:
            return self.COLOR_NEWS
        else:
            return self.COLOR_SYSTEM

    def _get_title(self, kind: NotificationKind, payload: dict[str, Any]) -> str:
        """Get embed title based on notification."""
        kind_emoji = {
            NotificationKind.ALERT_TRIGGER: "🚨",
            NotificationKind.NEWS: "📰",
            NotificationKind.SYSTEM: "ℹ️",
        }
        emoji = kind_emoji.get(kind, "🔔")
        title = payload.get("title") or f"{payload.get('symbol', '')} Alert".strip()
        return f"{emoji} {title}"
