"""
Email SMTP notifier.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any

from finboard.database.models import NotificationKind
from .base import Notifier, NotificationResult


class EmailNotifier(Notifier):
    """Sends notifications via email SMTP."""

    channel = "email"

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: str,
        smtp_password: str,
        from_address: str,
        to_addresses: list[str],
    ):
        """
        Initialize email notifier.

        Args:
            smtp_host: SMTP server hostname
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            from_address: Sender email address
            to_addresses: List of recipient email addresses
        """
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_address = from_address
        self.to_addresses = to_addresses

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> NotificationResult:
        """Send notification via email."""
        try:
            message = self._create_message(kind, payload)

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)

            return NotificationResult(success=True, channel=self.channel)

        except smtplib.SMTPAuthenticationError as e:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"Authentication failed: {str(e)}",
            )
        except Exception as e:
            return NotificationResult(
                success=False,
                channel=self.channel,
                error=f"SMTP error: {str(e)}",
            )

    def _create_message(
        self, kind: NotificationKind, payload: dict[str, Any]
    ) -> MIMEMultipart:
        """Create email message."""
        message = MIMEMultipart("alternative")
        message["Subject"] = self._create_subject(kind, payload)
        message["From"] = self.from_address
        message["To"] = ", ".join(self.to_addresses)

        message.attach(MIMEText(self._create_text_body(payload), "plain"))
        message.attach(MIMEText(self._create_body(kind, payload), "html"))

        return message

    def _create_subject(self, kind: NotificationKind, payload: dict[str, Any]) -> str:
        """Create email subject."""
        kind_prefix = {
            NotificationKind.ALERT_TRIGGER: "[Triggered]",
            NotificationKind.NEWS: "[News]",
            NotificationKind.SYSTEM: "[Info]",
        }
        prefix = kind_prefix.get(kind, "[Alert]")
        title = payload.get("title") or payload.get("symbol", "")
        return f"{prefix} Finboard: {title}"

    def _create_text_body(self, payload: dict[str, Any]) -> str:
        """Create plain text email body."""
        lines = ["Finboard Notification", ""]
        if payload.get("symbol"):
            lines.append(f"Ticker: {payload['symbol']}")
        if payload.get("price") is not None:
            lines.append(f"Price: ${payload['price']:.2f}")
        lines.append("")
        lines.append(payload.get("body") or payload.get("title") or "")
        if payload.get("timestamp"):
            lines.append("")
            lines.append(f"Time: {payload['timestamp']}")
        return "\n".join(lines) + "\n"

    def _create_body(self, kind: NotificationKind, payload: dict[str, Any]) -> str:
        """Create HTML email body."""
        kind_color = {
            NotificationKind.ALERT_TRIGGER: "#FF0000",
            NotificationKind.NEWS: "#FFA500",
            NotificationKind.SYSTEM: "#3498DB",
        }
        color = kind_color.get(kind, "#3498DB")
        symbol = escape(str(payload.get("symbol") or ""))
        title = escape(str(payload.get("title") or symbol))
        message = escape(str(payload.get("body") or ""))

        price_html = ""
        if payload.get("price") is not None:
            price_html = f'<div class="price">Current Price: ${payload["price"]:.2f}</div>'

        chart_html = ""
        if symbol:
            chart_html = f"""
        <div class="chart-link">
            <a href="https://www.tradingview.com/symbols/{symbol}">
                View Chart on TradingView &rarr;
            </a>
        </div>"""

        return f"""
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; }}
        .alert-box {{
            border-left: 4px solid {color};
            padding: 15px;
            background-color: #f9f9f9;
            margin-bottom: 20px;
        }}
        .title {{ font-size: 24px; font-weight: bold; color: {color}; }}
        .price {{ font-size: 18px; color: #333; }}
        .message {{ margin: 15px 0; color: #555; }}
        .chart-link a {{ color: {color}; text-decoration: none; }}
    </style>
</head>
<body>
    <div class="alert-box">
        <div class="title">{title}</div>
        {price_html}
        <div class="message">{message}</div>{chart_html}
    </div>
</body>
</html>
"""
