"""
Main application entry point.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from finboard.alerts.evaluator import AlertEvaluator
from finboard.alerts.manager import AlertManager
from finboard.config import AppConfig, load_config
from finboard.data.fetcher import SnapshotFetcher
from finboard.database.connection import Database
from finboard.database.repository import (
    AlertRepository,
    AlertTriggerRepository,
    NotificationRepository,
    WatchlistRepository,
)
from finboard.errors import ConflictError, FinboardError, InvalidTransitionError
from finboard.notifiers.base import Notifier, NotifierFactory

logger = logging.getLogger(__name__)


def build_notifiers(config: AppConfig, db: Database) -> list[Notifier]:
    """Create the notifiers enabled in configuration."""
    notifiers: list[Notifier] = []
    settings = config.notifications

    if settings.inbox:
        notifiers.append(NotifierFactory.create({"type": "inbox"}, db=db))

    discord = settings.discord
    if discord.webhook_url:
        notifiers.append(
            NotifierFactory.create(
                {
                    "type": "discord",
                    "webhook_url": discord.webhook_url,
                    "mention_on_trigger": discord.mention_on_trigger,
                    "include_chart_link": discord.include_chart_link,
                }
            )
        )

    email = settings.email
    if email.smtp_user and email.to_addresses:
        notifiers.append(
            NotifierFactory.create(
                {
                    "type": "email",
                    "smtp_host": email.smtp_host,
                    "smtp_port": email.smtp_port,
                    "smtp_user": email.smtp_user,
                    "smtp_password": email.smtp_password or "",
                    "from_address": email.from_address or email.smtp_user,
                    "to_addresses": email.to_addresses,
                }
            )
        )

    return notifiers


class FinboardApp:
    """Main Finboard application."""

    def __init__(
        self,
        db: Database,
        config: Optional[AppConfig] = None,
        notifiers: Optional[list[Notifier]] = None,
        fetcher: Optional[SnapshotFetcher] = None,
    ):
        """
        Initialize Finboard app.

        Args:
            db: Database instance
            config: Application configuration, defaults when omitted
            notifiers: Overrides the notifiers built from configuration
            fetcher: Overrides the Yahoo Finance snapshot fetcher
        """
        self.db = db
        self.config = config or AppConfig()

        # Initialize repositories
        self.alert_repo = AlertRepository(db)
        self.trigger_repo = AlertTriggerRepository(db)
        self.notification_repo = NotificationRepository(db)
        self.watchlist_repo = WatchlistRepository(db)

        # Initialize services
        if notifiers is None:
            notifiers = build_notifiers(self.config, db)
        self.manager = AlertManager(
            store=self.alert_repo,
            trigger_store=self.trigger_repo,
            notifiers=notifiers,
            default_snooze_hours=self.config.alerts.default_snooze_hours,
            evaluation_window_minutes=self.config.alerts.evaluation_window_minutes,
        )
        self.fetcher = fetcher or SnapshotFetcher(
            history_period=self.config.data_source.history_period
        )
        self.evaluator = AlertEvaluator()

    def run_check(self, dry_run: bool = False) -> list[str]:
        """
        Evaluate all active alerts against fresh snapshots.

        Wakes expired snoozes first and settles trigger outcomes last.

        Returns:
            Ids of the alerts that fired (or would fire, in dry-run mode)
        """
        if not dry_run:
            self.manager.wake_expired_snoozes()

        active = self.manager.list_active()
        fired: list[str] = []

        if active:
            symbols = sorted({alert.symbol for alert in active})
            snapshots = {s.symbol: s for s in self.fetcher.fetch_snapshots(symbols)}

            for alert, snapshot in self.evaluator.evaluate(active, snapshots):
                if dry_run:
                    logger.info(f"[dry run] {alert.symbol} alert {alert.id} would fire")
                    fired.append(alert.id)
                    continue
                try:
                    self.manager.fire(alert.id, price=snapshot.price)
                    fired.append(alert.id)
                except (ConflictError, InvalidTransitionError) as e:
                    logger.warning(f"Alert {alert.id} changed during check: {e}")
                except FinboardError as e:
                    logger.error(f"Error firing alert {alert.id}: {e}")

        if not dry_run:
            self.settle_outcomes()
        return fired

    def settle_outcomes(self) -> int:
        """
        Record outcomes for triggers whose evaluation window has elapsed.

        Returns:
            Number of triggers settled
        """
        pending = self.trigger_repo.list_pending_outcomes(self.manager.clock())
        if not pending:
            return 0

        tickers = sorted({t.ticker for t in pending})
        prices = {s.symbol: s.price for s in self.fetcher.fetch_snapshots(tickers)}

        settled = 0
        for trigger in pending:
            price = prices.get(trigger.ticker)
            if price is None:
                continue
            try:
                self.manager.record_outcome(trigger.id, price)
                settled += 1
            except FinboardError as e:
                logger.error(f"Error settling trigger {trigger.id}: {e}")
        return settled


def open_app(config_path: str) -> FinboardApp:
    """Load configuration (defaults if the file is missing) and open the app."""
    if Path(config_path).exists():
        config = load_config(config_path)
    else:
        logger.debug(f"No config at {config_path}, using defaults")
        config = AppConfig()

    db = Database(config.database.path, timeout=config.database.timeout_seconds)
    db.initialize()
    return FinboardApp(db=db, config=config)


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Finboard alert check")
    parser.add_argument(
        "--config", default="config.yaml", help="Path to config file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--dry-run", action="store_true", help="Evaluate without changing alerts"
    )

    args = parser.parse_args()

    app = open_app(args.config)

    # Setup logging
    log_level = logging.DEBUG if args.debug else app.config.advanced.log_level.upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.dry_run:
        logger.info("Dry run mode - alerts will not change")

    fired = app.run_check(dry_run=args.dry_run)
    logger.info(f"Check complete, {len(fired)} alert(s) fired")
    app.db.close()


if __name__ == "__main__":
    main()
