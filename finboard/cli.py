"""
CLI commands for Finboard.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()

from finboard.config import ConfigValidationError
from finboard.database.models import Alert, NewAlert, Watchlist, parse_timestamp
from finboard.database.repository import WatchlistRepository
from finboard.errors import FinboardError, ValidationError
from finboard.main import FinboardApp, open_app
from finboard.screener.criteria import ScreenerCriteria
from finboard.screener.pipeline import screen
from finboard.screener.snapshot import StockMetricSnapshot

logger = logging.getLogger(__name__)

DEFAULT_WATCHLIST = "My Watchlist"


def _parse_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid {what} JSON: {e.msg}") from e


def _parse_until(text: Optional[str]) -> Optional[datetime]:
    try:
        return parse_timestamp(text)
    except ValueError as e:
        raise ValidationError(f"Invalid --until timestamp: {text}") from e


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def create_alert(app: FinboardApp, payload: str) -> Alert:
    """Create an alert from a JSON object."""
    data = _parse_json(payload, "alert")
    if not isinstance(data, dict):
        raise ValidationError("Alert must be a JSON object")
    return app.manager.create_alert(NewAlert.from_dict(data))


def load_snapshots(path: str) -> list[StockMetricSnapshot]:
    """Load a JSON array of stock snapshots from a file."""
    with open(path) as f:
        data = _parse_json(f.read(), "snapshot")
    if not isinstance(data, list):
        raise ValidationError("Snapshot file must contain a JSON array")
    return [StockMetricSnapshot.from_dict(item) for item in data]


def run_screener(
    app: FinboardApp,
    criteria_json: Optional[str] = None,
    input_path: Optional[str] = None,
    symbols: Optional[list[str]] = None,
) -> list[StockMetricSnapshot]:
    """
    Screen snapshots from a file, or fetched live for the given symbols.

    Without a file or symbols, every symbol on a watchlist is fetched.
    """
    criteria = ScreenerCriteria.from_dict(
        _parse_json(criteria_json, "criteria") if criteria_json else {}
    )

    if input_path:
        snapshots = load_snapshots(input_path)
    else:
        tickers = symbols or app.watchlist_repo.all_symbols()
        if not tickers:
            raise ValidationError("No symbols to screen; pass --symbols or add to a watchlist")
        snapshots = app.fetcher.fetch_snapshots(tickers)

    return screen(snapshots, criteria)


def add_to_watchlist(repo: WatchlistRepository, tickers: list[str]) -> dict:
    """Add symbols to the default watchlist, creating it if needed."""
    watchlist = repo.get_default() or repo.create(Watchlist(name=DEFAULT_WATCHLIST))

    added = []
    existing = []
    for ticker in tickers:
        item = repo.add_item(ticker, watchlist_id=watchlist.id)
        if item:
            added.append(item.symbol)
        else:
            existing.append(ticker.strip().upper())

    return {"watchlist": watchlist.name, "added": added, "existing": existing}


def _split_symbols(value: str) -> list[str]:
    return [t.strip().upper() for t in value.split(",") if t.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Finboard CLI")
    parser.add_argument("--config", default="config.yaml", help="Path to config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # Alert commands
    alerts_parser = subparsers.add_parser("alerts", help="Alert management")
    alerts_subparsers = alerts_parser.add_subparsers(dest="action")

    create_parser = alerts_subparsers.add_parser("create", help="Create alert")
    create_parser.add_argument("json", help="Alert as a JSON object")

    list_parser = alerts_subparsers.add_parser("list", help="List alerts")
    list_parser.add_argument("--active", action="store_true", help="Only active alerts")

    status_parser = alerts_subparsers.add_parser("status", help="Change alert status")
    status_parser.add_argument("id", help="Alert ID")
    status_parser.add_argument(
        "status", choices=["active", "triggered", "snoozed", "cancelled"]
    )
    status_parser.add_argument(
        "--until", help="ISO-8601 time a snoozed alert wakes up"
    )

    snooze_parser = alerts_subparsers.add_parser("snooze", help="Snooze alert")
    snooze_parser.add_argument("id", help="Alert ID")
    snooze_parser.add_argument("--hours", type=float, help="Snooze length in hours")

    delete_parser = alerts_subparsers.add_parser("delete", help="Delete alert")
    delete_parser.add_argument("id", help="Alert ID")

    # Screener commands
    screener_parser = subparsers.add_parser("screener", help="Stock screener")
    screener_subparsers = screener_parser.add_subparsers(dest="action")

    run_parser = screener_subparsers.add_parser("run", help="Run screener")
    run_parser.add_argument("--criteria", help="Criteria as a JSON object")
    run_parser.add_argument("--input", help="JSON file with snapshots to screen")
    run_parser.add_argument("--symbols", help="Comma-separated symbols to fetch")

    # Watchlist commands
    watchlist_parser = subparsers.add_parser("watchlist", help="Watchlist management")
    watchlist_subparsers = watchlist_parser.add_subparsers(dest="action")

    add_watchlist_parser = watchlist_subparsers.add_parser("add", help="Add to watchlist")
    add_watchlist_parser.add_argument(
        "--symbols", required=True, help="Comma-separated symbols"
    )

    watchlist_subparsers.add_parser("show", help="Show watchlists")

    remove_watchlist_parser = watchlist_subparsers.add_parser(
        "remove", help="Remove from watchlist"
    )
    remove_watchlist_parser.add_argument("symbol", help="Symbol to remove")

    # Notification commands
    notif_parser = subparsers.add_parser("notifications", help="Notification inbox")
    notif_subparsers = notif_parser.add_subparsers(dest="action")

    notif_list_parser = notif_subparsers.add_parser("list", help="List notifications")
    notif_list_parser.add_argument("--limit", type=int, default=20)

    read_parser = notif_subparsers.add_parser("read", help="Mark notifications read")
    read_group = read_parser.add_mutually_exclusive_group(required=True)
    read_group.add_argument("--id", type=int, help="Notification ID")
    read_group.add_argument("--all", action="store_true", help="Mark all read")

    # Check command
    check_parser = subparsers.add_parser("check", help="Evaluate active alerts now")
    check_parser.add_argument(
        "--dry-run", action="store_true", help="Evaluate without changing alerts"
    )

    return parser


def dispatch(app: FinboardApp, args: argparse.Namespace) -> None:
    """Run the command selected on the command line."""
    if args.command == "alerts":
        if args.action == "create":
            alert = create_alert(app, args.json)
            _print_json(alert.to_dict())
        elif args.action == "list":
            alerts = app.manager.list_active() if args.active else app.manager.list_all()
            _print_json([a.to_dict() for a in alerts])
        elif args.action == "status":
            alert = app.manager.update_status(
                args.id, args.status, snooze_until=_parse_until(args.until)
            )
            _print_json(alert.to_dict())
        elif args.action == "snooze":
            alert = app.manager.snooze(args.id, hours=args.hours)
            _print_json(alert.to_dict())
        elif args.action == "delete":
            app.manager.delete_alert(args.id)
            print(f"Deleted alert {args.id}")

    elif args.command == "screener":
        if args.action == "run":
            symbols = _split_symbols(args.symbols) if args.symbols else None
            results = run_screener(
                app, criteria_json=args.criteria, input_path=args.input, symbols=symbols
            )
            _print_json([s.to_dict() for s in results])

    elif args.command == "watchlist":
        if args.action == "add":
            result = add_to_watchlist(app.watchlist_repo, _split_symbols(args.symbols))
            print(f"Added: {result['added']}")
            if result["existing"]:
                print(f"Already in {result['watchlist']}: {result['existing']}")
        elif args.action == "show":
            for watchlist in app.watchlist_repo.list_all():
                marker = " (default)" if watchlist.is_default else ""
                print(f"{watchlist.name}{marker}")
                for item in watchlist.items:
                    name = f": {item.company_name}" if item.company_name else ""
                    print(f"  {item.symbol}{name}")
        elif args.action == "remove":
            watchlist = app.watchlist_repo.get_default()
            if watchlist:
                app.watchlist_repo.remove_item(watchlist.id, args.symbol)
            print(f"Removed {args.symbol.upper()}")

    elif args.command == "notifications":
        if args.action == "list":
            repo = app.notification_repo
            print(f"Unread: {repo.unread_count()}")
            for n in repo.list_recent(limit=args.limit):
                flag = " " if n.is_read else "*"
                print(f"{flag} [{n.id}] {n.kind.value}: {n.title}")
        elif args.action == "read":
            if args.all:
                count = app.notification_repo.mark_all_read()
                print(f"Marked {count} notification(s) read")
            else:
                app.notification_repo.mark_read(args.id)
                print(f"Marked notification {args.id} read")

    elif args.command == "check":
        fired = app.run_check(dry_run=args.dry_run)
        print(f"{len(fired)} alert(s) fired")
        for alert_id in fired:
            print(f"  {alert_id}")


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = None
    try:
        app = open_app(args.config)
        dispatch(app, args)
    except (FinboardError, ConfigValidationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if app is not None:
            app.db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
