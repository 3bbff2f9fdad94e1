"""
Configuration loading and validation.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration is invalid."""

    pass


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: str = "data/finboard.db"
    timeout_seconds: float = 5.0


SUPPORTED_PROVIDERS = ("yahoo_finance",)


@dataclass
class DataSourceConfig:
    """Data source configuration. Snapshots come from yfinance."""

    provider: str = "yahoo_finance"
    history_period: str = "max"


@dataclass
class AlertsConfig:
    """Alert lifecycle configuration."""

    default_snooze_hours: float = 24
    evaluation_window_minutes: int = 60


@dataclass
class ScheduleConfig:
    """
    When the external scheduler (cron or a CI workflow) runs finboard-check.

    Nothing in the package reads these values.
    """

    timezone: str = "America/New_York"
    frequency: str = "hourly"
    cron: Optional[str] = None


@dataclass
class DiscordNotificationConfig:
    """Discord notification settings."""

    webhook_url: Optional[str] = None
    mention_on_trigger: bool = True
    include_chart_link: bool = True


@dataclass
class EmailNotificationConfig:
    """Email notification settings."""

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    from_address: Optional[str] = None
    to_addresses: list[str] = field(default_factory=list)


@dataclass
class NotificationsConfig:
    """Notifications configuration."""

    inbox: bool = True
    discord: DiscordNotificationConfig = field(
        default_factory=DiscordNotificationConfig
    )
    email: EmailNotificationConfig = field(default_factory=EmailNotificationConfig)


@dataclass
class AdvancedConfig:
    """Advanced configuration."""

    log_level: str = "INFO"


@dataclass
class AppConfig:
    """Main application configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    data_source: DataSourceConfig = field(default_factory=DataSourceConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(value: Any) -> Any:
    """Replace ${VAR} references in strings with the environment value."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {key: _substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _positive(value: Any, name: str, integer: bool = False) -> None:
    kinds = int if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds) or value <= 0:
        kind = "a positive integer" if integer else "a positive number"
        raise ConfigValidationError(f"{name} must be {kind}, got {value!r}")


def _validate_config(config_dict: dict[str, Any]) -> None:
    """Check values the dataclasses can't check themselves."""
    database = config_dict.get("database") or {}
    db_path = database.get("path", DatabaseConfig.path)
    if not db_path:
        raise ConfigValidationError("database.path is required")
    if db_path != ":memory:":
        parent = Path(db_path).parent
        if parent.exists() and not os.access(parent, os.W_OK):
            raise ConfigValidationError(f"database.path is not writable: {parent}")
    _positive(
        database.get("timeout_seconds", DatabaseConfig.timeout_seconds),
        "database.timeout_seconds",
    )

    data_source = config_dict.get("data_source") or {}
    provider = data_source.get("provider", DataSourceConfig.provider)
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigValidationError(
            f"data_source.provider must be one of {SUPPORTED_PROVIDERS}, got {provider!r}"
        )

    alerts = config_dict.get("alerts") or {}
    _positive(
        alerts.get("default_snooze_hours", AlertsConfig.default_snooze_hours),
        "alerts.default_snooze_hours",
    )
    _positive(
        alerts.get("evaluation_window_minutes", AlertsConfig.evaluation_window_minutes),
        "alerts.evaluation_window_minutes",
        integer=True,
    )

    schedule = config_dict.get("schedule") or {}
    if not schedule.get("timezone", ScheduleConfig.timezone):
        raise ConfigValidationError("schedule.timezone cannot be empty")


def _section(config_dict: dict[str, Any], name: str, cls: type) -> Any:
    try:
        return cls(**(config_dict.get(name) or {}))
    except TypeError as e:
        raise ConfigValidationError(f"Invalid '{name}' section: {e}") from e


def load_config(config_path: str) -> AppConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        AppConfig instance

    Raises:
        ConfigValidationError: If configuration is invalid
        FileNotFoundError: If config file doesn't exist
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path) as f:
        config_dict = _substitute_env_vars(yaml.safe_load(f) or {})

    _validate_config(config_dict)

    notif_dict = dict(config_dict.get("notifications") or {})
    inbox = notif_dict.pop("inbox", True)
    notifications = NotificationsConfig(
        inbox=bool(inbox),
        discord=_section(notif_dict, "discord", DiscordNotificationConfig),
        email=_section(notif_dict, "email", EmailNotificationConfig),
    )

    return AppConfig(
        database=_section(config_dict, "database", DatabaseConfig),
        data_source=_section(config_dict, "data_source", DataSourceConfig),
        alerts=_section(config_dict, "alerts", AlertsConfig),
        schedule=_section(config_dict, "schedule", ScheduleConfig),
        notifications=notifications,
        advanced=_section(config_dict, "advanced", AdvancedConfig),
    )
