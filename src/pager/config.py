"""Pager configuration models.

This module provides Pydantic-based configuration for the notifier, with
support for a JSON configuration file, CLI argument parsing and environment
variable loading.

Configuration Hierarchy:
    - PagerConfig: Application settings plus the list of accounts
    - AccountConfig: One account profile (token, calendars, intervals)

Configuration Sources (in order of precedence, highest first):
    1. Explicit overrides passed to from_cli_args
    2. CLI arguments (via from_cli_args)
    3. JSON configuration file (``--config``, else ``default_config_path()``
       when that file exists)
    4. Environment variables (automatic via pydantic-settings)
    5. Default values

Environment Variables:
    Environment variables are prefixed with "PAGER_". Variable names are
    derived from field names in SCREAMING_SNAKE_CASE; complex fields such as
    ``accounts`` take JSON.

    Examples:
        PAGER_LOG_LEVEL=debug
        PAGER_MAIL_POLL_INTERVAL=PT30S
        PAGER_NOTIFIER=command

Configuration File:
    A JSON object with the same field names. Intervals are seconds or ISO
    8601 durations::

        {
          "mail_poll_interval": 60,
          "accounts": [
            {
              "name": "work",
              "token": {"access_token": "...", "refresh_token": "..."},
              "calendars": ["primary"]
            }
          ]
        }

    Tokens are written back to this file on shutdown (see ``save_tokens``).

Example:
    >>> config = PagerConfig.from_cli_args(["--config", "pager.json"])
    >>> [account.name for account in config.accounts]
    ['work']
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Literal, Self, Sequence

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.pager.core.account import (
    DEFAULT_CALENDAR_POLL_INTERVAL,
    DEFAULT_MAIL_POLL_INTERVAL,
    AccountState,
)
from src.pager.core.poller import clamp_interval
from src.pager.errors import ConfigurationError
from src.pager.models import OAuthToken
from src.pager.sources.google import (
    GMAIL_API_BASE_URL,
    GOOGLE_CALENDAR_API_BASE_URL,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Account Configuration
# =============================================================================


class AccountConfig(BaseModel):
    """One account profile.

    Attributes:
        name: Profile name, unique across accounts. Used to match the profile
            when tokens are written back.
        token: OAuth token used for every request of this account.
        calendars: Ids of the calendars to watch. Empty disables calendar
            polling for the account.
        mail_enabled: Whether the mailbox is polled.
        mail_poll_interval: Mail poll interval for this account; falls back
            to the global interval when unset.
        calendar_poll_interval: Calendar poll interval for this account;
            falls back to the global interval when unset.
    """

    name: str = Field(min_length=1, description="Profile name")
    token: OAuthToken
    calendars: list[str] = Field(default_factory=list)
    mail_enabled: bool = True
    mail_poll_interval: timedelta | None = None
    calendar_poll_interval: timedelta | None = None

    @field_validator("mail_poll_interval", "calendar_poll_interval")
    @classmethod
    def clamp_poll_interval(cls, v: timedelta | None) -> timedelta | None:
        """Raise intervals shorter than one second to one second."""
        if v is None:
            return v
        return clamp_interval(v)


# =============================================================================
# Application Configuration
# =============================================================================


class PagerConfig(BaseSettings):
    """Application configuration.

    Attributes:
        config_file: JSON file the configuration was read from, if any.
            Tokens are saved back to it on shutdown.
        accounts: Account profiles, in notification order.
        mail_poll_interval: Default mail poll interval.
        calendar_poll_interval: Default calendar poll interval.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        notifier: ``"log"`` writes notifications to the log, ``"command"``
            runs ``notify_command``.
        notify_command: Desktop notifier executable.
        gmail_base_url: Gmail API root.
        calendar_base_url: Google Calendar API root.
        request_timeout: Per-request HTTP timeout in seconds.

    Example:
        >>> config = PagerConfig(notifier="command")
        >>> config.notify_command
        'notify-send'
    """

    model_config = SettingsConfigDict(
        env_prefix="PAGER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    config_file: Path | None = Field(
        default=None,
        description="JSON configuration file",
    )
    accounts: list[AccountConfig] = Field(
        default_factory=list,
        description="Account profiles",
    )
    mail_poll_interval: timedelta = Field(
        default=DEFAULT_MAIL_POLL_INTERVAL,
        description="Default mail poll interval",
    )
    calendar_poll_interval: timedelta = Field(
        default=DEFAULT_CALENDAR_POLL_INTERVAL,
        description="Default calendar poll interval",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    notifier: Literal["log", "command"] = Field(
        default="log",
        description="Where notifications are displayed",
    )
    notify_command: str = Field(
        default="notify-send",
        description="Desktop notifier executable",
    )
    gmail_base_url: str = Field(default=GMAIL_API_BASE_URL)
    calendar_base_url: str = Field(default=GOOGLE_CALENDAR_API_BASE_URL)
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("mail_poll_interval", "calendar_poll_interval")
    @classmethod
    def clamp_poll_interval(cls, v: timedelta) -> timedelta:
        """Raise intervals shorter than one second to one second."""
        return clamp_interval(v)

    @model_validator(mode="after")
    def check_unique_account_names(self) -> Self:
        """Reject configurations where two accounts share a name."""
        seen: set[str] = set()
        for account in self.accounts:
            if account.name in seen:
                raise ValueError(f"duplicate account name: {account.name!r}")
            seen.add(account.name)
        return self

    def account(self, name: str) -> AccountConfig:
        """Return the account profile called ``name``.

        Raises:
            ConfigurationError: If no profile has that name.
        """
        for account in self.accounts:
            if account.name == name:
                return account
        raise ConfigurationError(f"Unknown account: {name}", account=name)

    @classmethod
    def from_file(cls, path: str | Path, **values: Any) -> Self:
        """Create configuration from a JSON file.

        Args:
            path: JSON configuration file.
            **values: Values that take precedence over the file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed.
            ValidationError: If the resulting configuration is invalid.
        """
        path = Path(path)
        file_values = read_config_file(path)
        return cls(**{**file_values, **values, "config_file": path})

    @classmethod
    def from_cli_args(
        cls,
        args: Sequence[str] | None = None,
        **overrides: Any,
    ) -> Self:
        """Create configuration from CLI arguments.

        Parses command-line arguments and combines them with the
        configuration file, environment variables and defaults. Without
        ``--config`` the per-user file from ``default_config_path()`` is read
        if it exists. Explicit overrides take highest precedence. Arguments
        this parser does not know (such as a subcommand) are ignored.

        Args:
            args: Command-line arguments to parse. If None, uses sys.argv[1:].
            **overrides: Additional keyword arguments that override all other
                sources.

        Returns:
            A new configuration instance.

        Example:
            >>> config = PagerConfig.from_cli_args(["--mail-interval", "30"])
            >>> config.mail_poll_interval
            datetime.timedelta(seconds=30)
        """
        parser = cls.create_argument_parser()
        parsed, _ = parser.parse_known_args(args)
        cli_values = cls._parsed_args_to_dict(parsed)

        # Filter out None values so they don't override lower sources
        cli_values = {k: v for k, v in cli_values.items() if v is not None}

        merged = {**cli_values, **overrides}
        config_file = merged.pop("config_file", None)
        if config_file is None:
            default_path = default_config_path()
            if default_path.is_file():
                logger.debug("Using default config file %s", default_path)
                config_file = default_path
        if config_file is not None:
            return cls.from_file(config_file, **merged)
        return cls(**merged)

    @classmethod
    def create_argument_parser(cls, add_help: bool = True) -> argparse.ArgumentParser:
        """Create the argument parser for the configuration options.

        Args:
            add_help: Whether to add ``-h/--help``. Pass False to use the
                parser as a parent of another parser.

        Returns:
            An ArgumentParser configured with the configuration options.
        """
        parser = argparse.ArgumentParser(
            description="Pager Configuration",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            add_help=add_help,
        )
        parser.add_argument(
            "--config",
            type=Path,
            default=None,
            dest="config_file",
            help="JSON configuration file (default: the per-user file, if present)",
        )
        parser.add_argument(
            "--log-level",
            type=str.upper,
            default=None,
            dest="log_level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Logging level",
        )
        parser.add_argument(
            "--mail-interval",
            type=float,
            default=None,
            dest="mail_poll_interval",
            help="Default mail poll interval in seconds",
        )
        parser.add_argument(
            "--calendar-interval",
            type=float,
            default=None,
            dest="calendar_poll_interval",
            help="Default calendar poll interval in seconds",
        )
        parser.add_argument(
            "--notifier",
            type=str,
            default=None,
            choices=["log", "command"],
            help="Where notifications are displayed",
        )
        parser.add_argument(
            "--notify-command",
            type=str,
            default=None,
            dest="notify_command",
            help="Desktop notifier executable",
        )
        return parser

    @classmethod
    def _parsed_args_to_dict(cls, parsed: argparse.Namespace) -> dict[str, Any]:
        """Convert parsed arguments to a dictionary."""
        return {
            "config_file": parsed.config_file,
            "log_level": parsed.log_level,
            "mail_poll_interval": parsed.mail_poll_interval,
            "calendar_poll_interval": parsed.calendar_poll_interval,
            "notifier": parsed.notifier,
            "notify_command": parsed.notify_command,
        }


# =============================================================================
# Loading and Saving
# =============================================================================


def default_config_path() -> Path:
    """Return the per-user configuration file path.

    ``$APPDATA/Pager/config.json`` when ``APPDATA`` is set (Windows),
    otherwise ``$XDG_CONFIG_HOME/pager/config.json`` with ``~/.config`` as
    the fallback config home.
    """
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / "Pager" / "config.json"
    config_home = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(config_home) / "pager" / "config.json"


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON configuration file into a dictionary.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid JSON, or
            does not hold a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must hold a JSON object")
    return data


def load_config(args: Sequence[str] | None = None, **overrides: Any) -> PagerConfig:
    """Load configuration, turning validation failures into ConfigurationError.

    Args:
        args: Command-line arguments; see ``PagerConfig.from_cli_args``.
        **overrides: Values that override all other sources.

    Raises:
        ConfigurationError: If the configuration is missing or invalid.
    """
    try:
        return PagerConfig.from_cli_args(args, **overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def build_accounts(config: PagerConfig) -> list[AccountState]:
    """Create the runtime state of every configured account.

    Per-account intervals fall back to the global ones.

    Raises:
        ConfigurationError: If an account cannot be set up. The error names
            the account.
    """
    accounts = []
    for profile in config.accounts:
        try:
            state = AccountState(
                name=profile.name,
                credentials=profile.token.model_copy(),
                calendars=list(profile.calendars),
                mail_enabled=profile.mail_enabled,
                mail_poll_interval=(
                    profile.mail_poll_interval or config.mail_poll_interval
                ),
                calendar_poll_interval=(
                    profile.calendar_poll_interval or config.calendar_poll_interval
                ),
            )
        except ValueError as exc:
            raise ConfigurationError(
                f"Account {profile.name!r} is invalid: {exc}", account=profile.name
            ) from exc
        if not state.mail_enabled and not state.calendar_enabled:
            raise ConfigurationError(
                f"Account {profile.name!r} watches neither mail nor calendars",
                account=profile.name,
            )
        accounts.append(state)
    return accounts


def save_tokens(path: str | Path, accounts: Iterable[AccountState]) -> int:
    """Write the accounts' in-memory tokens back to the configuration file.

    The file is re-read first so edits made while Pager was running are
    kept; only the ``token`` of each matching profile is replaced. The new
    content is written to a temporary file and moved into place.

    Args:
        path: The JSON configuration file.
        accounts: Accounts whose credentials should be saved.

    Returns:
        Number of profiles whose token was updated.

    Raises:
        ConfigurationError: If the file cannot be read or written.
    """
    path = Path(path)
    data = read_config_file(path)
    by_name = {account.name: account for account in accounts}

    updated = 0
    for profile in data.get("accounts") or []:
        if not isinstance(profile, dict):
            continue
        state = by_name.get(profile.get("name"))
        if state is None:
            continue
        profile["token"] = state.credentials.to_config()
        updated += 1

    tmp_path = path.with_name(f"{path.name}.tmp")
    try:
        tmp_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(path)
    except OSError as exc:
        raise ConfigurationError(f"Cannot write config file {path}: {exc}") from exc
    logger.info("Saved %d tokens to %s", updated, path)
    return updated


def validate_config(config: PagerConfig, now: datetime | None = None) -> list[str]:
    """Validate a configuration and return any warnings.

    Performs checks beyond Pydantic's built-in validation for problems that
    don't prevent startup but likely make Pager useless.

    Args:
        config: The configuration to validate.
        now: Reference time for token expiry checks; defaults to now.

    Returns:
        A list of warning messages. Empty if no issues found.
    """
    warnings: list[str] = []

    if not config.accounts:
        warnings.append("No accounts configured; nothing will be polled")

    now = now or datetime.now().astimezone()
    for account in config.accounts:
        expiry = account.token.expiry
        if expiry is not None:
            if expiry.tzinfo is None:
                expiry = expiry.astimezone()
            if expiry <= now:
                warnings.append(
                    f"Token of account {account.name!r} expired at "
                    f"{expiry.isoformat()}; requests will fail until it is "
                    "refreshed"
                )

    if config.notifier == "log" and config.notify_command != "notify-send":
        warnings.append(
            f"notify_command={config.notify_command!r} is ignored because "
            "notifier is 'log'"
        )

    return warnings
