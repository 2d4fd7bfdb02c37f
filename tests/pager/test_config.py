"""Tests for Pager configuration.

Tests cover:
- Defaults and validation (log level, interval clamping, duplicate names)
- Source precedence: overrides > CLI > config file > environment > defaults
- The per-user default configuration file
- load_config error wrapping
- build_accounts, save_tokens and validate_config
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from src.pager.config import (
    AccountConfig,
    PagerConfig,
    build_accounts,
    default_config_path,
    load_config,
    save_tokens,
    validate_config,
)
from src.pager.errors import ConfigurationError
from src.pager.models import OAuthToken


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Fixture that clears Pager environment variables before and after tests.

    The per-user config home is pointed at an empty directory so a real
    user config file never leaks into a test.
    """
    monkeypatch.delenv("APPDATA", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config-home"))
    saved_env = {k: v for k, v in os.environ.items() if k.lower().startswith("pager_")}
    for key in list(os.environ.keys()):
        if key.lower().startswith("pager_"):
            del os.environ[key]

    yield

    for key in list(os.environ.keys()):
        if key.lower().startswith("pager_"):
            del os.environ[key]
    os.environ.update(saved_env)


def make_account_data(name: str = "work", **fields: Any) -> dict[str, Any]:
    """Create the JSON form of an account profile."""
    data = {
        "name": name,
        "token": {"access_token": f"{name}-access", "refresh_token": f"{name}-refresh"},
        "calendars": ["primary"],
    }
    data.update(fields)
    return data


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a configuration file with two accounts."""
    path = tmp_path / "pager.json"
    path.write_text(
        json.dumps(
            {
                "notifier": "log",
                "mail_poll_interval": 30,
                "accounts": [
                    make_account_data("work"),
                    make_account_data("home", calendars=[], mail_poll_interval=120),
                ],
                "comment": "kept on save",
            }
        )
    )
    return path


# =============================================================================
# Model Tests
# =============================================================================


class TestPagerConfig:
    """Tests for PagerConfig validation."""

    def test_default_values(self, clean_env: None) -> None:
        """Test that default values are correctly applied."""
        config = PagerConfig()

        assert config.accounts == []
        assert config.mail_poll_interval == timedelta(seconds=60)
        assert config.calendar_poll_interval == timedelta(minutes=5)
        assert config.log_level == "INFO"
        assert config.notifier == "log"
        assert config.notify_command == "notify-send"
        assert config.config_file is None

    def test_log_level_normalized(self, clean_env: None) -> None:
        """Test that log levels are upper-cased."""
        assert PagerConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self, clean_env: None) -> None:
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            PagerConfig(log_level="LOUD")

    def test_intervals_clamped(self, clean_env: None) -> None:
        """Test that sub-second intervals become one second."""
        config = PagerConfig(mail_poll_interval=0.2, calendar_poll_interval=0)

        assert config.mail_poll_interval == timedelta(seconds=1)
        assert config.calendar_poll_interval == timedelta(seconds=1)

    def test_account_intervals_clamped(self) -> None:
        """Test that per-account intervals are clamped too."""
        account = AccountConfig(**make_account_data(mail_poll_interval=0.5))

        assert account.mail_poll_interval == timedelta(seconds=1)
        assert account.calendar_poll_interval is None

    def test_duplicate_account_names(self, clean_env: None) -> None:
        """Test that two accounts with the same name are rejected."""
        with pytest.raises(ValidationError, match="duplicate account name"):
            PagerConfig(accounts=[make_account_data("work"), make_account_data("work")])

    def test_token_is_secret(self) -> None:
        """Test that tokens do not leak through repr."""
        account = AccountConfig(**make_account_data())

        assert "work-access" not in repr(account)
        assert account.token.access_token.get_secret_value() == "work-access"

    def test_account_lookup(self, clean_env: None) -> None:
        """Test looking up a profile by name."""
        config = PagerConfig(accounts=[make_account_data("work")])

        assert config.account("work").name == "work"
        with pytest.raises(ConfigurationError, match="Unknown account"):
            config.account("home")


# =============================================================================
# Source Precedence Tests
# =============================================================================


class TestSources:
    """Tests for configuration sources and their precedence."""

    def test_environment(self, clean_env: None) -> None:
        """Test that PAGER_ variables are read."""
        os.environ["PAGER_NOTIFIER"] = "command"
        os.environ["PAGER_MAIL_POLL_INTERVAL"] = "PT45S"

        config = PagerConfig()

        assert config.notifier == "command"
        assert config.mail_poll_interval == timedelta(seconds=45)

    def test_config_file(self, clean_env: None, config_file: Path) -> None:
        """Test loading accounts and settings from a JSON file."""
        config = PagerConfig.from_cli_args(["--config", str(config_file)])

        assert config.config_file == config_file
        assert [a.name for a in config.accounts] == ["work", "home"]
        assert config.mail_poll_interval == timedelta(seconds=30)
        assert config.accounts[1].mail_poll_interval == timedelta(seconds=120)

    def test_file_beats_environment(self, clean_env: None, config_file: Path) -> None:
        """Test that file values override environment variables."""
        os.environ["PAGER_NOTIFIER"] = "command"
        os.environ["PAGER_NOTIFY_COMMAND"] = "dunstify"

        config = PagerConfig.from_cli_args(["--config", str(config_file)])

        assert config.notifier == "log"
        assert config.notify_command == "dunstify"

    def test_cli_beats_file(self, clean_env: None, config_file: Path) -> None:
        """Test that CLI arguments override file values."""
        config = PagerConfig.from_cli_args(
            ["--config", str(config_file), "--mail-interval", "10", "--notifier", "command"]
        )

        assert config.mail_poll_interval == timedelta(seconds=10)
        assert config.notifier == "command"

    def test_overrides_beat_cli(self, clean_env: None) -> None:
        """Test that explicit overrides take highest precedence."""
        config = PagerConfig.from_cli_args(["--log-level", "debug"], log_level="ERROR")

        assert config.log_level == "ERROR"

    def test_unknown_arguments_ignored(self, clean_env: None) -> None:
        """Test that subcommands and unknown flags do not break parsing."""
        config = PagerConfig.from_cli_args(["calendars", "work", "--calendar-interval", "90"])

        assert config.calendar_poll_interval == timedelta(seconds=90)


# =============================================================================
# Default Config Path Tests
# =============================================================================


class TestDefaultConfigPath:
    """Tests for the per-user configuration file."""

    def test_xdg_config_home(self, clean_env: None, tmp_path: Path) -> None:
        """Test that the path lives under XDG_CONFIG_HOME."""
        expected = tmp_path / "config-home" / "pager" / "config.json"

        assert default_config_path() == expected

    def test_home_fallback(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Test that ~/.config is used when XDG_CONFIG_HOME is unset."""
        monkeypatch.delenv("XDG_CONFIG_HOME")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert default_config_path() == tmp_path / ".config" / "pager" / "config.json"

    def test_appdata(
        self, clean_env: None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        """Test that APPDATA takes precedence when set."""
        monkeypatch.setenv("APPDATA", str(tmp_path / "Roaming"))

        assert default_config_path() == tmp_path / "Roaming" / "Pager" / "config.json"

    def test_read_without_config_flag(self, clean_env: None, tmp_path: Path) -> None:
        """Test that the per-user file is loaded when --config is absent."""
        path = default_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"accounts": [make_account_data("work")]}))

        config = PagerConfig.from_cli_args(["run"])

        assert [account.name for account in config.accounts] == ["work"]
        assert config.config_file == path

    def test_config_flag_beats_default(
        self, clean_env: None, config_file: Path
    ) -> None:
        """Test that an explicit --config ignores the per-user file."""
        path = default_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"accounts": [make_account_data("other")]}))

        config = PagerConfig.from_cli_args(["--config", str(config_file)])

        assert [account.name for account in config.accounts] == ["work", "home"]
        assert config.config_file == config_file

    def test_missing_default_is_not_an_error(self, clean_env: None) -> None:
        """Test that no per-user file leaves the configuration file unset."""
        config = PagerConfig.from_cli_args([])

        assert config.config_file is None
        assert config.accounts == []


# =============================================================================
# load_config Tests
# =============================================================================


class TestLoadConfig:
    """Tests for load_config."""

    def test_wraps_validation_error(self, clean_env: None, tmp_path: Path) -> None:
        """Test that invalid values surface as ConfigurationError."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"accounts": [{"name": "work"}]}))

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(["--config", str(path)])

    def test_missing_file(self, clean_env: None, tmp_path: Path) -> None:
        """Test that a missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_config(["--config", str(tmp_path / "missing.json")])

    def test_invalid_json(self, clean_env: None, tmp_path: Path) -> None:
        """Test that a malformed file is a configuration error."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config(["--config", str(path)])

    def test_non_object_file(self, clean_env: None, tmp_path: Path) -> None:
        """Test that a JSON file must hold an object."""
        path = tmp_path / "list.json"
        path.write_text("[]")

        with pytest.raises(ConfigurationError, match="JSON object"):
            load_config(["--config", str(path)])


# =============================================================================
# build_accounts Tests
# =============================================================================


class TestBuildAccounts:
    """Tests for build_accounts."""

    def test_intervals_fall_back_to_globals(
        self, clean_env: None, config_file: Path
    ) -> None:
        """Test that per-account intervals override the global ones."""
        config = PagerConfig.from_cli_args(["--config", str(config_file)])

        work, home = build_accounts(config)

        assert work.mail_poller.interval == timedelta(seconds=30)
        assert work.calendar_poller.interval == timedelta(minutes=5)
        assert home.mail_poller.interval == timedelta(seconds=120)
        assert home.calendars == []
        assert work.credentials.authorization_header() == "Bearer work-access"

    def test_account_watching_nothing(self, clean_env: None) -> None:
        """Test that an account with mail disabled and no calendars is rejected."""
        config = PagerConfig(
            accounts=[make_account_data("idle", calendars=[], mail_enabled=False)]
        )

        with pytest.raises(ConfigurationError) as exc_info:
            build_accounts(config)

        assert exc_info.value.account == "idle"

    def test_blank_name(self, clean_env: None) -> None:
        """Test that a whitespace-only name is rejected naming the account."""
        config = PagerConfig(accounts=[make_account_data("  ")])

        with pytest.raises(ConfigurationError, match="invalid"):
            build_accounts(config)


# =============================================================================
# save_tokens Tests
# =============================================================================


class TestSaveTokens:
    """Tests for save_tokens."""

    def test_updates_matching_profiles(
        self, clean_env: None, config_file: Path
    ) -> None:
        """Test that in-memory tokens replace those in the file."""
        config = PagerConfig.from_cli_args(["--config", str(config_file)])
        work, home = build_accounts(config)
        expiry = datetime(2026, 1, 29, 10, 0, tzinfo=timezone.utc)
        work.credentials = OAuthToken(
            access_token="fresh", refresh_token="work-refresh", expiry=expiry
        )

        updated = save_tokens(config_file, [work])

        data = json.loads(config_file.read_text())
        assert updated == 1
        assert data["accounts"][0]["token"] == {
            "access_token": "fresh",
            "refresh_token": "work-refresh",
            "token_type": "Bearer",
            "expiry": "2026-01-29T10:00:00+00:00",
        }
        assert data["accounts"][1]["token"]["access_token"] == "home-access"
        assert data["comment"] == "kept on save"

    def test_saved_file_loads_again(self, clean_env: None, config_file: Path) -> None:
        """Test that a rewritten file is still a valid configuration."""
        config = PagerConfig.from_cli_args(["--config", str(config_file)])
        save_tokens(config_file, build_accounts(config))

        reloaded = PagerConfig.from_cli_args(["--config", str(config_file)])

        assert [a.name for a in reloaded.accounts] == ["work", "home"]

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that saving to a missing file is a configuration error."""
        with pytest.raises(ConfigurationError):
            save_tokens(tmp_path / "missing.json", [])


# =============================================================================
# validate_config Tests
# =============================================================================


class TestValidateConfig:
    """Tests for validate_config."""

    def test_no_warnings(self, clean_env: None) -> None:
        """Test that a sensible configuration has no warnings."""
        config = PagerConfig(accounts=[make_account_data()])

        assert validate_config(config) == []

    def test_no_accounts(self, clean_env: None) -> None:
        """Test that an empty account list is flagged."""
        warnings = validate_config(PagerConfig())

        assert "No accounts configured" in warnings[0]

    def test_expired_token(self, clean_env: None) -> None:
        """Test that an expired token is flagged."""
        data = make_account_data()
        data["token"]["expiry"] = "2026-01-29T08:00:00Z"
        config = PagerConfig(accounts=[data])

        warnings = validate_config(
            config, now=datetime(2026, 1, 29, 9, 0, tzinfo=timezone.utc)
        )

        assert len(warnings) == 1
        assert "expired" in warnings[0]

    def test_ignored_notify_command(self, clean_env: None) -> None:
        """Test that a notify command without the command notifier is flagged."""
        config = PagerConfig(accounts=[make_account_data()], notify_command="dunstify")

        assert any("ignored" in w for w in validate_config(config))
