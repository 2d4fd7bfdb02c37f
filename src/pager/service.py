"""Service wiring for Pager.

``PagerService`` turns a ``PagerConfig`` into running components: account
state, the Google source adapters sharing one HTTP client, a notification
sink, and the scheduler. It also owns the process-level concerns the core
stays out of: OS signals and writing tokens back on shutdown.

Example:
    >>> service = PagerService(load_config(["--config", "pager.json"]))
    >>> asyncio.run(service.run())
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable, Sequence
from datetime import datetime

import httpx

from src.pager.config import PagerConfig, build_accounts, save_tokens
from src.pager.core.account import AccountState
from src.pager.core.scheduler import Scheduler, start
from src.pager.errors import ConfigurationError
from src.pager.notify.sinks import (
    CommandNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
)
from src.pager.sources.google import GmailSource, GoogleCalendarSource

logger = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_sink(config: PagerConfig) -> NotificationSink:
    """Create the notification sink selected by ``config.notifier``."""
    if config.notifier == "command":
        return CommandNotificationSink(command=config.notify_command)
    return LoggingNotificationSink()


class PagerService:
    """Runs Pager for a configuration.

    Args:
        config: Application configuration.
        http_client: Optional HTTP client shared by both sources. When
            omitted, one is created per run and closed afterwards.
        sink: Optional sink; defaults to the one selected by the config.
        clock: Optional clock override passed to the scheduler.
    """

    def __init__(
        self,
        config: PagerConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sink: NotificationSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self._http_client = http_client
        self._sink = sink or build_sink(config)
        self._clock = clock

    async def run(self, stop: asyncio.Event | None = None) -> Scheduler:
        """Poll and notify until ``stop`` is set or SIGINT/SIGTERM arrives.

        Tokens are saved back to the configuration file once the loop has
        stopped, whether or not it stopped cleanly.

        Args:
            stop: Optional stop signal; a fresh one is created if omitted.

        Returns:
            The scheduler, after it stopped.

        Raises:
            ConfigurationError: If no account is configured or an account
                cannot be set up.
        """
        accounts = build_accounts(self.config)
        if not accounts:
            raise ConfigurationError("No accounts configured")

        stop = stop or asyncio.Event()
        installed = self._install_signal_handlers(stop)
        client = self._http_client or httpx.AsyncClient(
            timeout=self.config.request_timeout
        )
        logger.info(
            "Starting Pager for %d accounts: %s",
            len(accounts),
            ", ".join(account.name for account in accounts),
        )
        try:
            return await start(
                accounts,
                stop,
                mail_source=self._mail_source(client),
                calendar_source=self._calendar_source(client),
                sink=self._sink,
                clock=self._clock,
            )
        finally:
            self._remove_signal_handlers(installed)
            if self._http_client is None:
                await client.aclose()
            self.save_tokens(accounts)

    async def list_calendars(self, profile: str) -> list[str]:
        """Return the calendar ids visible to the account ``profile``.

        Raises:
            ConfigurationError: If no such account is configured.
            FetchError: If the calendar list cannot be fetched.
        """
        account_config = self.config.account(profile)
        account = AccountState(
            name=account_config.name,
            credentials=account_config.token.model_copy(),
            mail_enabled=False,
        )
        client = self._http_client or httpx.AsyncClient(
            timeout=self.config.request_timeout
        )
        try:
            return await self._calendar_source(client).list_calendars(account)
        finally:
            if self._http_client is None:
                await client.aclose()

    def save_tokens(self, accounts: Sequence[AccountState]) -> None:
        """Write tokens back to the configuration file, if there is one.

        Failures are logged, never raised: shutdown must complete.
        """
        if self.config.config_file is None:
            logger.debug("No configuration file; tokens not saved")
            return
        try:
            save_tokens(self.config.config_file, accounts)
        except ConfigurationError as exc:
            logger.error("Failed to save tokens: %s", exc)

    def _mail_source(self, client: httpx.AsyncClient) -> GmailSource:
        return GmailSource(base_url=self.config.gmail_base_url, http_client=client)

    def _calendar_source(self, client: httpx.AsyncClient) -> GoogleCalendarSource:
        return GoogleCalendarSource(
            base_url=self.config.calendar_base_url, http_client=client
        )

    def _install_signal_handlers(self, stop: asyncio.Event) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in _STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, stop.set)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                logger.debug("Cannot install handler for %s", sig.name)
                continue
            installed.append(sig)
        return installed

    def _remove_signal_handlers(self, installed: Sequence[signal.Signals]) -> None:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
