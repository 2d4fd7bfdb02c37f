"""Notification sinks.

A sink displays a single ``Notification``. Pager ships two:

- ``LoggingNotificationSink`` writes notifications to the log. Useful on
  headless machines and as the default.
- ``CommandNotificationSink`` runs a desktop notifier command, by default
  freedesktop's ``notify-send``.

Any other display mechanism only has to implement the ``NotificationSink``
protocol and raise ``NotifyError`` when it fails.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from typing import Protocol

from src.pager.errors import NotifyError
from src.pager.models import Notification, Sound

logger = logging.getLogger(__name__)

APP_NAME = "Pager"

# freedesktop notification categories per sound
_SOUND_CATEGORIES: dict[Sound, str | None] = {
    Sound.MAIL: "email.arrived",
    Sound.REMINDER: "x-pager.reminder",
    Sound.DEFAULT: None,
}


class NotificationSink(Protocol):
    """Displays notifications to the user."""

    async def notify(self, notification: Notification) -> None:
        """Display ``notification``.

        Raises:
            NotifyError: If the notification could not be displayed.
        """
        ...


class LoggingNotificationSink:
    """Sink that writes every notification to the log.

    Args:
        level: Logging level used for notifications.
        logger_name: Logger to write to.
    """

    def __init__(
        self, level: int = logging.INFO, logger_name: str = "pager.notifications"
    ) -> None:
        self._level = level
        self._logger = logging.getLogger(logger_name)

    async def notify(self, notification: Notification) -> None:
        self._logger.log(
            self._level,
            "%s\n%s\n(%s, sound=%s)",
            notification.title,
            notification.body,
            notification.action,
            notification.sound.value,
        )


class CommandNotificationSink:
    """Sink that shells out to a desktop notifier.

    The command is invoked as::

        <command> --app-name=Pager [--category=<category>] <title> <body>

    which matches ``notify-send``. The action URL is appended to the body
    since the command has no activation hook.

    Args:
        command: Executable name or path.
        timeout: Seconds to wait for the command before giving up.
    """

    def __init__(self, command: str = "notify-send", timeout: float = 10.0) -> None:
        self.command = command
        self.timeout = timeout

    def build_argv(self, notification: Notification) -> list[str]:
        """Return the argument vector for ``notification``."""
        argv = [self.command, f"--app-name={APP_NAME}"]
        category = _SOUND_CATEGORIES.get(notification.sound)
        if category:
            argv.append(f"--category={category}")
        body = notification.body
        if notification.action:
            body = f"{body}\n{notification.action}" if body else notification.action
        argv.extend([notification.title, body])
        return argv

    async def notify(self, notification: Notification) -> None:
        if shutil.which(self.command) is None:
            raise NotifyError(f"Notifier command not found: {self.command}")

        argv = self.build_argv(notification)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise NotifyError(f"Could not run {self.command}: {exc}") from exc

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except TimeoutError as exc:
            process.kill()
            await process.wait()
            raise NotifyError(
                f"{self.command} did not finish within {self.timeout}s"
            ) from exc

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() if stderr else ""
            raise NotifyError(
                f"{self.command} exited with {process.returncode}: {detail}"
            )
        logger.debug("Displayed %r via %s", notification.title, self.command)
