"""Exception hierarchy for Pager.

All errors raised by Pager derive from ``PagerError`` so callers can catch
the whole family at once. The three concrete kinds map to the three places
things go wrong at runtime:

- ``FetchError``: a source adapter could not fetch from the remote service
  (network, auth, rate limit, malformed payload). Logged by the reconciler;
  never fatal to the tick loop.
- ``ConfigurationError``: account or application setup is missing or
  invalid. Raised at startup only and fatal to that startup.
- ``NotifyError``: the display layer failed. Logged as a warning, never
  retried, never fatal.
"""

from __future__ import annotations


class PagerError(Exception):
    """Base exception for all Pager errors."""

    pass


class FetchError(PagerError):
    """Raised when a source adapter fails to fetch remote items.

    Attributes:
        account: Name of the account the fetch was made for.
        source: Which source failed (e.g. ``"gmail"``, ``"calendar"``).
        status_code: HTTP status code of the failed response, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        account: str,
        source: str,
        status_code: int | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            account: Name of the account the fetch was made for.
            source: Which source failed.
            status_code: HTTP status code of the failed response, if any.
        """
        super().__init__(message)
        self.message = message
        self.account = account
        self.source = source
        self.status_code = status_code

    def __str__(self) -> str:
        prefix = f"[{self.account}] {self.source}"
        if self.status_code is not None:
            prefix = f"{prefix} ({self.status_code})"
        return f"{prefix}: {self.message}"


class ConfigurationError(PagerError):
    """Raised when application or account configuration is invalid.

    Attributes:
        account: Name of the offending account, or ``None`` when the error
            concerns the configuration as a whole.
    """

    def __init__(self, message: str, account: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.account = account


class NotifyError(PagerError):
    """Raised when a notification sink fails to display a notification."""

    pass
