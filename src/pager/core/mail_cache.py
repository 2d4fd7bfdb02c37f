"""Per-account mail dedup cache.

The cache remembers every mail id it has ever surfaced for one account so
that a mail re-fetched on a later poll (it stays unread, it is still within
the last day) is never notified twice.

Classes:
    MailCache: Set of already-notified mail ids with order-preserving ingest.

Example:
    >>> cache = MailCache()
    >>> [m.id for m in cache.ingest([mail_a])]
    ['a']
    >>> [m.id for m in cache.ingest([mail_a, mail_b])]
    ['b']

Note:
    Nothing is ever evicted. Sources only return unread mail received in the
    last day, so the cache stays small for the lifetime of the process.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from src.pager.models import Mail


class MailCache:
    """Tracks which mail items have already been surfaced.

    Attributes:
        size: Number of distinct mail ids ingested so far.
    """

    def __init__(self) -> None:
        self._mails: dict[str, Mail] = {}

    @property
    def size(self) -> int:
        return len(self._mails)

    def __contains__(self, mail_id: object) -> bool:
        return mail_id in self._mails

    def __iter__(self) -> Iterator[Mail]:
        return iter(self._mails.values())

    def ingest(self, fetched: Iterable[Mail]) -> list[Mail]:
        """Add freshly fetched mail and return the ones not seen before.

        The returned list keeps the order of ``fetched``. Every returned mail
        is marked ``seen`` and its id recorded, so it will never be returned
        again. A mail id repeated within ``fetched`` is returned once.

        Callers must only pass the result of a *successful* fetch; a failed
        fetch leaves the cache untouched by not calling this at all.

        Args:
            fetched: Mail items from the latest fetch.

        Returns:
            The subsequence of ``fetched`` whose ids were not in the cache.
        """
        fresh: list[Mail] = []
        for mail in fetched:
            if mail.id in self._mails:
                continue
            mail.seen = True
            self._mails[mail.id] = mail
            fresh.append(mail)
        return fresh
