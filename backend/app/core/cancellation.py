"""
Cooperative cancellation for long-running crawls and jobs.

A CancellationToken is threaded through the crawl frontier loop, the batch
item loop and the analysis hand-off. Work stops only at those checkpoints,
so rows written before the checkpoint stay intact.

Cancellation can be requested in-process (``cancel()``) or out of process:
an optional async poll runs at each checkpoint, which lets a Celery
worker notice a ``cancel_requested`` flag set on the job row by the API.
"""

import logging
from collections.abc import Awaitable, Callable

from app.core.exceptions import JobCancelled

logger = logging.getLogger(__name__)

CancellationPoll = Callable[[], Awaitable[bool]]


class CancellationToken:
    """Cooperative cancellation flag checked at suspension points."""

    def __init__(self, poll: CancellationPoll | None = None):
        self._cancelled = False
        self._poll = poll

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Idempotent."""
        if not self._cancelled:
            logger.info("Cancellation requested")
        self._cancelled = True

    async def check(self) -> bool:
        """Return True if cancellation was requested locally or via the poll."""
        if self._cancelled:
            return True
        if self._poll is not None and await self._poll():
            self._cancelled = True
        return self._cancelled

    async def raise_if_cancelled(self, message: str = "Job was cancelled") -> None:
        """Raise JobCancelled if cancellation was requested."""
        if await self.check():
            raise JobCancelled(message)


def never_cancelled() -> CancellationToken:
    """Token for callers that do not support cancellation."""
    return CancellationToken()
