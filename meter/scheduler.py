"""Fixed-rate recurring callbacks on the running asyncio loop."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CancelToken:
    """Handle returned by :func:`schedule`.

    Once :meth:`cancel` returns, the callback is never invoked again, even
    if a tick was already due.  Work the callback started earlier is not
    touched.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


def schedule(
    interval: float,
    callback: Callable[[], None],
    *,
    immediate: bool = False,
) -> CancelToken:
    """
    Call *callback* every *interval* seconds until the token is cancelled.

    Ticks are anchored to the loop clock rather than to the end of the
    previous callback, so the cadence does not drift.  If the loop stalls
    past one or more slots, the missed slots are skipped rather than
    replayed in a burst.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")

    loop = asyncio.get_running_loop()
    token = CancelToken()

    async def _run() -> None:
        next_at = loop.time() if immediate else loop.time() + interval
        while True:
            delay = next_at - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if token.cancelled:
                return

            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback raised; schedule continues")

            next_at += interval
            now = loop.time()
            if next_at <= now:
                skipped = int((now - next_at) // interval) + 1
                logger.debug("Scheduler fell behind, skipping %d tick(s)", skipped)
                next_at += skipped * interval

    token._task = loop.create_task(_run())
    return token
