"""
Shared machinery for single-stream throughput tests.

Subclasses implement ``_transfer(url)``; this base class supplies the
absolute deadline, caller aborts, the progress-reporting policy, and the
mapping of aiohttp failures onto the measurement error taxonomy.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

import aiohttp

from .constants import PROGRESS_FLOOR, TRANSFER_TIMEOUT
from .errors import MeasurementAborted, MeasurementTimeout, TransportError
from .events import EventStream
from .stats import ThroughputResult, calculate_speed_mbps

logger = logging.getLogger(__name__)


@dataclass
class SpeedProgress:
    """Rate estimate published while a transfer runs, and once at the end."""

    speed_mbps: float
    elapsed_s: float
    bytes_transferred: int
    final: bool = False

    def to_dict(self) -> dict:
        return {
            "speedMbps": round(self.speed_mbps, 3),
            "elapsedSeconds": round(self.elapsed_s, 3),
            "bytes": self.bytes_transferred,
            "final": self.final,
        }


class ThroughputTester:
    """
    Base class for download and upload testers.

    Progress events are published on every chunk once ``progress_floor``
    seconds have elapsed, computed as total bytes so far over total
    elapsed time.  They are estimates only; the value returned by
    :meth:`test` (and published with ``final=True``) is authoritative.
    """

    direction = "transfer"

    def __init__(
        self,
        timeout: float = TRANSFER_TIMEOUT,
        progress_floor: float = PROGRESS_FLOOR,
        events: Optional[EventStream] = None,
    ) -> None:
        self.timeout = timeout
        self.progress_floor = progress_floor
        self.events = events if events is not None else EventStream()
        self._task: Optional[asyncio.Task] = None
        self._aborted = False
        self._start = 0.0
        self._samples: list = []

    # -- Public API ---------------------------------------------------------

    async def test(self, url: str) -> Any:
        """Run one transfer against *url* and return its result."""
        return await self._run(self._transfer(url))

    def abort(self) -> None:
        """Abort the transfer in flight; :meth:`test` raises ``MeasurementAborted``."""
        if self._task is not None and not self._task.done():
            self._aborted = True
            self._task.cancel()

    # -- Subclass hook ------------------------------------------------------

    async def _transfer(self, url: str) -> ThroughputResult:
        raise NotImplementedError

    # -- Orchestration ------------------------------------------------------

    async def _run(self, transfer: Awaitable[ThroughputResult]) -> Any:
        name = self.direction.capitalize()
        self._aborted = False
        self._task = asyncio.ensure_future(transfer)

        try:
            result = await asyncio.wait_for(self._task, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("%s test timed out after %.1f s", name, self.timeout)
            raise MeasurementTimeout(
                f"{name} test timed out. The server might be slow or the connection is poor."
            ) from exc
        except asyncio.CancelledError:
            if self._aborted:
                logger.info("%s test aborted by caller", name)
                raise MeasurementAborted(f"{name} test was aborted.") from None
            raise
        except (aiohttp.ClientError, OSError) as exc:
            logger.warning("%s test failed: %s", name, exc)
            raise TransportError(
                f"{name} test failed due to a network error: {exc}"
            ) from exc
        finally:
            self._task = None

        result.samples = list(self._samples)
        self.events.publish(
            SpeedProgress(
                speed_mbps=result.speed_mbps,
                elapsed_s=result.elapsed_seconds,
                bytes_transferred=result.bytes_transferred,
                final=True,
            )
        )
        logger.info(
            "%s: %d bytes in %.2f s = %.2f Mbps",
            name, result.bytes_transferred, result.elapsed_seconds, result.speed_mbps,
        )
        return result

    # -- Progress helpers ---------------------------------------------------

    def _start_clock(self) -> None:
        self._start = time.perf_counter()
        self._samples = []

    def _elapsed(self) -> float:
        return time.perf_counter() - self._start

    def _report(self, bytes_so_far: int) -> None:
        elapsed = self._elapsed()
        if elapsed < self.progress_floor:
            return
        mbps = calculate_speed_mbps(bytes_so_far, elapsed)
        self._samples.append(mbps)
        self.events.publish(SpeedProgress(mbps, elapsed, bytes_so_far))
