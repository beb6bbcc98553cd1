"""
HTTP round-trip latency sampling.

Each sample is one HEAD request against a cache-busted URL, timed from
request start to completion.  The response is treated as opaque: a probe
either completes, fails, or times out, and its status code is never
inspected.  A failed sample is recorded as ``PENALTY_LATENCY_MS`` rather
than aborting the run, so one bad sample cannot void the measurement.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

import aiohttp

from .constants import (
    COMMON_HEADERS,
    DEFAULT_PING_COUNT,
    PENALTY_LATENCY_MS,
    PING_DELAY,
    PING_TIMEOUT,
)
from .events import EventStream
from .stats import calculate_jitter, calculate_mean
from .urls import cache_bust

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LatencySample:
    """One timed request, published as soon as it settles."""

    sequence: int
    latency_ms: float
    failed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "sequence": self.sequence,
            "latencyMs": round(self.latency_ms, 3),
            "failed": self.failed,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class LatencyResult:
    """Mean latency and jitter over a fixed number of samples."""

    samples: List[float] = field(default_factory=list)
    mean_ms: float = 0.0
    jitter_ms: float = 0.0
    failures: int = 0

    def calculate(self) -> None:
        """Derive mean and population-stdev jitter from collected samples."""
        self.mean_ms = calculate_mean(self.samples)
        self.jitter_ms = calculate_jitter(self.samples)

    def to_dict(self) -> dict:
        return {
            "samples": [round(s, 1) for s in self.samples],
            "mean_ms": round(self.mean_ms, 1),
            "jitter_ms": round(self.jitter_ms, 3),
            "failures": self.failures,
        }


# ---------------------------------------------------------------------------
# Shared probe primitive
# ---------------------------------------------------------------------------

async def head_rtt(session: aiohttp.ClientSession, url: str, timeout: float) -> float:
    """
    Issue one HEAD request to *url* and return its round-trip time in ms.

    The request runs under its own deadline; on expiry it is cancelled and
    ``asyncio.TimeoutError`` propagates.  Transport failures propagate as
    ``aiohttp.ClientError`` / ``OSError``.
    """
    async def _request() -> None:
        async with session.head(url):
            pass

    start = time.perf_counter()
    await asyncio.wait_for(_request(), timeout=timeout)
    return (time.perf_counter() - start) * 1000


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

class LatencySampler:
    """Sequential latency sampler with a short pause between requests."""

    def __init__(
        self,
        count: int = DEFAULT_PING_COUNT,
        delay: float = PING_DELAY,
        timeout: float = PING_TIMEOUT,
        events: Optional[EventStream] = None,
    ) -> None:
        self.count = count
        self.delay = delay
        self.timeout = timeout
        self.events = events if events is not None else EventStream()

    async def sample(self, url: str, count: Optional[int] = None) -> LatencyResult:
        count = self.count if count is None else count
        result = LatencyResult()

        if count <= 0:
            logger.warning("Latency sampling requested with count=%d; nothing to do", count)
            return result

        async with aiohttp.ClientSession(headers=COMMON_HEADERS) as session:
            for i in range(count):
                sample = await self._sample_once(session, url, i + 1)
                result.samples.append(sample.latency_ms)
                if sample.failed:
                    result.failures += 1
                self.events.publish(sample)

                if i < count - 1:
                    await asyncio.sleep(self.delay)

        result.calculate()
        logger.info(
            "Latency to %s: mean=%.1f ms jitter=%.2f ms (%d/%d failed)",
            url, result.mean_ms, result.jitter_ms, result.failures, count,
        )
        return result

    # -- Internals ----------------------------------------------------------

    async def _sample_once(
        self,
        session: aiohttp.ClientSession,
        url: str,
        sequence: int,
    ) -> LatencySample:
        try:
            latency = await head_rtt(session, cache_bust(url), self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Latency sample %d timed out", sequence)
            return LatencySample(sequence, PENALTY_LATENCY_MS, failed=True, error="timeout")
        except (aiohttp.ClientError, OSError) as exc:
            logger.debug("Latency sample %d failed: %s", sequence, exc)
            return LatencySample(
                sequence,
                PENALTY_LATENCY_MS,
                failed=True,
                error=str(exc) or type(exc).__name__,
            )
        return LatencySample(sequence=sequence, latency_ms=latency)
