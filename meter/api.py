"""
Public measurement operations.

Thin functional wrappers over the tester classes for callers that only
want a number back.  Pass an :class:`~meter.events.EventStream` to observe
progress while the operation runs.
"""
from __future__ import annotations

from typing import Optional

from .constants import (
    DEFAULT_PING_COUNT,
    PROBE_INTERVAL_MS,
    PROBE_TIMEOUT_MS,
    TRANSFER_TIMEOUT,
    UPLOAD_PAYLOAD_SIZE,
)
from .download import DownloadTester
from .events import EventStream
from .latency import LatencyResult, LatencySampler
from .session import ProbeSession
from .upload import UploadTester


async def measure_latency(
    url: str,
    sample_count: int = DEFAULT_PING_COUNT,
    events: Optional[EventStream] = None,
) -> LatencyResult:
    """Mean latency and jitter over *sample_count* sequential requests."""
    return await LatencySampler(count=sample_count, events=events).sample(url)


async def measure_download(
    url: str,
    events: Optional[EventStream] = None,
    timeout: float = TRANSFER_TIMEOUT,
) -> float:
    """Download *url* once and return the final speed in Mbps."""
    result = await DownloadTester(timeout=timeout, events=events).test(url)
    return result.speed_mbps


async def measure_upload(
    url: str,
    payload_size_bytes: int = UPLOAD_PAYLOAD_SIZE,
    events: Optional[EventStream] = None,
    timeout: float = TRANSFER_TIMEOUT,
) -> float:
    """POST a filler payload of *payload_size_bytes* and return the speed in Mbps."""
    tester = UploadTester(payload_size=payload_size_bytes, timeout=timeout, events=events)
    result = await tester.test(url)
    return result.speed_mbps


def start_session(
    target: str,
    timeout_ms: int = PROBE_TIMEOUT_MS,
    tick_interval_ms: int = PROBE_INTERVAL_MS,
    events: Optional[EventStream] = None,
) -> ProbeSession:
    """Start a continuous probe session; the caller owns the returned handle."""
    session = ProbeSession(timeout_ms=timeout_ms, tick_interval_ms=tick_interval_ms, events=events)
    return session.start(target)


async def stop_session(session: ProbeSession) -> None:
    """
    Stop *session* and release its HTTP client.

    No outcome is delivered once the session has stopped; the coroutine
    returns after in-flight probes have settled and the client is closed.
    """
    await session.aclose()
