"""
One-shot speed test: latency, then download, then upload.

Stages run strictly in sequence.  The first stage failure ends the run in
the ``ERROR`` state with a single error message and no later stage runs.
Every stage event is re-published on the pipeline's own stream and also
recorded on an in-memory timeline (seconds since the run started), which
is what a live chart of the run plots.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .constants import (
    DEFAULT_PING_COUNT,
    TEST_FILE_URL,
    TRANSFER_TIMEOUT,
    UPLOAD_PAYLOAD_SIZE,
    UPLOAD_TEST_URL,
)
from .download import DownloadResult, DownloadTester
from .errors import MeasurementAborted, MeasurementError
from .events import EventStream
from .latency import LatencyResult, LatencySample, LatencySampler
from .throughput import SpeedProgress, ThroughputTester
from .upload import UploadResult, UploadTester

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    TESTING_PING = "testing_ping"
    TESTING_DOWNLOAD = "testing_download"
    TESTING_UPLOAD = "testing_upload"
    FINISHED = "finished"
    ERROR = "error"

    @property
    def active(self) -> bool:
        return self in (RunState.TESTING_PING, RunState.TESTING_DOWNLOAD, RunState.TESTING_UPLOAD)


@dataclass(frozen=True)
class StateChanged:
    state: RunState


@dataclass
class TimelinePoint:
    time: float
    ping: Optional[float] = None
    download: Optional[float] = None
    upload: Optional[float] = None

    def to_dict(self) -> dict:
        data = {"time": round(self.time, 3)}
        for key in ("ping", "download", "upload"):
            value = getattr(self, key)
            if value is not None:
                data[key] = round(value, 3)
        return data


@dataclass
class RunResult:
    """Outcome of one pipeline run."""

    state: RunState = RunState.IDLE
    ping_ms: Optional[float] = None
    jitter_ms: Optional[float] = None
    download_mbps: Optional[float] = None
    upload_mbps: Optional[float] = None
    upload_partial: bool = False
    error: Optional[str] = None
    timeline: List[TimelinePoint] = field(default_factory=list)
    latency: Optional[LatencyResult] = None
    download: Optional[DownloadResult] = None
    upload: Optional[UploadResult] = None

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.FINISHED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "ping_ms": self.ping_ms,
            "jitter_ms": self.jitter_ms,
            "download_mbps": self.download_mbps,
            "upload_mbps": self.upload_mbps,
            "upload_partial": self.upload_partial,
            "error": self.error,
            "timeline": [p.to_dict() for p in self.timeline],
        }


class SpeedTestPipeline:
    """Runs the three measurement stages against fixed endpoints."""

    def __init__(
        self,
        download_url: str = TEST_FILE_URL,
        upload_url: str = UPLOAD_TEST_URL,
        latency_url: Optional[str] = None,
        ping_count: int = DEFAULT_PING_COUNT,
        upload_size: int = UPLOAD_PAYLOAD_SIZE,
        transfer_timeout: float = TRANSFER_TIMEOUT,
        events: Optional[EventStream] = None,
    ) -> None:
        self.download_url = download_url
        self.upload_url = upload_url
        self.latency_url = latency_url or download_url
        self.ping_count = ping_count
        self.upload_size = upload_size
        self.transfer_timeout = transfer_timeout
        self.events = events if events is not None else EventStream()
        self.current_run = RunResult()
        self._current: Optional[ThroughputTester] = None
        self._latency_task: Optional[asyncio.Future] = None
        self._aborted = False
        self._started = 0.0

    # -- Public API ---------------------------------------------------------

    async def run(self) -> RunResult:
        self.current_run = run = RunResult()
        self._started = time.perf_counter()
        self._aborted = False

        try:
            self._set_state(RunState.TESTING_PING)
            latency = await self._latency_stage()
            run.latency = latency
            run.ping_ms = latency.mean_ms
            run.jitter_ms = latency.jitter_ms

            self._set_state(RunState.TESTING_DOWNLOAD)
            download = await self._throughput_stage(
                DownloadTester(timeout=self.transfer_timeout, events=self._stage_stream()),
                self.download_url,
            )
            run.download = download
            run.download_mbps = download.speed_mbps

            self._set_state(RunState.TESTING_UPLOAD)
            upload = await self._throughput_stage(
                UploadTester(
                    payload_size=self.upload_size,
                    timeout=self.transfer_timeout,
                    events=self._stage_stream(),
                ),
                self.upload_url,
            )
            run.upload = upload
            run.upload_mbps = upload.speed_mbps
            run.upload_partial = upload.partial

        except MeasurementError as exc:
            logger.error("Speed test failed during %s: %s", run.state.value, exc)
            run.error = str(exc)
            self._set_state(RunState.ERROR)
            return run

        self._set_state(RunState.FINISHED)
        return run

    def abort(self) -> None:
        """Abort the stage in progress; the run ends in ``ERROR``."""
        if self._current is not None:
            self._current.abort()
        elif self._latency_task is not None and not self._latency_task.done():
            self._aborted = True
            self._latency_task.cancel()

    # -- Stages -------------------------------------------------------------

    async def _latency_stage(self):
        sampler = LatencySampler(count=self.ping_count, events=self._stage_stream())
        self._latency_task = asyncio.ensure_future(sampler.sample(self.latency_url))
        try:
            return await self._latency_task
        except asyncio.CancelledError:
            if self._aborted:
                logger.info("Latency test aborted by caller")
                raise MeasurementAborted("Latency test was aborted.") from None
            raise
        finally:
            self._latency_task = None

    async def _throughput_stage(self, tester: ThroughputTester, url: str):
        self._current = tester
        try:
            return await tester.test(url)
        finally:
            self._current = None

    # -- Event plumbing -----------------------------------------------------

    def _stage_stream(self) -> EventStream:
        stream = EventStream()
        stream.add_listener(self._on_stage_event)
        return stream

    def _on_stage_event(self, event) -> None:  # noqa: ANN001
        now = time.perf_counter() - self._started
        state = self.current_run.state

        if isinstance(event, LatencySample):
            self.current_run.timeline.append(TimelinePoint(now, ping=event.latency_ms))
        elif isinstance(event, SpeedProgress):
            if state is RunState.TESTING_DOWNLOAD:
                self.current_run.timeline.append(TimelinePoint(now, download=event.speed_mbps))
            elif state is RunState.TESTING_UPLOAD:
                self.current_run.timeline.append(TimelinePoint(now, upload=event.speed_mbps))

        self.events.publish(event)

    def _set_state(self, state: RunState) -> None:
        self.current_run.state = state
        logger.debug("Speed test state -> %s", state.value)
        self.events.publish(StateChanged(state))
