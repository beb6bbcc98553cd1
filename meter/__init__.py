"""Path-quality measurement engine -- latency, throughput, and live probing."""

from .aggregator import HistoryPoint, LogEntry, RunningStats, StatsAggregator, apply
from .api import (
    measure_download,
    measure_latency,
    measure_upload,
    start_session,
    stop_session,
)
from .download import DownloadResult, DownloadTester
from .errors import (
    MeasurementAborted,
    MeasurementError,
    MeasurementTimeout,
    TransportError,
)
from .events import EventStream, Subscription
from .latency import LatencyResult, LatencySample, LatencySampler
from .pipeline import RunResult, RunState, SpeedTestPipeline, StateChanged
from .scheduler import CancelToken, schedule
from .session import OutcomeKind, ProbeOutcome, ProbeSession, SessionPhase, SessionState
from .stats import (
    ThroughputResult,
    calculate_jitter,
    calculate_mean,
    calculate_speed_mbps,
    classify_latency,
    format_latency,
    format_speed,
)
from .throughput import SpeedProgress
from .upload import UploadResult, UploadTester

__all__ = [
    "CancelToken",
    "DownloadResult",
    "DownloadTester",
    "EventStream",
    "HistoryPoint",
    "LatencyResult",
    "LatencySample",
    "LatencySampler",
    "LogEntry",
    "MeasurementAborted",
    "MeasurementError",
    "MeasurementTimeout",
    "OutcomeKind",
    "ProbeOutcome",
    "ProbeSession",
    "RunResult",
    "RunState",
    "RunningStats",
    "SessionPhase",
    "SessionState",
    "SpeedProgress",
    "SpeedTestPipeline",
    "StateChanged",
    "StatsAggregator",
    "Subscription",
    "ThroughputResult",
    "TransportError",
    "UploadResult",
    "UploadTester",
    "apply",
    "calculate_jitter",
    "calculate_mean",
    "calculate_speed_mbps",
    "classify_latency",
    "format_latency",
    "format_speed",
    "measure_download",
    "measure_latency",
    "measure_upload",
    "schedule",
    "start_session",
    "stop_session",
]
