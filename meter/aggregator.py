"""
Live statistics for a continuous probe session.

:func:`apply` is a pure fold: it takes the current :class:`RunningStats`
and one :class:`~meter.session.ProbeOutcome` and returns new stats without
touching its input.  :class:`StatsAggregator` owns the current value and is
the only writer, folding events one at a time in arrival order.

Outcomes may arrive out of sequence order when probes overlap.  Every
counter is commutative, so only the order of the chart series follows
arrival order.

The first reply of a session is a warm-up sample (its RTT includes
connection setup).  It counts as received and is plotted, but it is kept
out of min/max/average/jitter and the distribution.
"""
from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Deque, Dict, Optional

from .constants import HISTORY_WINDOW, LOG_WINDOW, RECENT_WINDOW
from .events import Subscription
from .session import OutcomeKind, ProbeOutcome
from .stats import BUCKET_NAMES, calculate_jitter, classify_latency


@dataclass(frozen=True)
class HistoryPoint:
    sequence: int
    latency_ms: float


@dataclass(frozen=True)
class LogEntry:
    kind: str  # reply | timeout | error | info
    message: str


def _recent() -> Deque[float]:
    return deque(maxlen=RECENT_WINDOW)


def _history() -> Deque[HistoryPoint]:
    return deque(maxlen=HISTORY_WINDOW)


def _log() -> Deque[LogEntry]:
    return deque(maxlen=LOG_WINDOW)


@dataclass
class RunningStats:
    """Counters and windows accumulated over one session."""

    target: str = ""
    sent: int = 0
    received: int = 0
    lost: int = 0
    min: float = math.inf
    max: float = -math.inf
    sum_latency: float = 0.0
    recent_latencies: Deque[float] = field(default_factory=_recent)
    history_points: Deque[HistoryPoint] = field(default_factory=_history)
    distribution: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(BUCKET_NAMES, 0))
    warmup_consumed: bool = False
    log: Deque[LogEntry] = field(default_factory=_log)

    # -- Derived values -----------------------------------------------------

    @property
    def counted(self) -> int:
        """Replies that contribute to latency statistics (warm-up excluded)."""
        return self.received - 1 if self.warmup_consumed else self.received

    @property
    def average_ms(self) -> float:
        return self.sum_latency / self.counted if self.counted > 0 else 0.0

    @property
    def jitter_ms(self) -> float:
        return calculate_jitter(self.recent_latencies)

    @property
    def packet_loss_pct(self) -> float:
        return self.lost / self.sent * 100 if self.sent > 0 else 0.0

    @property
    def peak_latency_ms(self) -> float:
        """Highest latency currently on the chart."""
        if not self.history_points:
            return 0.0
        return max(p.latency_ms for p in self.history_points)

    @property
    def min_ms(self) -> Optional[float]:
        return None if self.min == math.inf else self.min

    @property
    def max_ms(self) -> Optional[float]:
        return None if self.max == -math.inf else self.max

    # -- Copy / serialise ---------------------------------------------------

    def copy(self) -> RunningStats:
        return replace(
            self,
            recent_latencies=deque(self.recent_latencies, maxlen=RECENT_WINDOW),
            history_points=deque(self.history_points, maxlen=HISTORY_WINDOW),
            distribution=dict(self.distribution),
            log=deque(self.log, maxlen=LOG_WINDOW),
        )

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "sent": self.sent,
            "received": self.received,
            "lost": self.lost,
            "packet_loss_pct": round(self.packet_loss_pct, 1),
            "min_ms": None if self.min_ms is None else round(self.min_ms, 1),
            "max_ms": None if self.max_ms is None else round(self.max_ms, 1),
            "average_ms": round(self.average_ms, 1),
            "jitter_ms": round(self.jitter_ms, 1),
            "distribution": dict(self.distribution),
            "history": [
                {"sequence": p.sequence, "latencyMs": round(p.latency_ms, 1)}
                for p in self.history_points
            ],
        }


# ---------------------------------------------------------------------------
# Fold
# ---------------------------------------------------------------------------

def apply(stats: RunningStats, outcome: ProbeOutcome) -> RunningStats:
    """Return *stats* with *outcome* folded in."""
    new = stats.copy()
    new.sent += 1

    if outcome.kind is OutcomeKind.REPLY:
        latency = outcome.latency_ms
        new.received += 1
        new.history_points.append(HistoryPoint(outcome.sequence, latency))

        if not new.warmup_consumed:
            new.warmup_consumed = True
            new.log.append(LogEntry(
                "info",
                f"First reply from {new.target}: {latency:.0f}ms "
                f"(warm-up, excluded from stats)",
            ))
        else:
            new.min = min(new.min, latency)
            new.max = max(new.max, latency)
            new.sum_latency += latency
            new.recent_latencies.append(latency)
            new.distribution[classify_latency(latency)] += 1
            new.log.append(LogEntry("reply", f"Reply from {new.target}: time={latency:.0f}ms"))

    elif outcome.kind is OutcomeKind.TIMEOUT:
        new.lost += 1
        new.log.append(LogEntry("timeout", "Request timed out."))

    else:
        new.lost += 1
        new.log.append(LogEntry("error", f"Error: {outcome.message or 'network failure'}"))

    return new


# ---------------------------------------------------------------------------
# Single-writer owner
# ---------------------------------------------------------------------------

class StatsAggregator:
    """Holds the current :class:`RunningStats` for one session."""

    def __init__(self, target: str = "") -> None:
        self._stats = RunningStats(target=target)

    def snapshot(self) -> RunningStats:
        """Current stats.  Never mutated afterwards; safe to hand to renderers."""
        return self._stats

    def feed(self, outcome: ProbeOutcome) -> RunningStats:
        self._stats = apply(self._stats, outcome)
        return self._stats

    def note(self, message: str) -> None:
        """Append an informational line to the session log."""
        new = self._stats.copy()
        new.log.append(LogEntry("info", message))
        self._stats = new

    async def consume(self, source: Subscription) -> RunningStats:
        """Fold every outcome from *source* until the stream closes."""
        async for outcome in source:
            self.feed(outcome)
        return self._stats
