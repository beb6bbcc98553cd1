"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Iterable, List

from .constants import EXCELLENT_BELOW_MS, FAIR_BELOW_MS, GOOD_BELOW_MS


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ThroughputResult:
    """Bytes moved by one transfer and the rate derived from them."""

    bytes_transferred: int = 0
    elapsed_seconds: float = 0.0
    speed_mbps: float = 0.0
    samples: List[float] = field(default_factory=list)

    def calculate(self) -> None:
        self.speed_mbps = calculate_speed_mbps(self.bytes_transferred, self.elapsed_seconds)

    def to_dict(self) -> dict:
        return {
            "bytes": self.bytes_transferred,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "speed_mbps": round(self.speed_mbps, 2),
            "samples": [round(s, 2) for s in self.samples],
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_speed_mbps(bytes_transferred: int, elapsed_seconds: float) -> float:
    """Decimal megabits per second (1 Mbps = 1,000,000 bit/s)."""
    if elapsed_seconds <= 0:
        return 0.0
    return (bytes_transferred * 8) / elapsed_seconds / 1_000_000


def calculate_mean(samples: Iterable[float]) -> float:
    values = list(samples)
    if not values:
        return 0.0
    return statistics.mean(values)


def calculate_jitter(samples: Iterable[float]) -> float:
    """Population standard deviation of the samples (divide by n, not n-1)."""
    values = list(samples)
    if not values:
        return 0.0
    return statistics.pstdev(values)


_LATENCY_BUCKETS = [
    (EXCELLENT_BELOW_MS, "excellent"),
    (GOOD_BELOW_MS, "good"),
    (FAIR_BELOW_MS, "fair"),
]

BUCKET_NAMES = ("excellent", "good", "fair", "poor")


def classify_latency(latency_ms: float) -> str:
    """
    Map a latency onto its quality bucket.

    Lower bounds are inclusive: 30 ms is "good", 100 ms is "fair" and
    250 ms is "poor".
    """
    for upper, name in _LATENCY_BUCKETS:
        if latency_ms < upper:
            return name
    return "poor"


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
