"""
Continuous latency probing ("live ping").

A :class:`ProbeSession` fires one HEAD probe per tick on a fixed-rate
schedule and publishes one :class:`ProbeOutcome` per tick into its event
stream.  Each probe runs as its own task under its own deadline, so a
slow probe may still be in flight when the next tick fires.

Lifecycle::

    IDLE --start()--> RUNNING --stop()--> STOPPED   (terminal)

Once :meth:`ProbeSession.stop` returns, nothing more is published: the
schedule is cancelled and any probe still in flight is left to finish,
but its outcome is dropped.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Set

import aiohttp

from .constants import COMMON_HEADERS, PROBE_INTERVAL_MS, PROBE_TIMEOUT_MS
from .events import EventStream
from .latency import head_rtt
from .scheduler import CancelToken, schedule
from .urls import cache_bust, normalize_target

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Outcomes and state
# ---------------------------------------------------------------------------

class OutcomeKind(str, enum.Enum):
    REPLY = "reply"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one tick: a reply with its latency, a timeout, or an error."""

    kind: OutcomeKind
    sequence: int
    latency_ms: Optional[float] = None
    message: Optional[str] = None

    @classmethod
    def reply(cls, sequence: int, latency_ms: float) -> ProbeOutcome:
        return cls(OutcomeKind.REPLY, sequence, latency_ms=latency_ms)

    @classmethod
    def timeout(cls, sequence: int) -> ProbeOutcome:
        return cls(OutcomeKind.TIMEOUT, sequence)

    @classmethod
    def error(cls, sequence: int, message: str) -> ProbeOutcome:
        return cls(OutcomeKind.ERROR, sequence, message=message)

    def to_dict(self) -> dict:
        data: dict = {"type": self.kind.value, "sequence": self.sequence}
        if self.latency_ms is not None:
            data["latencyMs"] = round(self.latency_ms, 3)
        if self.message is not None:
            data["message"] = self.message
        return data


class SessionPhase(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class SessionState:
    target: str = ""
    running: bool = False
    sequence: int = 0
    timeout_ms: int = PROBE_TIMEOUT_MS
    tick_interval_ms: int = PROBE_INTERVAL_MS


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class ProbeSession:
    """One continuous probing run against a single target."""

    def __init__(
        self,
        timeout_ms: int = PROBE_TIMEOUT_MS,
        tick_interval_ms: int = PROBE_INTERVAL_MS,
        events: Optional[EventStream] = None,
    ) -> None:
        self.state = SessionState(timeout_ms=timeout_ms, tick_interval_ms=tick_interval_ms)
        self.phase = SessionPhase.IDLE
        self.events = events if events is not None else EventStream()
        self._http: Optional[aiohttp.ClientSession] = None
        self._ticker: Optional[CancelToken] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self.phase is SessionPhase.RUNNING

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    @property
    def closed(self) -> bool:
        """True once stopped and the HTTP client has been released."""
        return self.phase is SessionPhase.STOPPED and self._http is None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ProbeSession:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.aclose()

    # -- Lifecycle ----------------------------------------------------------

    def start(self, target: str) -> ProbeSession:
        """Begin probing *target*.  Must be called from a running event loop."""
        if self.phase is not SessionPhase.IDLE:
            raise RuntimeError(
                f"Cannot start a session that is {self.phase.value}; create a new one"
            )

        url = normalize_target(target)
        asyncio.get_running_loop()  # RuntimeError outside a running loop
        self._http = aiohttp.ClientSession(headers=COMMON_HEADERS)

        self.state.target = url
        self.state.sequence = 0
        self.state.running = True
        self.phase = SessionPhase.RUNNING
        logger.info(
            "Probing %s every %d ms (timeout %d ms)",
            url, self.state.tick_interval_ms, self.state.timeout_ms,
        )

        self._tick()
        self._ticker = schedule(self.state.tick_interval_ms / 1000, self._tick)
        return self

    def stop(self) -> None:
        """
        Stop ticking.  In-flight probes finish, but are never published.

        The HTTP client stays open until :meth:`aclose`.
        """
        if self.phase is SessionPhase.STOPPED:
            return

        was_running = self.running
        self.phase = SessionPhase.STOPPED
        self.state.running = False
        if self._ticker is not None:
            self._ticker.cancel()
        self.events.close()

        if was_running:
            logger.info(
                "Stopped probing %s after %d probes (%d still in flight)",
                self.state.target, self.state.sequence, len(self._inflight),
            )

    async def aclose(self) -> None:
        """Stop, wait for in-flight probes to settle, release the HTTP client."""
        self.stop()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        if self._http is not None:
            await self._http.close()
            self._http = None

    # -- Ticks --------------------------------------------------------------

    def _tick(self) -> None:
        if not self.running:
            return
        self.state.sequence += 1
        task = asyncio.ensure_future(self._probe(self.state.sequence))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _probe(self, sequence: int) -> None:
        outcome = await self._measure(sequence)
        if not self.running:
            logger.debug("Dropping outcome of probe %d resolved after stop", sequence)
            return
        self.events.publish(outcome)

    async def _measure(self, sequence: int) -> ProbeOutcome:
        url = cache_bust(self.state.target)
        try:
            latency = await head_rtt(self._http, url, self.state.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.debug("Probe %d timed out", sequence)
            return ProbeOutcome.timeout(sequence)
        except (aiohttp.ClientError, OSError) as exc:
            logger.debug("Probe %d failed: %s", sequence, exc)
            return ProbeOutcome.error(sequence, str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.exception("Probe %d raised unexpectedly", sequence)
            return ProbeOutcome.error(sequence, str(exc) or type(exc).__name__)
        return ProbeOutcome.reply(sequence, latency)
