"""Tests for meter.session -- continuous probing against a local server."""

import asyncio
import socket
import unittest
from unittest import mock

from aiohttp import test_utils, web

from meter.api import start_session, stop_session
from meter.session import OutcomeKind, ProbeOutcome, ProbeSession, SessionPhase


def _unused_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _take(sub, n, timeout=3.0):
    out = []

    async def _collect():
        async for outcome in sub:
            out.append(outcome)
            if len(out) >= n:
                return

    await asyncio.wait_for(_collect(), timeout)
    return out


class ProbeServerCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.hits = 0
        self.tokens = []

        async def ok(request):
            self.hits += 1
            self.tokens.append(request.query.get("t"))
            return web.Response(text="ok")

        async def slow(request):
            self.hits += 1
            await asyncio.sleep(0.3)
            return web.Response(text="late")

        app = web.Application()
        app.router.add_get("/ok", ok)
        app.router.add_get("/slow", slow)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()

    async def asyncTearDown(self):
        await self.server.close()

    def url(self, path):
        return str(self.server.make_url(path))


class TestProbeSession(ProbeServerCase):
    async def test_replies(self):
        async with ProbeSession(timeout_ms=1000, tick_interval_ms=50) as session:
            sub = session.events.subscribe()
            session.start(self.url("/ok"))
            outcomes = await _take(sub, 3)

        self.assertTrue(all(o.kind is OutcomeKind.REPLY for o in outcomes))
        self.assertTrue(all(o.latency_ms > 0 for o in outcomes))
        self.assertEqual(sorted(o.sequence for o in outcomes), [1, 2, 3])

    async def test_first_probe_is_immediate(self):
        async with ProbeSession(timeout_ms=1000, tick_interval_ms=10_000) as session:
            sub = session.events.subscribe()
            session.start(self.url("/ok"))
            outcomes = await _take(sub, 1, timeout=1.0)
        self.assertEqual(outcomes[0].sequence, 1)

    async def test_timeout_classified_as_timeout(self):
        async with ProbeSession(timeout_ms=50, tick_interval_ms=10_000) as session:
            sub = session.events.subscribe()
            session.start(self.url("/slow"))
            outcomes = await _take(sub, 1)
        self.assertIs(outcomes[0].kind, OutcomeKind.TIMEOUT)

    async def test_refused_classified_as_error(self):
        async with ProbeSession(timeout_ms=1000, tick_interval_ms=10_000) as session:
            sub = session.events.subscribe()
            session.start(f"http://127.0.0.1:{_unused_port()}/")
            outcomes = await _take(sub, 1)
        self.assertIs(outcomes[0].kind, OutcomeKind.ERROR)
        self.assertTrue(outcomes[0].message)

    async def test_no_outcome_after_stop(self):
        session = ProbeSession(timeout_ms=2000, tick_interval_ms=10_000)
        sub = session.events.subscribe()
        session.start(self.url("/slow"))
        await asyncio.sleep(0.05)
        self.assertEqual(session.in_flight, 1)

        session.stop()
        await session.aclose()

        self.assertEqual(self.hits, 1)
        self.assertEqual(sub.drain(), [])
        self.assertTrue(sub.closed)

    async def test_stop_is_idempotent(self):
        session = ProbeSession()
        session.start(self.url("/ok"))
        session.stop()
        session.stop()
        self.assertIs(session.phase, SessionPhase.STOPPED)
        self.assertFalse(session.state.running)
        await session.aclose()

    async def test_cannot_restart(self):
        session = ProbeSession()
        session.start(self.url("/ok"))
        with self.assertRaises(RuntimeError):
            session.start(self.url("/ok"))
        await session.aclose()
        with self.assertRaises(RuntimeError):
            session.start(self.url("/ok"))

    async def test_bare_target_normalised(self):
        session = ProbeSession(tick_interval_ms=10_000)
        session.start("127.0.0.1:1")
        self.assertEqual(session.state.target, "https://127.0.0.1:1")
        await session.aclose()

    async def test_each_tick_is_cache_busted(self):
        async with ProbeSession(timeout_ms=1000, tick_interval_ms=30) as session:
            sub = session.events.subscribe()
            session.start(self.url("/ok"))
            await _take(sub, 5)

        self.assertGreaterEqual(len(self.tokens), 5)
        self.assertNotIn(None, self.tokens)
        self.assertEqual(len(set(self.tokens)), len(self.tokens))

    async def test_unexpected_failure_still_yields_one_outcome(self):
        with mock.patch("meter.session.head_rtt", side_effect=ValueError("bad header")):
            with self.assertLogs("meter.session", level="ERROR"):
                async with ProbeSession(timeout_ms=1000, tick_interval_ms=10_000) as session:
                    sub = session.events.subscribe()
                    session.start(self.url("/ok"))
                    outcomes = await _take(sub, 1)

        self.assertIs(outcomes[0].kind, OutcomeKind.ERROR)
        self.assertEqual(outcomes[0].sequence, 1)
        self.assertEqual(outcomes[0].message, "bad header")

    async def test_api_start_stop(self):
        session = start_session(self.url("/ok"), timeout_ms=1000, tick_interval_ms=50)
        sub = session.events.subscribe()
        await _take(sub, 2)
        sub.drain()
        await stop_session(session)
        self.assertFalse(session.running)
        self.assertTrue(session.closed)
        self.assertEqual(sub.drain(), [])

    async def test_stop_session_closes_client_with_request_in_flight(self):
        session = start_session(self.url("/slow"), timeout_ms=2000, tick_interval_ms=10_000)
        client = session._http
        await asyncio.sleep(0.05)
        self.assertEqual(session.in_flight, 1)

        await stop_session(session)

        self.assertTrue(client.closed)
        self.assertTrue(session.closed)
        self.assertEqual(session.in_flight, 0)

    async def test_stop_alone_keeps_client_open(self):
        session = start_session(self.url("/ok"), tick_interval_ms=10_000)
        session.stop()
        self.assertFalse(session.closed)
        await session.aclose()
        self.assertTrue(session.closed)


class TestStartOutsideLoop(unittest.TestCase):
    def test_requires_running_loop(self):
        session = ProbeSession()
        with self.assertRaises(RuntimeError):
            session.start("example.com")
        self.assertIs(session.phase, SessionPhase.IDLE)

    def test_empty_target_rejected(self):
        with self.assertRaises(ValueError):
            ProbeSession().start("  ")


class TestProbeOutcome(unittest.TestCase):
    def test_reply_to_dict(self):
        d = ProbeOutcome.reply(4, 12.34567).to_dict()
        self.assertEqual(d, {"type": "reply", "sequence": 4, "latencyMs": 12.346})

    def test_timeout_to_dict(self):
        self.assertEqual(ProbeOutcome.timeout(2).to_dict(), {"type": "timeout", "sequence": 2})

    def test_error_to_dict(self):
        d = ProbeOutcome.error(3, "refused").to_dict()
        self.assertEqual(d["message"], "refused")


if __name__ == "__main__":
    unittest.main()
