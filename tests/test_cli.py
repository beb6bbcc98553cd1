"""Tests for CLI validation, target resolution and logging setup."""

import contextlib
import io
import json
import logging
import os
import tempfile
import unittest
from unittest import mock

from meter.config import DEFAULTS
from meter.constants import (
    DEFAULT_PING_COUNT,
    MAX_PING_COUNT,
    MAX_PROBE_INTERVAL_MS,
    MAX_UPLOAD_SIZE,
    MIN_PING_COUNT,
    MIN_PROBE_INTERVAL_MS,
    MIN_UPLOAD_SIZE,
    PRESET_TARGETS,
    PROBE_INTERVAL_MS,
    PROBE_TIMEOUT_MS,
    UPLOAD_PAYLOAD_SIZE,
)
from meter.logging_config import configure_logging


class TestValidation(unittest.TestCase):
    """Test the _validate function from pathmeter.py."""

    def _validate(self, **kwargs):
        # Import here to avoid triggering side effects at module level
        from pathmeter import _validate
        defaults = {
            "ping_count": DEFAULT_PING_COUNT,
            "upload_size": UPLOAD_PAYLOAD_SIZE,
            "timeout_ms": PROBE_TIMEOUT_MS,
            "interval_ms": PROBE_INTERVAL_MS,
        }
        defaults.update(kwargs)
        return _validate(**defaults)

    def test_defaults_valid(self):
        # Should not raise
        self._validate()

    def test_ping_count_too_low(self):
        with self.assertRaises(ValueError):
            self._validate(ping_count=MIN_PING_COUNT - 1)

    def test_ping_count_too_high(self):
        with self.assertRaises(ValueError):
            self._validate(ping_count=MAX_PING_COUNT + 1)

    def test_ping_count_boundaries(self):
        self._validate(ping_count=MIN_PING_COUNT)
        self._validate(ping_count=MAX_PING_COUNT)

    def test_upload_size_bounds(self):
        self._validate(upload_size=MIN_UPLOAD_SIZE)
        self._validate(upload_size=MAX_UPLOAD_SIZE)
        with self.assertRaises(ValueError):
            self._validate(upload_size=MIN_UPLOAD_SIZE - 1)
        with self.assertRaises(ValueError):
            self._validate(upload_size=MAX_UPLOAD_SIZE + 1)

    def test_interval_bounds(self):
        self._validate(interval_ms=MIN_PROBE_INTERVAL_MS)
        self._validate(interval_ms=MAX_PROBE_INTERVAL_MS)
        with self.assertRaises(ValueError):
            self._validate(interval_ms=MIN_PROBE_INTERVAL_MS - 1)
        with self.assertRaises(ValueError):
            self._validate(interval_ms=MAX_PROBE_INTERVAL_MS + 1)

    def test_timeout_must_be_positive(self):
        with self.assertRaises(ValueError):
            self._validate(timeout_ms=0)


class TestResolveTarget(unittest.TestCase):
    def test_preset_name(self):
        from pathmeter import _resolve_target
        name, host = next(iter(PRESET_TARGETS.items()))
        self.assertEqual(_resolve_target(name), host)
        self.assertEqual(_resolve_target(name.upper()), host)

    def test_passthrough(self):
        from pathmeter import _resolve_target
        self.assertEqual(_resolve_target("example.org"), "example.org")


class TestListTargets(unittest.TestCase):
    def test_list_targets_exits_cleanly(self):
        import pathmeter
        with mock.patch("sys.argv", ["pathmeter", "--list-targets"]), \
                mock.patch.object(pathmeter, "load_config", return_value=dict(DEFAULTS)), \
                mock.patch.object(pathmeter.console, "print") as printed:
            pathmeter.main()
        self.assertGreaterEqual(printed.call_count, len(PRESET_TARGETS))

    def test_invalid_args_exit_1(self):
        import pathmeter
        with mock.patch("sys.argv", ["pathmeter", "--ping-count", "0"]), \
                mock.patch.object(pathmeter, "load_config", return_value=dict(DEFAULTS)), \
                mock.patch.object(pathmeter.console, "print"):
            with self.assertRaises(SystemExit) as ctx:
                pathmeter.main()
        self.assertEqual(ctx.exception.code, 1)


class TestConfigCommands(unittest.TestCase):
    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.path = os.path.join(tmpdir.name, "config.json")
        patcher = mock.patch("meter.config._config_path", return_value=self.path)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _main(self, *argv):
        import pathmeter
        out = io.StringIO()
        with mock.patch("sys.argv", ["pathmeter", *argv]), \
                mock.patch.object(pathmeter.console, "print"), \
                contextlib.redirect_stdout(out):
            pathmeter.main()
        return out.getvalue()

    def test_set_then_get(self):
        self._main("--config-set", "ping_count=12")
        self._main("--config-set", "target=1.1.1.1")
        with open(self.path, encoding="utf-8") as fh:
            saved = json.load(fh)
        self.assertEqual(saved["ping_count"], 12)
        self.assertEqual(saved["target"], "1.1.1.1")
        self.assertEqual(json.loads(self._main("--config-get", "ping_count")), 12)

    def test_saved_value_becomes_default(self):
        self._main("--config-set", "probe_interval_ms=250")
        self.assertEqual(json.loads(self._main("--config-show"))["probe_interval_ms"], 250)

    def test_show_reports_path(self):
        import pathmeter
        with mock.patch("sys.argv", ["pathmeter", "--config-show"]), \
                mock.patch.object(pathmeter.console, "print") as printed, \
                contextlib.redirect_stdout(io.StringIO()):
            pathmeter.main()
        self.assertIn(self.path, printed.call_args_list[0][0][0])

    def test_unknown_key_exits_1(self):
        bad = (
            ("--config-set", "colour=red"),
            ("--config-get", "colour"),
            ("--config-set", "ping_count"),
        )
        for argv in bad:
            with self.subTest(argv=argv), self.assertRaises(SystemExit) as ctx:
                self._main(*argv)
            self.assertEqual(ctx.exception.code, 1)
        self.assertFalse(os.path.exists(self.path))


class TestConfigureLogging(unittest.TestCase):
    def tearDown(self):
        configure_logging("WARNING")

    def test_explicit_level(self):
        self.assertEqual(configure_logging("debug"), logging.DEBUG)

    def test_env_level(self):
        with mock.patch.dict(os.environ, {"PATHMETER_LOG_LEVEL": "ERROR"}):
            self.assertEqual(configure_logging(), logging.ERROR)

    def test_default_and_unknown(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(configure_logging(), logging.WARNING)
        self.assertEqual(configure_logging("chatty"), logging.WARNING)


if __name__ == "__main__":
    unittest.main()
