"""
User configuration file support.

Reads/writes ``~/.pathmeter/config.json``.

Supported keys::

    download_url = "https://cachefly.cachefly.net/10mb.test"
    upload_url = "https://httpbin.org/post"
    latency_url = ""          # empty: use download_url
    ping_count = 5
    upload_size = 10485760    # bytes
    probe_timeout_ms = 2000
    probe_interval_ms = 1000
    target = "one.one.one.one"
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Tuple

from .constants import (
    DEFAULT_PING_COUNT,
    DEFAULT_TARGET,
    PROBE_INTERVAL_MS,
    PROBE_TIMEOUT_MS,
    TEST_FILE_URL,
    UPLOAD_PAYLOAD_SIZE,
    UPLOAD_TEST_URL,
)

logger = logging.getLogger(__name__)

_CONFIG_DIR = os.path.join(Path.home(), ".pathmeter")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "download_url": TEST_FILE_URL,
    "upload_url": UPLOAD_TEST_URL,
    "latency_url": "",
    "ping_count": DEFAULT_PING_COUNT,
    "upload_size": UPLOAD_PAYLOAD_SIZE,
    "probe_timeout_ms": PROBE_TIMEOUT_MS,
    "probe_interval_ms": PROBE_INTERVAL_MS,
    "target": DEFAULT_TARGET,
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return config

    if isinstance(user, dict):
        config.update(user)
    else:
        logger.warning("Ignoring config %s: top level is not an object", path)

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def parse_assignment(text: str) -> Tuple[str, Any]:
    """
    Split ``KEY=VALUE`` for :func:`set_config_value`.

    VALUE is read as JSON when it parses (numbers, booleans, quoted
    strings), otherwise taken verbatim.  Raises ``ValueError`` for a
    missing ``=`` or a key not in :data:`DEFAULTS`.
    """
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Expected KEY=VALUE, got {text!r}")
    if key not in DEFAULTS:
        raise ValueError(f"Unknown config key {key!r} (known: {', '.join(sorted(DEFAULTS))})")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key, value


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
