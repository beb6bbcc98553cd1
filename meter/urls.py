"""URL helpers: cache-busting tokens and probe target normalisation."""
from __future__ import annotations

import itertools
import time

from .constants import CACHE_BUST_PARAM, DEFAULT_SCHEME

_counter = itertools.count()


def cache_bust(url: str) -> str:
    """
    Append a unique ``t=`` token to *url*.

    The token is the current time in milliseconds plus a process-wide
    counter, so two requests issued within the same millisecond still get
    different URLs.
    """
    token = f"{int(time.time() * 1000)}{next(_counter)}"
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{CACHE_BUST_PARAM}={token}"


def normalize_target(target: str) -> str:
    """Return *target* as a fully-qualified URL (``https://`` when bare)."""
    target = target.strip()
    if not target:
        raise ValueError("Target must not be empty")
    if target.startswith(("http://", "https://")):
        return target
    return f"{DEFAULT_SCHEME}{target}"
