"""
Download speed test module.

Streams a single HTTPS GET of a test file.  Progress estimates are
published as chunks arrive; the final speed is total bytes (the
server-declared Content-Length when present) over total elapsed time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .constants import CHUNK_SIZE, COMMON_HEADERS
from .stats import ThroughputResult
from .throughput import ThroughputTester
from .urls import cache_bust

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class DownloadResult(ThroughputResult):
    """Download test result."""

    declared_bytes: Optional[int] = None
    bytes_read: int = 0

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["declared_bytes"] = self.declared_bytes
        result["bytes_read"] = self.bytes_read
        return result


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class DownloadTester(ThroughputTester):
    """Single-stream streaming download tester."""

    direction = "download"

    def __init__(self, chunk_size: int = CHUNK_SIZE, **kwargs) -> None:
        super().__init__(**kwargs)
        self.chunk_size = chunk_size

    async def _transfer(self, url: str) -> DownloadResult:
        result = DownloadResult()
        headers = {**COMMON_HEADERS, "Accept-Encoding": "identity"}
        timeout = aiohttp.ClientTimeout(total=None)

        async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
            self._start_clock()
            async with session.get(cache_bust(url)) as resp:
                resp.raise_for_status()
                result.declared_bytes = resp.content_length

                async for chunk in resp.content.iter_chunked(self.chunk_size):
                    result.bytes_read += len(chunk)
                    self._report(result.bytes_read)

            result.elapsed_seconds = self._elapsed()

        if result.declared_bytes is not None:
            result.bytes_transferred = result.declared_bytes
        else:
            result.bytes_transferred = result.bytes_read

        if result.declared_bytes is not None and result.declared_bytes != result.bytes_read:
            logger.debug(
                "Declared length %d differs from bytes read %d",
                result.declared_bytes, result.bytes_read,
            )

        result.calculate()
        return result
