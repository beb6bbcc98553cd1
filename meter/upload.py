"""
Upload speed test module.

Streams a pre-generated payload as the body of one HTTPS POST.  The body
is produced by an async generator, so every chunk handed to the transport
is observed and counted.

Upload speed is a client-send-rate measurement: if the request fails
after bytes were written (the endpoint rejected or reset it), the rate
observed up to that point is still returned, flagged ``partial``.
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import aiohttp

from .constants import CHUNK_SIZE, COMMON_HEADERS, UPLOAD_PAYLOAD_SIZE
from .stats import ThroughputResult
from .throughput import ThroughputTester
from .urls import cache_bust

logger = logging.getLogger(__name__)


@dataclass
class UploadResult(ThroughputResult):
    """Upload test result."""

    payload_bytes: int = 0
    partial: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["payload_bytes"] = self.payload_bytes
        result["partial"] = self.partial
        if self.error:
            result["error"] = self.error
        return result


class UploadTester(ThroughputTester):
    """
    Single-stream upload tester.

    The filler payload is generated once per tester and reused by every
    :meth:`test` call.
    """

    direction = "upload"

    HEADERS = {
        **COMMON_HEADERS,
        "Content-Type": "application/octet-stream",
    }

    def __init__(
        self,
        payload_size: int = UPLOAD_PAYLOAD_SIZE,
        chunk_size: int = CHUNK_SIZE,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.chunk_size = chunk_size
        self._payload = os.urandom(payload_size)

    @property
    def payload_size(self) -> int:
        return len(self._payload)

    async def _transfer(self, url: str) -> UploadResult:
        result = UploadResult(payload_bytes=self.payload_size)
        sent = 0

        async def _body() -> AsyncIterator[bytes]:
            nonlocal sent
            view = memoryview(self._payload)
            for offset in range(0, len(view), self.chunk_size):
                chunk = bytes(view[offset:offset + self.chunk_size])
                yield chunk
                # Resumed only after the transport took the chunk.
                sent += len(chunk)
                self._report(sent)

        timeout = aiohttp.ClientTimeout(total=None)

        async with aiohttp.ClientSession(headers=self.HEADERS, timeout=timeout) as session:
            self._start_clock()
            try:
                async with session.post(cache_bust(url), data=_body()) as resp:
                    await resp.read()
            except asyncio.TimeoutError:
                raise
            except (aiohttp.ClientError, OSError) as exc:
                if sent == 0:
                    raise
                logger.warning(
                    "Upload completion failed after %d of %d bytes (%s); "
                    "keeping the measured send rate",
                    sent, self.payload_size, exc,
                )
                result.error = str(exc) or type(exc).__name__
            result.elapsed_seconds = self._elapsed()

        result.bytes_transferred = sent
        result.partial = result.error is not None or sent < self.payload_size
        result.calculate()
        return result
