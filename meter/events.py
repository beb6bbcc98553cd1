"""
Event streams connecting the measurement engine to its consumers.

A producer owns an :class:`EventStream` and publishes plain dataclass
events into it.  Consumers attach either as an async iterator::

    sub = stream.subscribe()
    async for event in sub:
        ...

or as a synchronous listener (``stream.add_listener(fn)``).  Publishing
never blocks and never waits for a consumer, so rendering cadence cannot
disturb measurement timing.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

_CLOSED = object()

Listener = Callable[[Any], None]


class Subscription:
    """One consumer's view of an :class:`EventStream`."""

    def __init__(self, stream: EventStream) -> None:
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue()
        self._done = False

    # -- Async iteration ----------------------------------------------------

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Any:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._done = True
            raise StopAsyncIteration
        return item

    # -- Non-blocking access ------------------------------------------------

    def drain(self) -> List[Any]:
        """Return every event queued so far without waiting."""
        events = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                self._done = True
                break
            events.append(item)
        return events

    @property
    def closed(self) -> bool:
        return self._done

    def close(self) -> None:
        """Detach from the stream; pending iteration ends."""
        self._stream._detach(self)
        self._push(_CLOSED)

    # -- Internals ----------------------------------------------------------

    def _push(self, item: Any) -> None:
        self._queue.put_nowait(item)


class EventStream:
    """Fan-out of published events to any number of consumers."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []
        self._listeners: List[Listener] = []
        self.closed = False

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        if self.closed:
            sub._push(_CLOSED)
        else:
            self._subscriptions.append(sub)
        return sub

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it again."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def publish(self, event: Any) -> None:
        if self.closed:
            logger.debug("Dropping %r published after close", event)
            return
        for sub in list(self._subscriptions):
            sub._push(event)
        for listener in list(self._listeners):
            listener(event)

    def close(self) -> None:
        """End every subscription.  Later publishes are ignored."""
        if self.closed:
            return
        self.closed = True
        for sub in self._subscriptions:
            sub._push(_CLOSED)
        self._subscriptions.clear()
        self._listeners.clear()

    def _detach(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
