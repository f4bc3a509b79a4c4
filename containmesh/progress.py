"""Progress events emitted while a mesh is built or torn down.

Orchestration code only ever calls ``reporter.emit(event)``. Presentation
layers (terminal UI, logs, HTTP) attach by choosing a reporter; the
QueueReporter is the one-directional channel between the orchestration task
and a presentation loop running concurrently on the same event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Iterator, Protocol


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """One completed runtime operation."""
    elapsed: float  # seconds
    message: str

    def __str__(self) -> str:
        return f"Docker: {self.message} {self.elapsed:.3f}s"


class ProgressReporter(Protocol):
    def emit(self, event: ProgressEvent) -> None:
        ...


class NullReporter:
    """Discards every event."""

    def emit(self, event: ProgressEvent) -> None:
        pass


class LoggingReporter:
    """Writes events to a logger at INFO level."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def emit(self, event: ProgressEvent) -> None:
        self._log.info(f"{event.message} ({event.elapsed:.3f}s)")


class CollectingReporter:
    """Keeps every event in memory."""

    def __init__(self):
        self.events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.events]


_CLOSED = object()


class QueueReporter:
    """Unbounded asyncio queue feeding a presentation loop.

    ``emit`` never blocks. Consumers iterate with ``async for`` until
    ``close()`` has been called and the queue is drained. Must be used from
    the event loop thread.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            logger.debug(f"Dropping event after close: {event.message}")
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


@contextmanager
def timed(reporter: ProgressReporter, message: str) -> Iterator[None]:
    """Emit ``message`` with the block's duration if the block succeeds."""
    start = time.monotonic()
    yield
    reporter.emit(ProgressEvent(elapsed=time.monotonic() - start, message=message))
