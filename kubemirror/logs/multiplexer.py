"""Merge several container log streams into one.

LogMultiplexer  -- Opens one stream per container; if any open fails, every
                   stream opened so far is closed before LogOpenError is
                   raised.
MergedLogStream -- Async iterator of LogLine chunks from all sources.  Ends
                   when every source reaches EOF; ``aclose()`` closes every
                   source.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

import structlog

_log = structlog.get_logger(component="logs.multiplexer")

_QUEUE_SIZE = 256
_EOF = object()


class LogStream(Protocol):
    async def read(self) -> bytes:
        """Return the next chunk, or ``b""`` at end of stream."""
        ...

    def close(self) -> None: ...


LogOpener = Callable[[str], Awaitable[LogStream]]


class LogOpenError(Exception):
    """Opening one container's log stream failed; no stream was handed back."""

    def __init__(self, container: str, cause: Exception) -> None:
        super().__init__(f"Failed to open logs for container '{container}': {cause}")
        self.container = container
        self.cause = cause


@dataclass(frozen=True)
class LogLine:
    """One chunk read from a container's log stream."""

    container: str
    data: bytes

    def render(self, width: int = 0) -> bytes:
        """Prefix the chunk with ``[container]`` padded to *width* characters."""
        label = f"[{self.container:<{width}}] ".encode()
        return label + self.data


class MergedLogStream:
    """Interleaves lines from every source as they arrive.

    Chunks from one source keep their order; there is no ordering across
    sources.  A source that fails mid-read is logged and treated as ended.
    """

    def __init__(self, sources: dict[str, LogStream]) -> None:
        self._sources = sources
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=_QUEUE_SIZE)
        self._remaining = len(sources)
        self._closed = False
        self._tasks = [
            asyncio.create_task(self._pump(container, stream), name=f"log-{container}")
            for container, stream in sources.items()
        ]

    @property
    def containers(self) -> list[str]:
        return list(self._sources)

    @property
    def label_width(self) -> int:
        """Width of the longest container name, for aligned rendering."""
        return max((len(name) for name in self._sources), default=0)

    @property
    def closed(self) -> bool:
        return self._closed

    async def _pump(self, container: str, stream: LogStream) -> None:
        try:
            while data := await stream.read():
                await self._queue.put(LogLine(container, data))
        except Exception as exc:
            _log.warning("log_source_failed", container=container, error=str(exc))
        await self._queue.put(_EOF)

    def __aiter__(self) -> MergedLogStream:
        return self

    async def __anext__(self) -> LogLine:
        while self._remaining > 0 and not self._closed:
            item = await self._queue.get()
            if self._closed:
                break
            if item is _EOF:
                self._remaining -= 1
                continue
            assert isinstance(item, LogLine)
            return item
        await self.aclose()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Stop every reader and close every source.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        _close_all(self._sources)
        if not self._queue.full():
            # Wake a reader parked in __anext__.
            self._queue.put_nowait(_EOF)

    async def __aenter__(self) -> MergedLogStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class LogMultiplexer:
    """Opens and merges the log streams of several containers."""

    def __init__(self, opener: LogOpener) -> None:
        self._opener = opener

    async def open(self, containers: Sequence[str]) -> MergedLogStream:
        """Open every container's stream or none of them.

        Raises:
            LogOpenError: opening a stream failed; all streams opened for
                          this call have been closed.
        """
        opened: dict[str, LogStream] = {}
        # Duplicate names would open two streams under one key.
        for container in dict.fromkeys(containers):
            try:
                opened[container] = await self._opener(container)
            except asyncio.CancelledError:
                _close_all(opened)
                raise
            except Exception as exc:
                _close_all(opened)
                raise LogOpenError(container, exc) from exc
        return MergedLogStream(opened)


def _close_all(sources: dict[str, LogStream]) -> None:
    for container, stream in sources.items():
        try:
            stream.close()
        except Exception as exc:
            _log.warning("log_source_close_failed", container=container, error=str(exc))
