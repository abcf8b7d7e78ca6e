"""Backoff supervisor that keeps one resource kind mirrored forever.

Each attempt resolves the kind's API target, probes that the server still
serves it, and runs one Reflector pass.  Between attempts the supervisor
waits an exponentially growing delay; the wait is cut short by the shared
stop event.  Errors never escape ``run()``: they are logged and retried.

State machine::

    idle -> probing -> unsupported -> backoff -> probing ...
                    -> syncing -> backoff -> probing ...
    (any state) -- stop --> stopped
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog

from kubemirror.collector.backoff import ExponentialBackoff
from kubemirror.collector.reflector import Reflector
from kubemirror.collector.resources import ResourceTarget, resolve_target

if TYPE_CHECKING:
    from kubemirror.cache.mirror_store import MirrorStore
    from kubemirror.collector.discovery import CapabilityProbe
    from kubemirror.collector.transport import ResourceTransport

_log = structlog.get_logger(component="collector.supervisor")


class SupervisorState(StrEnum):
    """Lifecycle state of a WatchSupervisor."""

    IDLE = "idle"
    PROBING = "probing"
    UNSUPPORTED = "unsupported"
    SYNCING = "syncing"
    BACKOFF = "backoff"
    STOPPED = "stopped"


class WatchSupervisor:
    """Drives one MirrorStore's list-and-watch protocol until stopped.

    Args:
        store:         The kind's MirrorStore; its kind selects the target.
        transport:     API access used by the Reflector.
        probe:         Capability probe consulted before every attempt.
        stop_event:    Shared shutdown signal.
        backoff:       Delay policy; defaults to 1s doubling up to 5 minutes.
        watch_timeout_seconds: Server-side watch timeout per pass.
        reset_after_seconds:   A pass that synced at least this long resets
                               the backoff to its floor.
        clock:         Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        store: MirrorStore,
        transport: ResourceTransport,
        probe: CapabilityProbe,
        stop_event: asyncio.Event,
        backoff: ExponentialBackoff | None = None,
        watch_timeout_seconds: int = 300,
        reset_after_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._transport = transport
        self._probe = probe
        self._stop_event = stop_event
        self._backoff = backoff or ExponentialBackoff()
        self._watch_timeout = watch_timeout_seconds
        self._reset_after = reset_after_seconds
        self._clock = clock
        self._target: ResourceTarget | None = None
        self._state = SupervisorState.IDLE
        self._log = _log.bind(kind=store.kind.value)

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def target(self) -> ResourceTarget | None:
        """The resolved target of the current attempt, if any."""
        return self._target

    def stop(self) -> None:
        """Signal shutdown.  Idempotent; the in-flight watch is unblocked by task cancellation."""
        self._stop_event.set()

    async def run(self) -> None:
        """Attempt, back off, repeat, until the stop event is set."""
        try:
            while not self._stop_event.is_set():
                delay = await self._attempt()
                if self._stop_event.is_set():
                    break
                self._state = SupervisorState.BACKOFF
                if await self._wait(delay):
                    break
        finally:
            self._state = SupervisorState.STOPPED
            self._log.debug("supervisor_stopped")

    async def _attempt(self) -> float:
        """Run one probe-and-sync attempt; return the delay before the next one."""
        self._state = SupervisorState.PROBING
        try:
            target = await self._resolve()
            if not await self._probe.supports(target.group_version, target.plural):
                self._target = None
                self._state = SupervisorState.UNSUPPORTED
                # An unserved kind mirrors as empty, even if it was synced before.
                self._store.replace([], "")
                delay = self._backoff.next_delay()
                self._log.info("resource_unsupported", group_version=target.group_version, retry_in=delay)
                return delay

            self._state = SupervisorState.SYNCING
            started = self._clock()
            try:
                await Reflector(self._store, self._transport, target, self._watch_timeout).list_and_watch()
            finally:
                if self._clock() - started >= self._reset_after:
                    self._backoff.reset()
            return self._backoff.next_delay()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._target = None
            delay = self._backoff.next_delay()
            self._log.warning(
                "watch_attempt_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in=delay,
            )
            return delay

    async def _resolve(self) -> ResourceTarget:
        """Resolve the target once and reuse it until an attempt fails."""
        if self._target is None:
            self._target = await resolve_target(self._store.kind, self._probe)
            self._log.debug("target_resolved", group_version=self._target.group_version)
        return self._target

    async def _wait(self, delay: float) -> bool:
        """Sleep *delay* seconds; return True if the stop event fired first."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True
