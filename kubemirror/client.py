"""Public entry point: the MirrorClient facade.

Wires one MirrorStore and one WatchSupervisor per ResourceKind, the pod
change fan-out, and on-demand log multiplexing.

Usage::

    client = await create_client()
    client.watch_pods(on_pod_change)
    client.walk_services(print)
    ...
    await client.stop()

Startup order: config -> logging -> Kubernetes transport -> stores ->
supervisors.  ``stop()`` is idempotent: it signals every supervisor, cancels
their tasks (unblocking in-flight watches) and waits a bounded grace period.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from kubemirror.cache.mirror_store import MirrorStore
from kubemirror.collector.backoff import ExponentialBackoff
from kubemirror.collector.discovery import CapabilityProbe
from kubemirror.collector.supervisor import SupervisorState, WatchSupervisor
from kubemirror.config import load_config
from kubemirror.logs.multiplexer import LogMultiplexer, LogStream, MergedLogStream
from kubemirror.models.config import KubeMirrorConfig
from kubemirror.models.resources import ObjectRecord, ResourceKind
from kubemirror.notifications.fanout import PodCallback, PodEventFanout
from kubemirror.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from kubemirror.collector.transport import ResourceTransport

Visitor = Callable[[ObjectRecord], None]
CronJobVisitor = Callable[[ObjectRecord, list[ObjectRecord]], None]

_log = get_logger("client")


class MirrorClient:
    """Keeps every supported resource kind mirrored and exposes the snapshots.

    Each ``walk_*`` method visits the current snapshot of one kind.  The first
    exception raised by the visitor stops the walk and propagates; entries
    already visited are not rolled back.
    """

    def __init__(
        self,
        transport: ResourceTransport,
        config: KubeMirrorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._config = config or KubeMirrorConfig()
        self._probe = CapabilityProbe(transport)
        self._pod_events = PodEventFanout()
        self._stop_event = asyncio.Event()
        self._stores: dict[ResourceKind, MirrorStore] = {}
        self._supervisors: dict[ResourceKind, WatchSupervisor] = {}
        for kind in ResourceKind:
            on_change = self._pod_events.dispatch if kind is ResourceKind.POD else None
            store = MirrorStore(kind, on_change=on_change)
            self._stores[kind] = store
            self._supervisors[kind] = WatchSupervisor(
                store,
                transport,
                self._probe,
                self._stop_event,
                backoff=ExponentialBackoff.from_config(self._config.backoff),
                watch_timeout_seconds=self._config.watch.timeout_seconds,
                reset_after_seconds=self._config.backoff.reset_after_seconds,
                clock=clock,
            )
        self._tasks: list[asyncio.Task[None]] = []
        self._started = False
        self._stopped = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch one supervisor task per kind.  Repeated calls are no-ops."""
        if self._started or self._stopped:
            return
        self._started = True
        for kind, supervisor in self._supervisors.items():
            self._tasks.append(asyncio.create_task(supervisor.run(), name=f"watch-{kind.value}"))
        _log.info("mirror_started", kinds=[kind.value for kind in self._supervisors])

    async def stop(self) -> None:
        """Stop every supervisor and release the transport.  Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._config.watch.stop_timeout_seconds)
            if pending:
                _log.warning("supervisors_stop_timed_out", pending=sorted(t.get_name() for t in pending))

        close = getattr(self._transport, "close", None)
        if close is not None:
            try:
                await close()
            except Exception as exc:
                _log.debug("transport_close_failed", error=str(exc))
        _log.info("mirror_stopped")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def store(self, kind: ResourceKind) -> MirrorStore:
        return self._stores[kind]

    def supervisor_state(self, kind: ResourceKind) -> SupervisorState:
        return self._supervisors[kind].state

    # ------------------------------------------------------------------
    # Walks
    # ------------------------------------------------------------------

    def _walk(self, kind: ResourceKind, visitor: Visitor) -> None:
        for record in self._stores[kind].list():
            visitor(record)

    def walk_pods(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.POD, visitor)

    def walk_services(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.SERVICE, visitor)

    def walk_deployments(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.DEPLOYMENT, visitor)

    def walk_daemon_sets(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.DAEMON_SET, visitor)

    def walk_stateful_sets(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.STATEFUL_SET, visitor)

    def walk_jobs(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.JOB, visitor)

    def walk_nodes(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.NODE, visitor)

    def walk_namespaces(self, visitor: Visitor) -> None:
        self._walk(ResourceKind.NAMESPACE, visitor)

    def walk_cron_jobs(self, visitor: CronJobVisitor) -> None:
        """Visit each CronJob together with the Jobs it owns."""
        # Index jobs by owner uid once so each cron job lookup is a dict hit.
        jobs_by_owner: dict[str, list[ObjectRecord]] = defaultdict(list)
        for job in self._stores[ResourceKind.JOB].list():
            for owner_uid in job.owner_uids:
                jobs_by_owner[owner_uid].append(job)
        for cron_job in self._stores[ResourceKind.CRON_JOB].list():
            owned = jobs_by_owner.get(cron_job.uid, []) if cron_job.uid else []
            visitor(cron_job, list(owned))

    # ------------------------------------------------------------------
    # Pod events and logs
    # ------------------------------------------------------------------

    def watch_pods(self, callback: PodCallback) -> None:
        """Register *callback* for every future pod change.  There is no unregister."""
        self._pod_events.subscribe(callback)

    async def get_logs(self, namespace: str, pod: str, container_names: Sequence[str]) -> MergedLogStream:
        """Follow the logs of several containers of one pod as a single stream.

        Raises:
            LogOpenError: a container's stream could not be opened; none of the
                          streams opened for this call is left open.
        """

        async def _open(container: str) -> LogStream:
            return await self._transport.open_log(namespace, pod, container)

        return await LogMultiplexer(_open).open(container_names)


async def create_client(config: KubeMirrorConfig | None = None) -> MirrorClient:
    """Build and start a MirrorClient against the configured cluster."""
    from kubemirror.collector.transport import KubernetesTransport

    config = config or load_config()
    setup_logging(config.log.level, config.log.renderer)
    transport = await KubernetesTransport.connect(config.kubernetes)
    client = MirrorClient(transport, config)
    await client.start()
    return client
