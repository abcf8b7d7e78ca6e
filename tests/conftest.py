"""Shared fixtures for kubemirror tests.

Provides an in-memory stand-in for the Kubernetes API server (discovery,
list, scripted watch passes, log streams) so supervisors, reflectors and the
MirrorClient can be exercised without a cluster.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from kubemirror.collector.resources import ResourceTarget
from kubemirror.models.config import BackoffConfig, KubeMirrorConfig, WatchConfig
from kubemirror.models.events import WatchEventType

# ---------------------------------------------------------------------------
# Object helpers
# ---------------------------------------------------------------------------


def make_raw(
    name: str,
    namespace: str = "default",
    rv: str = "1",
    uid: str = "",
    owner_uid: str = "",
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Return a minimal raw API object dict."""
    metadata: dict[str, Any] = {
        "name": name,
        "resourceVersion": rv,
        "uid": uid or f"uid-{namespace}-{name}",
        "labels": labels or {},
    }
    if namespace:
        metadata["namespace"] = namespace
    if owner_uid:
        metadata["ownerReferences"] = [{"kind": "CronJob", "name": "owner", "uid": owner_uid}]
    return {"metadata": metadata, "spec": {}, "status": {}}


def bookmark(rv: str) -> tuple[WatchEventType, dict[str, Any]]:
    return WatchEventType.BOOKMARK, {"metadata": {"resourceVersion": rv}}


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds, failing the test after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Fake API server
# ---------------------------------------------------------------------------


_DEFAULT_SERVED = {
    "v1": {"pods", "services", "nodes", "namespaces"},
    "apps/v1": {"deployments", "daemonsets", "statefulsets"},
    "batch/v1": {"jobs", "cronjobs"},
}


class FakeLogStream:
    """LogStream double that yields preset lines then EOF."""

    def __init__(self, lines: list[bytes], block: bool = False) -> None:
        self._lines = deque(lines)
        self._block = block
        self.closed = False

    async def read(self) -> bytes:
        if self._lines:
            return self._lines.popleft()
        if self._block:
            await asyncio.Event().wait()
        return b""

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    """Scriptable ResourceTransport.

    * ``served`` -- group/version -> served plurals; a missing group/version
      answers discovery with a 404.
    * ``collections`` -- (group/version, plural) -> items returned by list.
    * ``watch_passes`` -- (group/version, plural) -> queue of scripted passes.
      Each pass is a list of watch items or exceptions (raised in place).
      With no scripted pass left the watch blocks until cancelled, like an
      idle long-lived watch.
    """

    def __init__(self) -> None:
        self.served: dict[str, set[str]] = {gv: set(plurals) for gv, plurals in _DEFAULT_SERVED.items()}
        self.discovery_errors: dict[str, Exception] = {}
        self.collections: dict[tuple[str, str], list[dict[str, Any]]] = defaultdict(list)
        self.list_versions: dict[tuple[str, str], str] = {}
        self.list_errors: dict[tuple[str, str], deque[Exception]] = defaultdict(deque)
        self.watch_passes: dict[tuple[str, str], deque[list[Any]]] = defaultdict(deque)
        self.calls: list[tuple[str, ...]] = []
        self.log_lines: dict[str, list[bytes]] = {}
        self.log_failures: set[str] = set()
        self.opened_logs: dict[str, FakeLogStream] = {}
        self.closed = False

    def calls_for(self, op: str, plural: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == op and call[2] == plural]

    async def api_resources(self, group_version: str) -> list[str]:
        self.calls.append(("discovery", group_version))
        if group_version in self.discovery_errors:
            raise self.discovery_errors[group_version]
        if group_version not in self.served:
            raise ApiException(status=404, reason="Not Found")
        return sorted(self.served[group_version])

    async def list(self, target: ResourceTarget) -> tuple[list[dict[str, Any]], str]:
        key = (target.group_version, target.plural)
        self.calls.append(("list", target.group_version, target.plural))
        if self.list_errors[key]:
            raise self.list_errors[key].popleft()
        return [dict(item) for item in self.collections[key]], self.list_versions.get(key, "100")

    async def watch(
        self,
        target: ResourceTarget,
        resource_version: str,
        timeout_seconds: int,
    ) -> AsyncIterator[tuple[WatchEventType, dict[str, Any]]]:
        key = (target.group_version, target.plural)
        self.calls.append(("watch", target.group_version, target.plural, resource_version))
        if not self.watch_passes[key]:
            await asyncio.Event().wait()
        for item in self.watch_passes[key].popleft():
            if isinstance(item, BaseException):
                raise item
            yield item

    async def open_log(self, namespace: str, pod: str, container: str) -> FakeLogStream:
        self.calls.append(("logs", namespace, pod, container))
        if container in self.log_failures:
            raise ApiException(status=400, reason=f"container {container} is not valid")
        stream = FakeLogStream(self.log_lines.get(container, []))
        self.opened_logs[container] = stream
        return stream

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_transport() -> FakeTransport:
    """A fake API server serving every mirrored kind, with empty collections."""
    return FakeTransport()


@pytest.fixture()
def fast_config() -> KubeMirrorConfig:
    """Configuration with millisecond backoff so retry paths run quickly."""
    return KubeMirrorConfig(
        backoff=BackoffConfig(initial_seconds=0.01, max_seconds=0.05, multiplier=2.0, reset_after_seconds=30.0),
        watch=WatchConfig(timeout_seconds=300, stop_timeout_seconds=2.0),
    )
