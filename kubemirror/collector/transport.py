"""Kubernetes API access for the collectors.

``ResourceTransport`` is the narrow surface the rest of kubemirror depends on:
discovery, bulk list, watch, and log streaming.  ``KubernetesTransport``
implements it on top of kubernetes-asyncio.  Objects cross this boundary as
raw JSON-shaped dicts (camelCase keys, as sent by the API server) so every
kind, core or grouped, is handled the same way downstream.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]
from kubernetes_asyncio import watch as k8s_watch  # type: ignore[import-untyped]
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kubemirror.collector.errors import WatchDecodeError, WatchExpiredError, WatchStreamError
from kubemirror.models.events import WatchEventType

if TYPE_CHECKING:
    from kubemirror.collector.resources import ResourceTarget
    from kubemirror.logs.multiplexer import LogStream
    from kubemirror.models.config import KubernetesConfig

_log = structlog.get_logger(component="collector.transport")

# Client-side read timeout on top of the server-side watch timeout.
_WATCH_READ_SLACK_SECONDS = 30

# Core (group "") kinds are listed through the typed CoreV1Api methods.
_CORE_LISTERS = {
    "pods": "list_pod_for_all_namespaces",
    "services": "list_service_for_all_namespaces",
    "nodes": "list_node",
    "namespaces": "list_namespace",
}

WatchItem = tuple[WatchEventType, dict[str, Any]]


class ResourceTransport(Protocol):
    async def api_resources(self, group_version: str) -> list[str]: ...

    async def list(self, target: ResourceTarget) -> tuple[list[dict[str, Any]], str]: ...

    def watch(self, target: ResourceTarget, resource_version: str, timeout_seconds: int) -> AsyncIterator[WatchItem]: ...

    async def open_log(self, namespace: str, pod: str, container: str) -> LogStream: ...


class KubernetesTransport:
    """ResourceTransport backed by a kubernetes-asyncio ApiClient."""

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self._api_client = api_client
        self._core = k8s_client.CoreV1Api(api_client)
        self._custom = k8s_client.CustomObjectsApi(api_client)

    @classmethod
    async def connect(cls, config: KubernetesConfig) -> KubernetesTransport:
        """Load credentials (in-cluster service account, else kubeconfig) and connect.

        An explicit kubeconfig path skips the in-cluster attempt.
        """
        if not config.kubeconfig:
            try:
                # load_incluster_config() is synchronous in kubernetes-asyncio
                k8s_config.load_incluster_config()
                _log.info("k8s_client_configured", source="in_cluster")
                return cls(k8s_client.ApiClient())
            except k8s_config.ConfigException:
                pass
        await k8s_config.load_kube_config(
            config_file=config.kubeconfig or None,
            context=config.context or None,
        )
        _log.info("k8s_client_configured", source="kubeconfig", context=config.context or "current")
        return cls(k8s_client.ApiClient())

    async def close(self) -> None:
        await self._api_client.close()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def api_resources(self, group_version: str) -> list[str]:
        """Names of the resources served under *group_version*.

        Raises ApiException (404 when the group/version is not served).
        """
        if "/" in group_version:
            group, version = group_version.split("/", 1)
            result = await self._custom.get_api_resources(group, version)
        else:
            result = await self._core.get_api_resources()
        return [resource.name for resource in result.resources or []]

    # ------------------------------------------------------------------
    # List / watch
    # ------------------------------------------------------------------

    async def list(self, target: ResourceTarget) -> tuple[list[dict[str, Any]], str]:
        """Fetch the whole collection across all namespaces.

        Returns the raw items and the collection resource version.
        """
        func, args = self._lister(target)
        result = await func(*args)
        if target.is_core:
            items = [self._api_client.sanitize_for_serialization(item) for item in result.items or []]
            resource_version = result.metadata.resource_version if result.metadata else ""
        else:
            items = list(result.get("items") or [])
            resource_version = (result.get("metadata") or {}).get("resourceVersion", "")
        return items, str(resource_version or "")

    async def watch(
        self,
        target: ResourceTarget,
        resource_version: str,
        timeout_seconds: int,
    ) -> AsyncIterator[WatchItem]:
        """Stream changes from *resource_version* until the server closes the watch.

        Raises:
            WatchExpiredError: the checkpoint is no longer available (410).
            WatchStreamError:  the server sent any other ERROR event.
            WatchDecodeError:  an event could not be decoded.
        """
        func, args = self._lister(target)
        watcher = k8s_watch.Watch()
        try:
            async with watcher.stream(
                func,
                *args,
                resource_version=resource_version,
                timeout_seconds=timeout_seconds,
                allow_watch_bookmarks=True,
                _request_timeout=timeout_seconds + _WATCH_READ_SLACK_SECONDS,
            ) as stream:
                async for event in stream:
                    yield _decode_watch_event(event)
        except ApiException as exc:
            if exc.status == 410:
                raise WatchExpiredError(f"{target.plural}: {exc.reason}") from exc
            raise
        finally:
            watcher.stop()

    def _lister(self, target: ResourceTarget) -> tuple[Any, tuple[str, ...]]:
        if target.is_core:
            return getattr(self._core, _CORE_LISTERS[target.plural]), ()
        return self._custom.list_cluster_custom_object, (target.group, target.version, target.plural)

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def open_log(self, namespace: str, pod: str, container: str) -> LogStream:
        """Open a followed, timestamped log stream for one container."""
        response = await self._core.read_namespaced_pod_log(
            name=pod,
            namespace=namespace,
            container=container,
            follow=True,
            timestamps=True,
            _preload_content=False,
        )
        # Without preloading, kubernetes-asyncio hands back the raw aiohttp
        # response and leaves status checking to the caller.
        if not 200 <= response.status <= 299:
            body = await response.text()
            response.close()
            raise ApiException(status=response.status, reason=body or response.reason)
        return ResponseLogStream(response)


class ResponseLogStream:
    """LogStream over a streaming aiohttp response."""

    def __init__(self, response: Any) -> None:
        self._response = response

    async def read(self) -> bytes:
        # Chunked reads: a line-based read fails on lines longer than the
        # reader limit and would end the stream early.
        return await self._response.content.readany()

    def close(self) -> None:
        self._response.close()


def _decode_watch_event(event: dict[str, Any]) -> WatchItem:
    raw_type = event.get("type")
    try:
        event_type = WatchEventType(raw_type)
    except ValueError:
        raise WatchDecodeError(f"unknown watch event type: {raw_type!r}") from None
    raw = event.get("raw_object")
    if not isinstance(raw, dict):
        raise WatchDecodeError(f"{event_type} event without an object")
    # kubernetes-asyncio raises ApiException for ERROR events itself; this
    # branch covers transports that hand ERROR events through as data.
    if event_type is WatchEventType.ERROR:
        code = int(raw.get("code") or 0)
        if code == 410:
            raise WatchExpiredError(str(raw.get("message", "resource version expired")))
        raise WatchStreamError(code, str(raw.get("message") or raw.get("reason") or ""))
    return event_type, raw
