"""Unit tests for kubemirror.collector.transport.KubernetesTransport.

The kubernetes-asyncio API objects are replaced with mocks; these tests pin
how the transport drives them and how raw responses are decoded.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from kubemirror.collector.errors import WatchDecodeError, WatchExpiredError, WatchStreamError
from kubemirror.collector.resources import candidates
from kubemirror.collector.transport import KubernetesTransport, _decode_watch_event
from kubemirror.models.events import WatchEventType
from kubemirror.models.resources import ResourceKind
from tests.conftest import make_raw

_POD_TARGET = candidates(ResourceKind.POD)[0]
_DEPLOYMENT_TARGET = candidates(ResourceKind.DEPLOYMENT)[0]


def _transport() -> KubernetesTransport:
    api_client = MagicMock()
    api_client.sanitize_for_serialization.side_effect = lambda item: {"metadata": {"name": item.name}}
    transport = KubernetesTransport(api_client)
    transport._core = MagicMock()
    transport._custom = MagicMock()
    return transport


class _FakeWatch:
    """Stands in for kubernetes_asyncio.watch.Watch."""

    def __init__(self, events: list[dict[str, Any]], error: Exception | None = None) -> None:
        self._events = events
        self._error = error
        self.stream_call: tuple[Any, tuple[Any, ...], dict[str, Any]] | None = None
        self.stopped = False

    def stream(self, func: Any, *args: Any, **kwargs: Any) -> _FakeWatch:
        self.stream_call = (func, args, kwargs)
        return self

    async def __aenter__(self) -> _FakeWatch:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def __aiter__(self) -> Any:
        return self._iterate()

    async def _iterate(self) -> Any:
        for event in self._events:
            yield event
        if self._error is not None:
            raise self._error

    def stop(self) -> None:
        self.stopped = True


def _install_watch(monkeypatch: pytest.MonkeyPatch, fake: _FakeWatch) -> None:
    monkeypatch.setattr("kubemirror.collector.transport.k8s_watch", SimpleNamespace(Watch=lambda: fake))


# ---------------------------------------------------------------------------
# Watch event decoding
# ---------------------------------------------------------------------------


class TestDecodeWatchEvent:
    def test_change_event_yields_raw_object(self) -> None:
        raw = make_raw("web-0")
        assert _decode_watch_event({"type": "MODIFIED", "raw_object": raw}) == (WatchEventType.MODIFIED, raw)

    def test_bookmark_passes_through(self) -> None:
        event_type, _ = _decode_watch_event({"type": "BOOKMARK", "raw_object": {"metadata": {"resourceVersion": "9"}}})
        assert event_type is WatchEventType.BOOKMARK

    def test_unknown_type_is_a_decode_error(self) -> None:
        with pytest.raises(WatchDecodeError, match="unknown watch event type"):
            _decode_watch_event({"type": "RENAMED", "raw_object": {}})

    def test_missing_object_is_a_decode_error(self) -> None:
        with pytest.raises(WatchDecodeError):
            _decode_watch_event({"type": "ADDED", "raw_object": "not-a-dict"})

    def test_gone_error_event_is_expired_checkpoint(self) -> None:
        with pytest.raises(WatchExpiredError):
            _decode_watch_event({"type": "ERROR", "raw_object": {"code": 410, "message": "too old resource version"}})

    def test_other_error_event_is_stream_error(self) -> None:
        with pytest.raises(WatchStreamError) as excinfo:
            _decode_watch_event({"type": "ERROR", "raw_object": {"code": 500, "message": "etcd unavailable"}})
        assert excinfo.value.code == 500
        assert excinfo.value.reason == "etcd unavailable"


# ---------------------------------------------------------------------------
# Discovery and list
# ---------------------------------------------------------------------------


class TestDiscovery:
    async def test_core_group_uses_core_api(self) -> None:
        transport = _transport()
        transport._core.get_api_resources = AsyncMock(
            return_value=SimpleNamespace(resources=[SimpleNamespace(name="pods"), SimpleNamespace(name="nodes")])
        )
        assert await transport.api_resources("v1") == ["pods", "nodes"]

    async def test_named_group_splits_group_version(self) -> None:
        transport = _transport()
        transport._custom.get_api_resources = AsyncMock(return_value=SimpleNamespace(resources=None))
        assert await transport.api_resources("batch/v1beta1") == []
        transport._custom.get_api_resources.assert_awaited_once_with("batch", "v1beta1")


class TestList:
    async def test_core_kind_is_sanitized_to_raw_dicts(self) -> None:
        transport = _transport()
        transport._core.list_pod_for_all_namespaces = AsyncMock(
            return_value=SimpleNamespace(
                items=[SimpleNamespace(name="web-0"), SimpleNamespace(name="web-1")],
                metadata=SimpleNamespace(resource_version="42"),
            )
        )

        items, resource_version = await transport.list(_POD_TARGET)

        assert [item["metadata"]["name"] for item in items] == ["web-0", "web-1"]
        assert resource_version == "42"

    async def test_grouped_kind_uses_custom_objects_api(self) -> None:
        transport = _transport()
        transport._custom.list_cluster_custom_object = AsyncMock(
            return_value={"items": [make_raw("api")], "metadata": {"resourceVersion": "9"}}
        )

        items, resource_version = await transport.list(_DEPLOYMENT_TARGET)

        assert items == [make_raw("api")]
        assert resource_version == "9"
        transport._custom.list_cluster_custom_object.assert_awaited_once_with("apps", "v1", "deployments")


# ---------------------------------------------------------------------------
# Watch
# ---------------------------------------------------------------------------


class TestWatch:
    async def test_streams_decoded_events_from_checkpoint(self, monkeypatch: pytest.MonkeyPatch) -> None:
        raw = make_raw("api", rv="6")
        fake = _FakeWatch([{"type": "ADDED", "raw_object": raw}])
        _install_watch(monkeypatch, fake)
        transport = _transport()

        events = [item async for item in transport.watch(_DEPLOYMENT_TARGET, "5", 60)]

        assert events == [(WatchEventType.ADDED, raw)]
        assert fake.stream_call is not None
        func, args, kwargs = fake.stream_call
        assert func is transport._custom.list_cluster_custom_object
        assert args == ("apps", "v1", "deployments")
        assert kwargs["resource_version"] == "5"
        assert kwargs["timeout_seconds"] == 60
        assert kwargs["allow_watch_bookmarks"] is True
        assert kwargs["_request_timeout"] > 60
        assert fake.stopped

    async def test_gone_is_mapped_to_expired_checkpoint(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = _FakeWatch([], error=ApiException(status=410, reason="Expired"))
        _install_watch(monkeypatch, fake)

        with pytest.raises(WatchExpiredError):
            _ = [item async for item in _transport().watch(_POD_TARGET, "5", 60)]
        assert fake.stopped

    async def test_other_api_errors_propagate(self, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = _FakeWatch([], error=ApiException(status=403, reason="Forbidden"))
        _install_watch(monkeypatch, fake)

        with pytest.raises(ApiException) as excinfo:
            _ = [item async for item in _transport().watch(_POD_TARGET, "5", 60)]
        assert excinfo.value.status == 403


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


class TestOpenLog:
    async def test_follows_with_timestamps(self) -> None:
        transport = _transport()
        response = MagicMock(status=200)
        response.content.readany = AsyncMock(return_value=b"2024-01-01T00:00:00Z hello\n")
        transport._core.read_namespaced_pod_log = AsyncMock(return_value=response)

        stream = await transport.open_log("default", "web-0", "app")

        assert await stream.read() == b"2024-01-01T00:00:00Z hello\n"
        stream.close()
        response.close.assert_called_once()
        kwargs = transport._core.read_namespaced_pod_log.await_args.kwargs
        assert kwargs["follow"] is True
        assert kwargs["timestamps"] is True
        assert kwargs["container"] == "app"

    async def test_error_status_raises_and_releases_response(self) -> None:
        transport = _transport()
        response = MagicMock(status=400, reason="Bad Request")
        response.text = AsyncMock(return_value="container sidecar is not valid")
        transport._core.read_namespaced_pod_log = AsyncMock(return_value=response)

        with pytest.raises(ApiException) as excinfo:
            await transport.open_log("default", "web-0", "sidecar")

        assert excinfo.value.status == 400
        response.close.assert_called_once()

    async def test_line_longer_than_reader_limit_is_streamed_whole(self) -> None:
        """Large single-line logs (e.g. JSON) must not end the container's stream."""
        reader = aiohttp.StreamReader(MagicMock(), 2**16, loop=asyncio.get_running_loop())
        payload = b"x" * 200_000 + b"\n"
        reader.feed_data(payload)
        reader.feed_eof()
        transport = _transport()
        response = MagicMock(status=200)
        response.content = reader
        transport._core.read_namespaced_pod_log = AsyncMock(return_value=response)

        stream = await transport.open_log("default", "web-0", "app")
        received = b""
        while chunk := await stream.read():
            received += chunk

        assert received == payload
