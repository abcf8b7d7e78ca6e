"""Shared fixtures for kubemirror integration tests.

Wires a full MirrorClient (every store, supervisor, fan-out and the log
multiplexer) onto the in-memory FakeTransport from the top-level conftest.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from kubemirror.client import MirrorClient
from kubemirror.models.config import KubeMirrorConfig
from tests.conftest import FakeTransport


@pytest.fixture()
async def mirror(fake_transport: FakeTransport, fast_config: KubeMirrorConfig) -> AsyncIterator[MirrorClient]:
    """A MirrorClient over the fake transport; not started, always stopped."""
    client = MirrorClient(fake_transport, fast_config)
    yield client
    await client.stop()
