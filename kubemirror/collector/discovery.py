"""Capability probe: which resources does the API server serve?"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from kubemirror.collector.transport import ResourceTransport

_log = structlog.get_logger(component="collector.discovery")


class CapabilityProbe:
    """Checks discovery for a resource under a group/version.

    A 404 for the group/version means the API is not installed and yields
    ``False``.  Every other failure is raised so the caller backs off and
    retries; it is never read as "unsupported".
    """

    def __init__(self, transport: ResourceTransport) -> None:
        self._transport = transport

    async def supports(self, group_version: str, plural: str) -> bool:
        try:
            served = await self._transport.api_resources(group_version)
        except ApiException as exc:
            if exc.status == 404:
                _log.debug("group_version_absent", group_version=group_version, resource=plural)
                return False
            raise
        return plural in served
