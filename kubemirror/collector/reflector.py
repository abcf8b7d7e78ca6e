"""List-then-watch synchronisation of one MirrorStore.

One ``list_and_watch()`` call is one pass of the sync protocol:

1. list the whole collection and atomically replace the store's contents,
   checkpointing at the list's resource version;
2. watch from that checkpoint, applying each change in arrival order and
   advancing the checkpoint;
3. return when the server ends the watch (timeout) or the checkpoint has
   expired (410).  Anything else raises and is the supervisor's problem.
"""

from __future__ import annotations

from contextlib import aclosing
from typing import TYPE_CHECKING, Any

import structlog

from kubemirror.collector.errors import WatchDecodeError, WatchExpiredError
from kubemirror.models.events import ChangeEvent, WatchEventType
from kubemirror.models.resources import ObjectRecord

if TYPE_CHECKING:
    from kubemirror.cache.mirror_store import MirrorStore
    from kubemirror.collector.resources import ResourceTarget
    from kubemirror.collector.transport import ResourceTransport

_log = structlog.get_logger(component="collector.reflector")


class Reflector:
    """Keeps *store* in sync with *target* for one list-and-watch pass."""

    def __init__(
        self,
        store: MirrorStore,
        transport: ResourceTransport,
        target: ResourceTarget,
        watch_timeout_seconds: int = 300,
    ) -> None:
        self._store = store
        self._transport = transport
        self._target = target
        self._watch_timeout = watch_timeout_seconds

    async def list_and_watch(self) -> int:
        """Run one pass; return the number of watch changes applied."""
        await self.relist()
        applied = 0
        try:
            stream = self._transport.watch(self._target, self._store.resource_version, self._watch_timeout)
            async with aclosing(stream) as events:
                async for event_type, raw in events:
                    if event_type is WatchEventType.BOOKMARK:
                        self._store.advance(str((raw.get("metadata") or {}).get("resourceVersion") or ""))
                        continue
                    self._store.apply(ChangeEvent.from_watch(event_type, self._decode(raw)))
                    applied += 1
        except WatchExpiredError as exc:
            _log.info("watch_expired", kind=self._target.kind.value, reason=str(exc), applied=applied)
            return applied
        _log.debug("watch_closed", kind=self._target.kind.value, applied=applied)
        return applied

    async def relist(self) -> None:
        items, resource_version = await self._transport.list(self._target)
        records = [self._decode(raw) for raw in items]
        self._store.replace(records, resource_version)
        _log.info(
            "store_listed",
            kind=self._target.kind.value,
            group_version=self._target.group_version,
            count=len(records),
            resource_version=resource_version,
        )

    def _decode(self, raw: dict[str, Any]) -> ObjectRecord:
        try:
            return ObjectRecord.from_raw(self._target.kind, raw)
        except ValueError as exc:
            raise WatchDecodeError(str(exc)) from exc
