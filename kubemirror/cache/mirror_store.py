"""Per-kind in-memory mirror of a Kubernetes collection.

A MirrorStore holds the latest known ObjectRecord for every
``(namespace, name)`` of one resource kind, plus the resource version the
mirror is checkpointed at.  It is written by exactly one Reflector (the
kind's WatchSupervisor task) and read by any number of callers.

Writes come in two shapes:

* ``replace``  -- a full re-list.  The whole mapping is swapped in one step,
                  so readers never see a half-applied list.
* ``apply``    -- one incremental watch change, applied in arrival order.

All state changes happen under a single ``threading.Lock``; ``list()`` returns
a copy taken under the same lock, so it is safe from any thread.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

import structlog

from kubemirror.models.events import ChangeEvent, ChangeType
from kubemirror.models.resources import ObjectRecord, ResourceKey, ResourceKind

_log = structlog.get_logger(component="cache.mirror_store")

ChangeHook = Callable[[ChangeEvent], None]


class MirrorStore:
    """Local cache for one resource kind, keyed by namespace and name."""

    def __init__(self, kind: ResourceKind, on_change: ChangeHook | None = None) -> None:
        self._kind = kind
        self._on_change = on_change
        self._lock = threading.Lock()
        self._items: dict[ResourceKey, ObjectRecord] = {}
        self._resource_version = ""

    @property
    def kind(self) -> ResourceKind:
        return self._kind

    @property
    def resource_version(self) -> str:
        """Checkpoint the next watch should resume from."""
        with self._lock:
            return self._resource_version

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self) -> list[ObjectRecord]:
        """Return a point-in-time snapshot of every record."""
        with self._lock:
            return list(self._items.values())

    def get(self, namespace: str, name: str) -> ObjectRecord | None:
        with self._lock:
            return self._items.get(ResourceKey(namespace, name))

    # ------------------------------------------------------------------
    # Writes (Reflector only)
    # ------------------------------------------------------------------

    def replace(self, records: Iterable[ObjectRecord], resource_version: str) -> None:
        """Swap the whole mapping for a fresh list result.

        Duplicate keys in *records* keep the entry with the highest resource
        version, so the outcome does not depend on the order the server
        returned the list in.
        """
        items: dict[ResourceKey, ObjectRecord] = {}
        for record in records:
            current = items.get(record.key)
            if current is None or _newer(record, current):
                items[record.key] = record
        with self._lock:
            self._items = items
            self._resource_version = resource_version
        _log.debug("store_replaced", kind=self._kind.value, count=len(items), resource_version=resource_version)

    def apply(self, event: ChangeEvent) -> None:
        """Apply one watch change, then notify the change hook.

        ADDED and UPDATED overwrite the key; DELETED removes it.  The
        checkpoint advances to the record's resource version.
        """
        record = event.record
        with self._lock:
            if event.type is ChangeType.DELETED:
                self._items.pop(record.key, None)
            else:
                self._items[record.key] = record
            if record.resource_version:
                self._resource_version = record.resource_version
        if self._on_change is not None:
            self._on_change(event)

    def advance(self, resource_version: str) -> None:
        """Move the checkpoint forward without touching contents (bookmarks)."""
        if not resource_version:
            return
        with self._lock:
            self._resource_version = resource_version


def _newer(candidate: ObjectRecord, current: ObjectRecord) -> bool:
    """Compare resource versions numerically when both are numeric."""
    a, b = candidate.resource_version, current.resource_version
    if a.isdigit() and b.isdigit():
        return int(a) > int(b)
    return a > b
