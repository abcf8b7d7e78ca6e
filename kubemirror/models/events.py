"""Change event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from kubemirror.models.resources import ObjectRecord, ResourceKey


class WatchEventType(StrEnum):
    """Event types sent by the API server on a watch stream."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    BOOKMARK = "BOOKMARK"
    ERROR = "ERROR"


class ChangeType(StrEnum):
    """Kind of change applied to a MirrorStore."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


_WATCH_TO_CHANGE = {
    WatchEventType.ADDED: ChangeType.ADDED,
    WatchEventType.MODIFIED: ChangeType.UPDATED,
    WatchEventType.DELETED: ChangeType.DELETED,
}


@dataclass(frozen=True)
class ChangeEvent:
    """A single incremental change delivered by a watch stream.

    For DELETED changes ``record`` holds the final object state reported by
    the server; only its key is used to update the store.
    """

    type: ChangeType
    record: ObjectRecord

    @property
    def key(self) -> ResourceKey:
        return self.record.key

    @classmethod
    def from_watch(cls, event_type: WatchEventType, record: ObjectRecord) -> ChangeEvent:
        """Translate a wire event type; BOOKMARK and ERROR have no change."""
        try:
            return cls(type=_WATCH_TO_CHANGE[event_type], record=record)
        except KeyError:
            raise ValueError(f"watch event {event_type} carries no change") from None
