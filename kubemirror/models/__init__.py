"""Core data structures for kubemirror."""

from kubemirror.models.config import KubeMirrorConfig
from kubemirror.models.events import ChangeEvent, ChangeType, WatchEventType
from kubemirror.models.resources import ObjectRecord, ResourceKey, ResourceKind

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "KubeMirrorConfig",
    "ObjectRecord",
    "ResourceKey",
    "ResourceKind",
    "WatchEventType",
]
