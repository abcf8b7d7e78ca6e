"""Mirrored resource data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NamedTuple


class ResourceKind(StrEnum):
    """Resource collections mirrored by kubemirror.

    Values are the plural resource names the API server uses in discovery.
    """

    POD = "pods"
    SERVICE = "services"
    NODE = "nodes"
    NAMESPACE = "namespaces"
    DEPLOYMENT = "deployments"
    DAEMON_SET = "daemonsets"
    JOB = "jobs"
    STATEFUL_SET = "statefulsets"
    CRON_JOB = "cronjobs"


class ResourceKey(NamedTuple):
    """Identity of an object within one kind's store.

    ``namespace`` is empty for cluster-scoped kinds (nodes, namespaces).
    """

    namespace: str
    name: str


@dataclass(frozen=True)
class ObjectRecord:
    """One mirrored object.

    Owned by a single MirrorStore entry.  Records are replaced wholesale on
    every change and never mutated after construction.
    """

    kind: ResourceKind
    namespace: str
    name: str
    resource_version: str
    uid: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.name)

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.raw.get("metadata", {}).get("labels") or {})

    @property
    def owner_uids(self) -> list[str]:
        """UIDs listed in ``metadata.ownerReferences``."""
        refs = self.raw.get("metadata", {}).get("ownerReferences") or []
        return [str(ref.get("uid", "")) for ref in refs if ref.get("uid")]

    @classmethod
    def from_raw(cls, kind: ResourceKind, raw: dict[str, Any]) -> ObjectRecord:
        """Build a record from a raw API object dict.

        Raises:
            ValueError: if the object carries no ``metadata.name``.
        """
        metadata = raw.get("metadata") if isinstance(raw, dict) else None
        if not isinstance(metadata, dict) or not metadata.get("name"):
            raise ValueError(f"{kind} object has no metadata.name")
        return cls(
            kind=kind,
            namespace=str(metadata.get("namespace") or ""),
            name=str(metadata["name"]),
            resource_version=str(metadata.get("resourceVersion") or ""),
            uid=str(metadata.get("uid") or ""),
            raw=raw,
        )
