"""Cache layer for kubemirror.

Provides the per-kind in-memory mirrors that the watch supervisors keep in
sync with the API server.  Readers get point-in-time snapshots; only the
owning Reflector writes.

Submodules:
    mirror_store -- MirrorStore: namespace/name keyed cache with atomic re-list.
"""

from kubemirror.cache.mirror_store import MirrorStore

__all__ = ["MirrorStore"]
