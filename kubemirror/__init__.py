"""kubemirror: resilient local mirror of Kubernetes resource collections.

Exposes:
    MirrorClient  -- per-kind snapshots, pod change subscription, log merge.
    create_client -- build and start a MirrorClient from KUBEMIRROR_* config.
"""

__version__ = "0.1.0"

from kubemirror.client import MirrorClient, create_client  # noqa: E402

__all__ = ["MirrorClient", "__version__", "create_client"]
