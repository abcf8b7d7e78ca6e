"""Resource kind to API endpoint resolution.

Every ResourceKind maps to a fixed, closed set of candidate ResourceTargets.
Only CronJob has more than one: ``batch/v1`` (Kubernetes >= 1.21) is
preferred, ``batch/v1beta1`` is used only when discovery reports the modern
endpoint missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from kubemirror.models.resources import ResourceKind

if TYPE_CHECKING:
    from kubemirror.collector.discovery import CapabilityProbe


@dataclass(frozen=True)
class ResourceTarget:
    """Where a kind is served: API group, version and plural resource name."""

    kind: ResourceKind
    group: str
    version: str
    namespaced: bool = True

    @property
    def plural(self) -> str:
        return self.kind.value

    @property
    def group_version(self) -> str:
        """``v1`` for the core group, ``group/version`` otherwise."""
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def is_core(self) -> bool:
        return not self.group


_CANDIDATES: dict[ResourceKind, tuple[ResourceTarget, ...]] = {
    ResourceKind.POD: (ResourceTarget(ResourceKind.POD, "", "v1"),),
    ResourceKind.SERVICE: (ResourceTarget(ResourceKind.SERVICE, "", "v1"),),
    ResourceKind.NODE: (ResourceTarget(ResourceKind.NODE, "", "v1", namespaced=False),),
    ResourceKind.NAMESPACE: (ResourceTarget(ResourceKind.NAMESPACE, "", "v1", namespaced=False),),
    ResourceKind.DEPLOYMENT: (ResourceTarget(ResourceKind.DEPLOYMENT, "apps", "v1"),),
    ResourceKind.DAEMON_SET: (ResourceTarget(ResourceKind.DAEMON_SET, "apps", "v1"),),
    ResourceKind.STATEFUL_SET: (ResourceTarget(ResourceKind.STATEFUL_SET, "apps", "v1"),),
    ResourceKind.JOB: (ResourceTarget(ResourceKind.JOB, "batch", "v1"),),
    ResourceKind.CRON_JOB: (
        ResourceTarget(ResourceKind.CRON_JOB, "batch", "v1"),
        ResourceTarget(ResourceKind.CRON_JOB, "batch", "v1beta1"),
    ),
}


def candidates(kind: ResourceKind) -> tuple[ResourceTarget, ...]:
    """Return the candidate targets for *kind*, most preferred first."""
    return _CANDIDATES[kind]


async def resolve_target(kind: ResourceKind, probe: CapabilityProbe) -> ResourceTarget:
    """Pick the target to sync *kind* from.

    Single-candidate kinds resolve without any API call.  For multi-candidate
    kinds each preferred candidate is probed in turn; the last candidate is
    the fallback.  Probe failures propagate: a discovery error is never
    taken as a reason to fall back.
    """
    options = candidates(kind)
    for option in options[:-1]:
        if await probe.supports(option.group_version, option.plural):
            return option
    return options[-1]
