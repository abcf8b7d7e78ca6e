"""Collector package for kubemirror.

Keeps every MirrorStore in sync with the API server through list-then-watch
passes run by long-lived, backoff-supervised asyncio tasks.

Submodules
----------
resources   -- ResourceTarget table and CronJob modern/legacy resolution.
discovery   -- CapabilityProbe: is a resource served under a group/version?
transport   -- KubernetesTransport: kubernetes-asyncio list, watch, logs.
reflector   -- Reflector: one list-and-watch pass, 410 ends the pass cleanly.
backoff     -- ExponentialBackoff: doubling delay with a ceiling and reset.
supervisor  -- WatchSupervisor: probe, sync, back off, repeat until stopped.
"""

from kubemirror.collector.backoff import ExponentialBackoff
from kubemirror.collector.discovery import CapabilityProbe
from kubemirror.collector.reflector import Reflector
from kubemirror.collector.resources import ResourceTarget, resolve_target
from kubemirror.collector.supervisor import SupervisorState, WatchSupervisor

__all__ = [
    "CapabilityProbe",
    "ExponentialBackoff",
    "Reflector",
    "ResourceTarget",
    "SupervisorState",
    "WatchSupervisor",
    "resolve_target",
]
