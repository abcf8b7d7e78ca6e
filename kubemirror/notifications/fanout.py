"""Pod change fan-out for kubemirror.

PodEventFanout -- Registry of pod change subscribers.  The pod MirrorStore
                  calls ``dispatch`` after each applied watch change; every
                  subscriber runs synchronously, in registration order, on
                  the pod supervisor's task.

Subscribers are not isolated from each other: a slow subscriber delays pod
sync, and an exception aborts the current watch pass (the supervisor backs
off and re-lists).  There is no unsubscribe.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import structlog

from kubemirror.models.events import ChangeEvent, ChangeType
from kubemirror.models.resources import ObjectRecord

_log = structlog.get_logger(component="notifications.fanout")

PodCallback = Callable[[ChangeType, ObjectRecord], None]


class PodEventFanout:
    """Append-only subscriber list guarded by a lock shared with dispatch.

    Registration from another thread waits for an in-flight dispatch to
    finish.  A subscriber registered during a dispatch (including from inside
    a callback) only sees later events.
    """

    def __init__(self) -> None:
        # Re-entrant so a callback may subscribe without deadlocking.
        self._lock = threading.RLock()
        self._subscribers: list[PodCallback] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: PodCallback) -> None:
        with self._lock:
            self._subscribers.append(callback)
            count = len(self._subscribers)
        _log.debug("pod_subscriber_added", subscribers=count)

    def dispatch(self, event: ChangeEvent) -> None:
        """Invoke every subscriber with the change type and the decoded record."""
        with self._lock:
            for callback in tuple(self._subscribers):
                callback(event.type, event.record)
