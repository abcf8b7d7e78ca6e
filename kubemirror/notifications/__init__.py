"""Change notification for kubemirror.

Exports:
    PodEventFanout -- Synchronous, ordered delivery of pod changes to every
                      registered subscriber.
    PodCallback    -- Subscriber signature: ``(ChangeType, ObjectRecord) -> None``.
"""

from kubemirror.notifications.fanout import PodCallback, PodEventFanout

__all__ = ["PodCallback", "PodEventFanout"]
