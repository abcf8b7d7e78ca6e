"""Watch stream exceptions shared by the transport and the reflector."""

from __future__ import annotations


class WatchExpiredError(Exception):
    """The watch checkpoint is too old for the server (HTTP 410 Gone).

    Not a failure: the reflector ends its pass and the next pass re-lists.
    """


class WatchDecodeError(Exception):
    """A list or watch payload could not be turned into an ObjectRecord."""


class WatchStreamError(Exception):
    """The server reported an ERROR event other than an expired checkpoint."""

    def __init__(self, code: int, reason: str) -> None:
        super().__init__(f"watch error {code}: {reason}")
        self.code = code
        self.reason = reason
