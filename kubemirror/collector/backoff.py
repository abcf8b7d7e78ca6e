"""Exponential retry delay policy for the watch supervisors."""

from __future__ import annotations

from kubemirror.models.config import BackoffConfig


class ExponentialBackoff:
    """Doubling delay between ``initial`` and ``maximum`` seconds.

    ``next_delay()`` returns the delay to wait now and grows the next one;
    successive calls never decrease until ``reset()`` drops back to the floor.
    """

    def __init__(self, initial: float = 1.0, maximum: float = 300.0, multiplier: float = 2.0) -> None:
        if initial <= 0:
            raise ValueError("initial backoff must be positive")
        if maximum < initial:
            raise ValueError("maximum backoff must not be below initial backoff")
        if multiplier < 1.0:
            raise ValueError("backoff multiplier must be >= 1.0")
        self._initial = initial
        self._maximum = maximum
        self._multiplier = multiplier
        self._current = initial

    @classmethod
    def from_config(cls, config: BackoffConfig) -> ExponentialBackoff:
        return cls(initial=config.initial_seconds, maximum=config.max_seconds, multiplier=config.multiplier)

    @property
    def current(self) -> float:
        """Delay the next ``next_delay()`` call will return."""
        return self._current

    def next_delay(self) -> float:
        delay = self._current
        self._current = min(self._current * self._multiplier, self._maximum)
        return delay

    def reset(self) -> None:
        self._current = self._initial
