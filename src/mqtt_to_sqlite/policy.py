"""
Reconnect backoff policy.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field


@dataclass
class BackoffPolicy:
    """Bounded exponential backoff with explicit state.

    The current delay starts at min_delay, is multiplied after every failure up
    to max_delay, and returns to min_delay on reset() (a successful handshake).
    With jitter enabled each delay is drawn from 50-100% of the nominal value.
    """

    min_delay: float = 2.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: bool = False
    _current: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.min_delay <= 0:
            raise ValueError("min_delay must be > 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.max_delay < self.min_delay:
            self.max_delay = self.min_delay
        self._current = self.min_delay

    @property
    def current(self) -> float:
        """Delay the next call to next_delay() is based on."""
        return self._current

    def next_delay(self) -> float:
        """Return the delay to wait now and advance the curve."""
        delay = self._current
        self._current = min(self._current * self.multiplier, self.max_delay)
        if self.jitter:
            delay = delay * random.uniform(0.5, 1.0)
        return delay

    def reset(self) -> None:
        self._current = self.min_delay
