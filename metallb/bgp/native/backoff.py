"""Multiplicative backoff for retrying failing operations."""

from __future__ import annotations

from dataclasses import dataclass

BACKOFF_MAX = 120.0
BACKOFF_FACTOR = 2


@dataclass
class Backoff:
    """Delays in seconds: 0, then 1, doubling up to BACKOFF_MAX."""

    next_delay: float = 0.0

    def duration(self) -> float:
        """Return how long to wait before the next retry, in seconds."""
        current = self.next_delay
        if self.next_delay == 0:
            self.next_delay = 1.0
        else:
            self.next_delay = min(self.next_delay * BACKOFF_FACTOR, BACKOFF_MAX)
        return current

    def reset(self) -> None:
        """Make the next duration() return 0."""
        self.next_delay = 0.0