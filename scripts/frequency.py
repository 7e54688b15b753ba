"""Rolling history of seconds between float-switch activations."""
from __future__ import annotations

from collections import deque
from typing import Iterable, List

import numpy as np

FREQ_HISTORY = 4  # intervals kept per switch


class IntervalHistory:
    """Fixed-size FIFO of On->On intervals.

    Slots start empty (0). Pushing a new interval evicts the oldest one, so a
    freshly started service needs FREQ_HISTORY activations after the first
    before the ring is fully populated.
    """

    def __init__(self, capacity: int = FREQ_HISTORY, values: Iterable[float] = ()):
        self.capacity = capacity
        self._ring = deque([0.0] * capacity, maxlen=capacity)
        for value in values:
            self.push(value)

    def push(self, seconds: float) -> None:
        self._ring.append(float(seconds))

    def values(self) -> List[float]:
        return list(self._ring)

    def populated(self) -> List[float]:
        return [value for value in self._ring if value]

    @property
    def is_full(self) -> bool:
        return all(self._ring)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntervalHistory):
            return NotImplemented
        return self.values() == other.values()

    def __repr__(self) -> str:
        return f"IntervalHistory({self.values()})"


def get_frequency(history: IntervalHistory) -> float:
    """Average seconds between activations, or 0 when there is no history yet."""
    populated = history.populated()
    if not populated:
        return 0.0
    return float(np.mean(populated))


__all__ = ["FREQ_HISTORY", "IntervalHistory", "get_frequency"]
