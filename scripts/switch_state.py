"""Runtime state of the monitored float switches."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional

from frequency import IntervalHistory

DEFAULT_BOUNCE = 5  # seconds
MAX_SWITCHES = 100


class Transition(Enum):
    NONE = "none"
    TO_ON = "on"
    TO_OFF = "off"


@dataclass
class SwitchState:
    switch_id: int
    pin: int
    level: int = 0
    bounce: float = DEFAULT_BOUNCE
    on_action: Optional[str] = None
    off_action: Optional[str] = None
    state: bool = False
    last_on_at: Optional[float] = None
    last_off_at: Optional[float] = None
    history: IntervalHistory = field(default_factory=IntervalHistory)
    last_reported_frequency: float = 0.0

    def debounce_elapsed(self, now: float) -> bool:
        # Both directions are gated on the last Off time.
        if self.last_off_at is None:
            return True
        return (now - self.last_off_at) >= self.bounce

    def apply_sample(self, level: bool, now: float) -> Transition:
        """Turn a raw pin level into a validated transition.

        Returns Transition.NONE when the level matches the current state or
        when the change arrives inside the bounce window; in both cases the
        record is left untouched.
        """
        level = bool(level)
        if level == self.state:
            return Transition.NONE
        if not self.debounce_elapsed(now):
            return Transition.NONE
        if level:
            if self.last_on_at is not None:
                self.history.push(now - self.last_on_at)
            self.state = True
            self.last_on_at = now
            return Transition.TO_ON
        self.state = False
        self.last_off_at = now
        return Transition.TO_OFF


class SwitchRegistry:
    """Sparse mapping of switch id to SwitchState, iterated in id order."""

    def __init__(self, switches: Optional[Dict[int, SwitchState]] = None):
        self._switches: Dict[int, SwitchState] = dict(switches or {})

    @classmethod
    def from_pins(cls, pins: Dict[int, int]) -> "SwitchRegistry":
        registry = cls()
        for switch_id, pin in pins.items():
            registry.add(SwitchState(switch_id=switch_id, pin=pin))
        return registry

    def add(self, switch: SwitchState) -> None:
        if not 0 <= switch.switch_id < MAX_SWITCHES:
            raise ValueError(f"Switch id {switch.switch_id} outside 0..{MAX_SWITCHES - 1}")
        self._switches[switch.switch_id] = switch

    def get(self, switch_id: int) -> Optional[SwitchState]:
        return self._switches.get(switch_id)

    @property
    def primary(self) -> SwitchState:
        switch = self._switches.get(0)
        if switch is None:
            raise KeyError("Switch0 is not configured")
        return switch

    def ids(self):
        return sorted(self._switches)

    def __contains__(self, switch_id: object) -> bool:
        return switch_id in self._switches

    def __iter__(self) -> Iterator[SwitchState]:
        for switch_id in sorted(self._switches):
            yield self._switches[switch_id]

    def __len__(self) -> int:
        return len(self._switches)


__all__ = [
    "DEFAULT_BOUNCE",
    "MAX_SWITCHES",
    "SwitchRegistry",
    "SwitchState",
    "Transition",
]
