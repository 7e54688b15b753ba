"""Rate-change and overdue checks for the primary (switch 0) float switch."""
from __future__ import annotations

import logging

from frequency import get_frequency
from switch_state import SwitchState

LOGGER = logging.getLogger("anomaly")


class RateChangeDetector:
    """Flags a large swing in activation frequency against a remembered baseline.

    The baseline lives on the switch record (last_reported_frequency) so it
    survives config reloads along with the rest of the runtime counters.
    """

    def __init__(self, threshold_pct: float = 0):
        self.threshold_pct = threshold_pct

    def evaluate(self, switch: SwitchState, frequency: float) -> bool:
        if frequency <= 0:
            return False
        baseline = switch.last_reported_frequency
        if not baseline:
            # Wait for a full history before trusting the average.
            if switch.history.is_full:
                switch.last_reported_frequency = frequency
                LOGGER.info("Rate baseline established at %.0fs", frequency)
            return False
        margin = self.threshold_pct / 100.0
        ratio = baseline / frequency
        if ratio > 1.0 + margin or ratio < 1.0 - margin:
            LOGGER.info(
                "Rate change: frequency %.0fs -> %.0fs (ratio %.2f)", baseline, frequency, ratio
            )
            switch.last_reported_frequency = frequency
            return True
        return False


class OverdueDetector:
    """One notice per On-episode when switch 0 stays On past its usual cycle."""

    def __init__(self, threshold_seconds: float = 0):
        self.threshold_seconds = threshold_seconds
        self.notified = False

    def evaluate(self, switch: SwitchState, now: float) -> bool:
        if not switch.state or self.notified:
            return False
        freq = get_frequency(switch.history)
        if freq == 0:
            return False
        last_off = switch.last_off_at or 0.0
        if (now - last_off) >= freq + self.threshold_seconds:
            self.notified = True
            LOGGER.warning(
                "Switch%d overdue: %.0fs since last off, average cycle %.0fs",
                switch.switch_id,
                now - last_off,
                freq,
            )
            return True
        return False

    def reset(self) -> None:
        self.notified = False


__all__ = ["OverdueDetector", "RateChangeDetector"]
