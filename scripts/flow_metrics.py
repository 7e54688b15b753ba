"""
Volume and inflow estimates for a cylindrical sump pit.

Dimensions are millimetres, volumes litres, rates litres per hour. All of the
estimates fall back to 0 when the frequency history is too short to say
anything; 0 means "insufficient data", never a measured zero.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

import numpy as np


def cross_section_area(diameter_mm: float) -> float:
    """Area of the pit floor in square centimetres."""
    radius_cm = diameter_mm / 20.0
    return float(np.pi * radius_cm * radius_cm)


def volume_litres(diameter_mm: float, height_mm: float) -> float:
    return cross_section_area(diameter_mm) * (height_mm / 10.0) / 1000.0


@dataclass(frozen=True)
class SumpGeometry:
    depth: int = 0
    diameter: int = 0
    low_water: int = 0
    high_water: int = 0
    capacity: float = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "capacity", volume_litres(self.diameter, self.depth))

    @property
    def cycle_volume(self) -> float:
        """Litres removed between the low and high water marks."""
        return volume_litres(self.diameter, self.high_water - self.low_water)


@dataclass(frozen=True)
class DerivedMetrics:
    frequency: float
    volume: float
    rate: float
    time_left: float

    @property
    def time_left_minutes(self) -> float:
        return self.time_left / 60.0

    def to_environment(self) -> Dict[str, str]:
        freq = int(self.frequency)
        return {
            "SAFREQ": str(freq),
            "SAFREQM": str(freq // 60),
            "SAFREQF": f"{freq // 60}m {freq % 60}s",
            "SAVOLUME": str(int(self.volume)),
            "SARATE": str(int(self.rate)),
            "SATIMELEFT": str(int(self.time_left)),
            "SATIMELEFTM": str(int(self.time_left_minutes)),
        }


def compute_metrics(geometry: SumpGeometry, level: float, frequency: float) -> DerivedMetrics:
    volume = volume_litres(geometry.diameter, level)
    rate = geometry.cycle_volume * 3600.0 / frequency if frequency > 0 else 0.0
    time_left = (geometry.capacity - volume) * 3600.0 / rate if rate > 0 else 0.0
    return DerivedMetrics(frequency=frequency, volume=volume, rate=rate, time_left=time_left)


__all__ = [
    "DerivedMetrics",
    "SumpGeometry",
    "compute_metrics",
    "cross_section_area",
    "volume_litres",
]
