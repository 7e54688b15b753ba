"""Process-wide monitor state, owned by the polling loop."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from action_dispatcher import ActionDispatcher
from anomaly import OverdueDetector, RateChangeDetector
from config_loader import ConfigSnapshot, SumpConfig
from flow_metrics import DerivedMetrics, SumpGeometry, compute_metrics
from frequency import get_frequency
from switch_state import SwitchRegistry

LOGGER = logging.getLogger("monitor_context")


@dataclass
class MonitorContext:
    geometry: SumpGeometry
    registry: SwitchRegistry
    snapshot: ConfigSnapshot = field(default_factory=ConfigSnapshot)
    rate_change: RateChangeDetector = field(default_factory=RateChangeDetector)
    overdue: OverdueDetector = field(default_factory=OverdueDetector)
    dispatcher: ActionDispatcher = field(default_factory=ActionDispatcher)

    @classmethod
    def from_config(
        cls, config: SumpConfig, dispatcher: Optional[ActionDispatcher] = None
    ) -> "MonitorContext":
        context = cls(
            geometry=config.geometry,
            registry=SwitchRegistry.from_pins(config.pins),
            dispatcher=dispatcher if dispatcher is not None else ActionDispatcher(),
        )
        context.apply_snapshot(config.snapshot)
        return context

    def apply_snapshot(self, snapshot: ConfigSnapshot) -> None:
        """Overwrite the hot-reloadable settings, keeping every runtime counter."""
        for switch in self.registry:
            settings = snapshot.switch(switch.switch_id)
            switch.level = settings.level
            switch.bounce = settings.bounce
            switch.on_action = settings.on_action
            switch.off_action = settings.off_action
        for switch_id in sorted(snapshot.switches):
            if switch_id not in self.registry:
                LOGGER.debug("Switch%d has no pin binding; settings ignored", switch_id)
        self.rate_change.threshold_pct = snapshot.rate_change_pct
        self.overdue.threshold_seconds = snapshot.overdue_threshold
        self.snapshot = snapshot

    def current_metrics(self) -> DerivedMetrics:
        primary = self.registry.primary
        return compute_metrics(self.geometry, primary.level, get_frequency(primary.history))


__all__ = ["MonitorContext"]
