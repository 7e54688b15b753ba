"""Periodic config fingerprint check with selective hot reload."""
from __future__ import annotations

import logging
from typing import Protocol

from config_loader import CONFIG_CHECK_SECONDS, ConfigError, ConfigSnapshot
from monitor_context import MonitorContext

LOGGER = logging.getLogger("config_watcher")


class SnapshotSource(Protocol):
    def fingerprint(self) -> str: ...

    def load_snapshot(self) -> ConfigSnapshot: ...


class ConfigChangeWatcher:
    """Reloads the hot settings when the config source's fingerprint moves.

    Geometry and pin bindings are never touched here; they were fixed when the
    context was built. A source that cannot be read or parsed leaves the
    last-known-good snapshot in place and is retried on the next check.
    """

    def __init__(
        self,
        loader: SnapshotSource,
        context: MonitorContext,
        interval: float = CONFIG_CHECK_SECONDS,
        started_at: float = 0.0,
    ):
        self.loader = loader
        self.context = context
        self.interval = interval
        self.fingerprint = context.snapshot.fingerprint
        self._last_check = started_at

    def maybe_reload(self, now: float) -> bool:
        if (now - self._last_check) <= self.interval:
            return False
        self._last_check = now
        return self.check()

    def check(self) -> bool:
        """Return True when a new snapshot was applied."""
        try:
            current = self.loader.fingerprint()
        except (ConfigError, OSError) as exc:
            LOGGER.warning("Config check skipped: %s", exc)
            return False
        if current == self.fingerprint:
            return False

        LOGGER.info("Config changed")
        LOGGER.info("Old: %s", self.fingerprint)
        LOGGER.info("New: %s", current)
        try:
            snapshot = self.loader.load_snapshot()
        except (ConfigError, OSError) as exc:
            LOGGER.warning("Config reload failed, keeping previous settings: %s", exc)
            return False

        self.context.apply_snapshot(snapshot)
        self.fingerprint = snapshot.fingerprint or current
        return True


__all__ = ["ConfigChangeWatcher", "SnapshotSource"]
