#!/usr/bin/env python3
"""
Sump pit float-switch monitor.

Responsibilities:
1) Poll every bound float switch once per loop (BCM GPIO inputs) and turn raw
   levels into debounced On/Off transitions.
2) Track switch 0's activation frequency and derive volume, inflow rate and
   time-to-overflow estimates for the action scripts (SA* environment values).
3) Fire the RateChange action on large frequency swings and the Overdue action
   when switch 0 stays on longer than its usual cycle.
4) Re-read the hot settings when /etc/sumpalarm.conf changes on disk.
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from action_dispatcher import ActionDispatcher
from config_loader import ConfigError, SumpConfig, SumpConfigLoader, get_config_path
from config_watcher import ConfigChangeWatcher, SnapshotSource
from fault_handler import setup_faulthandler
from flow_metrics import DerivedMetrics
from monitor_context import MonitorContext
from switch_state import SwitchState, Transition

LOGGER = logging.getLogger("sump_monitor")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
# LogLevel 0..3 from the config file
LOG_LEVELS = {
    0: logging.CRITICAL + 10,
    1: logging.ERROR,
    2: logging.INFO,
    3: logging.DEBUG,
}

LevelReader = Callable[[int], bool]


class GpioUnavailableError(RuntimeError):
    pass


class FloatSwitchReader:
    """Reads float switch levels from BCM GPIO input pins."""

    def __init__(self, pins: Dict[int, int]):
        self.pins = dict(pins)
        try:
            import RPi.GPIO as GPIO
        except (ImportError, RuntimeError) as exc:  # pragma: no cover - hardware dependency
            raise GpioUnavailableError(f"Unable to initialize GPIO: {exc}") from exc
        self.GPIO = GPIO
        self.GPIO.setmode(self.GPIO.BCM)
        for switch_id, pin in sorted(self.pins.items()):
            self.GPIO.setup(pin, self.GPIO.IN)
            LOGGER.debug("Switch%d bound to GPIO%d", switch_id, pin)

    def level(self, switch_id: int) -> bool:
        return self.GPIO.input(self.pins[switch_id]) == self.GPIO.HIGH

    def __call__(self, switch_id: int) -> bool:
        return self.level(switch_id)

    def cleanup(self) -> None:
        try:
            self.GPIO.cleanup(list(self.pins.values()))
        except Exception as exc:  # pragma: no cover
            LOGGER.warning("GPIO cleanup error: %s", exc)


def apply_log_level(level: int) -> None:
    logging.getLogger().setLevel(LOG_LEVELS.get(level, logging.DEBUG))


def configure_logging(log_file: Optional[Path], verbose: bool, level: int) -> None:
    """Send log records to LogFile, or to the console when running with -v."""
    handler: logging.Handler = logging.StreamHandler()
    if log_file is not None and not verbose:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Unable to open log file %s, logging to console: %s", log_file, exc)
    logging.basicConfig(format=LOG_FORMAT, handlers=[handler], force=True)
    apply_log_level(level)


class SumpMonitor:
    """The polling loop. Owns all mutable monitor state; no other thread writes it."""

    def __init__(
        self,
        context: MonitorContext,
        reader: LevelReader,
        watcher: Optional[ConfigChangeWatcher] = None,
        loop_delay: float = 1.0,
    ):
        self.context = context
        self.reader = reader
        self.watcher = watcher
        self.loop_delay = loop_delay
        self.stop_event = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: SumpConfig,
        reader: LevelReader,
        loader: Optional[SnapshotSource] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        now: Optional[float] = None,
    ) -> "SumpMonitor":
        context = MonitorContext.from_config(config, dispatcher)
        watcher = None
        if loader is not None:
            watcher = ConfigChangeWatcher(
                loader,
                context,
                interval=config.config_check_seconds,
                started_at=time.monotonic() if now is None else now,
            )
        return cls(context, reader, watcher, loop_delay=config.loop_delay)

    def seed_initial_state(self) -> None:
        for switch in self.context.registry:
            switch.state = bool(self.reader(switch.switch_id))
            LOGGER.info(
                "Switch%d initial state: %s", switch.switch_id, "On" if switch.state else "Off"
            )

    def _dispatch(self, action: Optional[str], label: str, metrics: DerivedMetrics) -> None:
        self.context.dispatcher.dispatch(action, metrics.to_environment(), label=label)

    def _handle_on(self, switch: SwitchState) -> None:
        LOGGER.info("Switch%d On", switch.switch_id)
        metrics = self.context.current_metrics()
        self._dispatch(switch.on_action, f"Switch{switch.switch_id}On", metrics)
        snapshot = self.context.snapshot
        if switch.switch_id == 0 and snapshot.rate_change_action:
            if self.context.rate_change.evaluate(switch, metrics.frequency):
                self._dispatch(snapshot.rate_change_action, "RateChange", metrics)

    def _handle_off(self, switch: SwitchState) -> None:
        if switch.switch_id == 0:
            self.context.overdue.reset()
        LOGGER.info("Switch%d Off", switch.switch_id)
        metrics = self.context.current_metrics()
        self._dispatch(switch.off_action, f"Switch{switch.switch_id}Off", metrics)

    def tick(self, now: float) -> None:
        context = self.context
        if context.overdue.evaluate(context.registry.primary, now):
            self._dispatch(context.snapshot.overdue_action, "Overdue", context.current_metrics())

        if self.watcher is not None and self.watcher.maybe_reload(now):
            apply_log_level(context.snapshot.log_level)

        for switch in context.registry:
            transition = switch.apply_sample(self.reader(switch.switch_id), now)
            if transition is Transition.TO_ON:
                self._handle_on(switch)
            elif transition is Transition.TO_OFF:
                self._handle_off(switch)

    def run(self) -> None:
        self.seed_initial_state()
        LOGGER.info("Monitor started")
        while not self.stop_event.is_set():
            try:
                self.tick(time.monotonic())
            except Exception as exc:  # pragma: no cover
                LOGGER.exception("Monitor loop error: %s", exc)
            self.stop_event.wait(self.loop_delay)
        LOGGER.info("Monitor stopped")

    def stop(self) -> None:
        self.stop_event.set()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Monitor sump float switches and run alarm actions.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log to the console instead of LogFile",
    )
    parser.add_argument("--config", help="config file (default: $SUMPALARM_CONF or /etc/sumpalarm.conf)")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    loader = SumpConfigLoader(get_config_path(args.config))
    try:
        config = loader.load()
    except ConfigError as exc:
        LOGGER.error("Failed to load config: %s", exc)
        sys.exit(1)

    configure_logging(config.log_file, args.verbose, config.snapshot.log_level)
    setup_faulthandler("sumpalarm")

    try:
        reader = FloatSwitchReader(config.pins)
    except GpioUnavailableError as exc:
        LOGGER.error("%s. Use sudo.", exc)
        sys.exit(2)

    monitor = SumpMonitor.from_config(config, reader, loader)

    def handle_signal(sig, frame):
        LOGGER.info("Received signal %s, shutting down.", sig)
        monitor.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, handle_signal)

    try:
        monitor.run()
    finally:
        reader.cleanup()


if __name__ == "__main__":
    main()
