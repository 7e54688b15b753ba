"""
Load and parse the sumpalarm configuration file.

The file is a flat list of Key=Value lines (see config/sumpalarm.conf.example).
Keys are matched case-insensitively. Geometry, pins, LogFile, LoopDelay and
ConfigCheckInterval are read once at startup; everything else lands in a
ConfigSnapshot that can be swapped in while the monitor is running.
"""
from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from flow_metrics import SumpGeometry
from switch_state import DEFAULT_BOUNCE

LOGGER = logging.getLogger("config_loader")

DEFAULT_CONFIG_PATH = Path("/etc/sumpalarm.conf")
LOOP_DELAY = 1.0  # seconds between polls
CONFIG_CHECK_SECONDS = 180  # seconds between config fingerprint checks
MIN_LOOP_DELAY = 0.01
MIN_CONFIG_CHECK_SECONDS = 1.0
MAX_BCM_PIN = 27
DEFAULT_LOG_LEVEL = 3

SWITCH_KEY = re.compile(r"^switch(\d{1,2})(level|pin|bounce|on|off)$", re.IGNORECASE)
GLOBAL_KEYS = {
    "sumpdepth",
    "sumpdiameter",
    "lowwater",
    "highwater",
    "ratechangeamt",
    "ratechange",
    "overduethreshold",
    "overdue",
    "logfile",
    "loglevel",
    "loopdelay",
    "configcheckinterval",
}


class ConfigError(Exception):
    """Raised when the configuration source is missing or unusable."""


def get_config_path(override: Optional[str] = None) -> Path:
    """Return the config file path; --config wins over SUMPALARM_CONF."""
    value = override or os.environ.get("SUMPALARM_CONF")
    if value:
        return Path(value).expanduser().resolve()
    return DEFAULT_CONFIG_PATH


def parse_config_text(text: str, source: str = "<config>") -> Dict[str, str]:
    """
    Split config text into Key=Value pairs.

    Lines starting with # are ignored. Empty lines are skipped. Keys are
    lower-cased; values are returned as raw strings to keep parsing decisions
    near the caller. Action commands may contain '#' or '=', so only the first
    '=' splits the line.
    """
    entries: Dict[str, str] = {}
    for line_num, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ConfigError(f"Invalid line in {source} (line {line_num}): {raw_line!r}")
        key, value = line.split("=", 1)
        entries[key.strip().lower()] = value.strip()
    return entries


def read_config_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file {path} does not exist") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc


def file_fingerprint(path: Path) -> str:
    """SHA-256 digest of the config file contents."""
    return hashlib.sha256(read_config_bytes(path)).hexdigest()


def env_int(env: Dict[str, str], key: str, default: int) -> int:
    try:
        return int(env.get(key, default))
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring non-integer value for %s: %r", key, env.get(key))
        return default


def env_float(env: Dict[str, str], key: str, default: float) -> float:
    try:
        return float(env.get(key, default))
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring non-numeric value for %s: %r", key, env.get(key))
        return default


def env_seconds(env: Dict[str, str], key: str, default: float, minimum: float) -> float:
    value = env_float(env, key, default)
    if value < minimum:
        LOGGER.warning("%s must be at least %s seconds, using %s", key, minimum, default)
        return default
    return value


def env_action(env: Dict[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    return value or None


@dataclass(frozen=True)
class SwitchSettings:
    level: int = 0
    bounce: float = DEFAULT_BOUNCE
    on_action: Optional[str] = None
    off_action: Optional[str] = None


@dataclass(frozen=True)
class ConfigSnapshot:
    """Settings that may change while the monitor is running."""

    switches: Dict[int, SwitchSettings] = field(default_factory=dict)
    rate_change_pct: int = 0
    rate_change_action: Optional[str] = None
    overdue_threshold: int = 0
    overdue_action: Optional[str] = None
    log_level: int = DEFAULT_LOG_LEVEL
    fingerprint: str = ""

    def switch(self, switch_id: int) -> SwitchSettings:
        return self.switches.get(switch_id, SwitchSettings())


@dataclass(frozen=True)
class SumpConfig:
    """Everything read at startup: fixed settings plus the first snapshot."""

    geometry: SumpGeometry
    pins: Dict[int, int]
    snapshot: ConfigSnapshot
    log_file: Optional[Path] = None
    loop_delay: float = LOOP_DELAY
    config_check_seconds: float = CONFIG_CHECK_SECONDS


def _switch_entries(env: Dict[str, str]) -> Dict[int, Dict[str, str]]:
    grouped: Dict[int, Dict[str, str]] = {}
    for key, value in env.items():
        match = SWITCH_KEY.match(key)
        if match is None:
            continue
        switch_id = int(match.group(1))
        grouped.setdefault(switch_id, {})[match.group(2).lower()] = value
    return grouped


def _parse_pins(grouped: Dict[int, Dict[str, str]]) -> Dict[int, int]:
    pins: Dict[int, int] = {}
    for switch_id, entries in sorted(grouped.items()):
        if "pin" not in entries:
            continue
        raw = entries["pin"]
        try:
            pin = int(raw)
        except ValueError:
            pin = 0
        if not 0 < pin <= MAX_BCM_PIN:
            raise ConfigError(f"Switch{switch_id} GPIO pin invalid: {raw!r}")
        for other_id, other_pin in pins.items():
            if other_pin == pin:
                raise ConfigError(
                    f"Switch{switch_id} GPIO pin {pin} already used by Switch{other_id}"
                )
        pins[switch_id] = pin
        LOGGER.debug("Switch%d pin set: %d", switch_id, pin)
    return pins


def parse_snapshot(env: Dict[str, str], fingerprint: str = "") -> ConfigSnapshot:
    switches: Dict[int, SwitchSettings] = {}
    for switch_id, entries in sorted(_switch_entries(env).items()):
        switches[switch_id] = SwitchSettings(
            level=env_int(entries, "level", 0),
            bounce=env_float(entries, "bounce", DEFAULT_BOUNCE),
            on_action=env_action(entries, "on"),
            off_action=env_action(entries, "off"),
        )
    log_level = env_int(env, "loglevel", DEFAULT_LOG_LEVEL)
    if not 0 <= log_level <= 3:
        log_level = DEFAULT_LOG_LEVEL
    return ConfigSnapshot(
        switches=switches,
        rate_change_pct=env_int(env, "ratechangeamt", 0),
        rate_change_action=env_action(env, "ratechange"),
        overdue_threshold=env_int(env, "overduethreshold", 0),
        overdue_action=env_action(env, "overdue"),
        log_level=log_level,
        fingerprint=fingerprint,
    )


def parse_config(env: Dict[str, str], fingerprint: str = "") -> SumpConfig:
    """Build the startup configuration; raises ConfigError when switch 0 is unbound."""
    for key in sorted(env):
        if key not in GLOBAL_KEYS and not SWITCH_KEY.match(key):
            LOGGER.warning("Ignoring unknown config key %s", key)
    pins = _parse_pins(_switch_entries(env))
    if 0 not in pins:
        raise ConfigError("Switch0 is not configured")
    geometry = SumpGeometry(
        depth=env_int(env, "sumpdepth", 0),
        diameter=env_int(env, "sumpdiameter", 0),
        low_water=env_int(env, "lowwater", 0),
        high_water=env_int(env, "highwater", 0),
    )
    log_file = env.get("logfile")
    return SumpConfig(
        geometry=geometry,
        pins=pins,
        snapshot=parse_snapshot(env, fingerprint),
        log_file=Path(log_file).expanduser() if log_file else None,
        loop_delay=env_seconds(env, "loopdelay", LOOP_DELAY, MIN_LOOP_DELAY),
        config_check_seconds=env_seconds(
            env, "configcheckinterval", CONFIG_CHECK_SECONDS, MIN_CONFIG_CHECK_SECONDS
        ),
    )


class SumpConfigLoader:
    """File-backed source of configuration and its fingerprint."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def fingerprint(self) -> str:
        return file_fingerprint(self.path)

    def _read(self) -> Tuple[Dict[str, str], str]:
        # Digest the same bytes that get parsed.
        raw = read_config_bytes(self.path)
        env = parse_config_text(raw.decode("utf-8", errors="replace"), str(self.path))
        return env, hashlib.sha256(raw).hexdigest()

    def load(self) -> SumpConfig:
        env, fingerprint = self._read()
        config = parse_config(env, fingerprint)
        LOGGER.info("Capacity set to %d litres", int(config.geometry.capacity))
        return config

    def load_snapshot(self) -> ConfigSnapshot:
        env, fingerprint = self._read()
        return parse_snapshot(env, fingerprint)


__all__ = [
    "CONFIG_CHECK_SECONDS",
    "ConfigError",
    "ConfigSnapshot",
    "DEFAULT_CONFIG_PATH",
    "LOOP_DELAY",
    "SumpConfig",
    "SumpConfigLoader",
    "SwitchSettings",
    "env_float",
    "env_int",
    "env_seconds",
    "file_fingerprint",
    "get_config_path",
    "parse_config",
    "parse_config_text",
    "parse_snapshot",
]
