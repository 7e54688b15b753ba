"""Crash dump setup for the sumpalarm service."""
from __future__ import annotations

import faulthandler
import logging
import os
import signal
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger("fault_handler")

DEFAULT_DUMP_DIR = Path("/var/lib/sumpalarm")


def resolve_dump_dir(override: Optional[str] = None) -> Path:
    value = override or os.environ.get("FAULT_DUMP_DIR")
    return Path(value).expanduser() if value else DEFAULT_DUMP_DIR


def setup_faulthandler(service_name: str, dump_dir: Optional[Path] = None) -> Optional[Path]:
    """Route fatal-signal tracebacks to a per-service dump file.

    A dump left behind by a previous crash is logged and truncated first.
    Returns None when the dump directory is not writable; the service keeps
    running without crash dumps in that case.
    """
    dump_dir = dump_dir or resolve_dump_dir()
    dump_path = dump_dir / f"{service_name}_fault.log"
    try:
        dump_dir.mkdir(parents=True, exist_ok=True)
        _ingest_previous_dump(dump_path, service_name)
        dump_file = dump_path.open("a", encoding="utf-8", buffering=1)
    except OSError as exc:
        LOGGER.warning("Crash dumps disabled (%s): %s", dump_dir, exc)
        return None

    faulthandler.enable(file=dump_file, all_threads=True)
    if hasattr(signal, "SIGUSR1"):
        faulthandler.register(signal.SIGUSR1, file=dump_file, all_threads=True)
    return dump_path


def _ingest_previous_dump(dump_path: Path, service_name: str) -> None:
    if not dump_path.exists() or dump_path.stat().st_size == 0:
        return
    content = dump_path.read_text(encoding="utf-8", errors="replace")
    LOGGER.error("Previous crash dump for %s:\n%s", service_name, content)
    dump_path.write_text("")


__all__ = ["resolve_dump_dir", "setup_faulthandler"]
