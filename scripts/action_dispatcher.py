"""Fire-and-forget execution of configured action commands."""
from __future__ import annotations

import logging
import os
import subprocess
import threading
from typing import Dict, Mapping, Optional

LOGGER = logging.getLogger("action_dispatcher")


class ActionDispatcher:
    """Runs shell action commands on detached daemon threads.

    The polling loop never waits on an action: a hung script only ties up its
    own thread. Exit codes are logged at debug level and otherwise ignored.
    """

    def dispatch(
        self,
        action: Optional[str],
        environment: Mapping[str, str],
        label: str = "action",
    ) -> Optional[threading.Thread]:
        if not action:
            return None
        env: Dict[str, str] = dict(os.environ)
        env.update({key: str(value) for key, value in environment.items()})
        LOGGER.debug("Executing %s: %s", label, action)
        thread = threading.Thread(
            target=self._run_action,
            args=(action, env, label),
            name=f"action-{label}",
            daemon=True,
        )
        thread.start()
        return thread

    def _run_action(self, action: str, env: Dict[str, str], label: str) -> None:
        try:
            result = subprocess.run(
                action,
                shell=True,
                env=env,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
            )
        except Exception as exc:
            LOGGER.warning("Failed to launch %s: %s", label, exc)
            return
        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            suffix = f": {detail}" if detail else ""
            LOGGER.debug("%s exited with code %s%s", label, result.returncode, suffix)


__all__ = ["ActionDispatcher"]
