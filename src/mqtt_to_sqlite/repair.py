"""
Throttled external network repair.

On a flapping link disconnects arrive in bursts, and the repair command (which
may itself bounce an interface) must not run for each of them. RepairTrigger
lets at most one run through per min_interval seconds of wall-clock time.
"""

from __future__ import annotations

import subprocess
import time
from typing import Callable, Optional, Protocol

from loguru import logger

from .metrics import REPAIR_RUNS_TOTAL

DEFAULT_MIN_INTERVAL_SEC = 20.0


class RepairAction(Protocol):
    """Executes the recovery action and returns its exit status.

    Raises OSError or subprocess.SubprocessError if it cannot be launched.
    """

    def run(self) -> int: ...


class ShellRepairAction:
    """Runs a command line through the shell."""

    def __init__(self, command: str, timeout: Optional[float] = None):
        self.command = command
        self.timeout = timeout or None

    def run(self) -> int:
        logger.info(f"Running network repair script: {self.command}")
        result = subprocess.run(
            self.command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if result.stdout:
            logger.debug(f"repair stdout: {result.stdout.strip()}")
        if result.stderr:
            logger.debug(f"repair stderr: {result.stderr.strip()}")
        return result.returncode

    def __repr__(self) -> str:
        return f"ShellRepairAction({self.command!r})"


class RepairTrigger:
    def __init__(
        self,
        action: RepairAction,
        min_interval: float = DEFAULT_MIN_INTERVAL_SEC,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._action = action
        self._min_interval = float(min_interval)
        self._clock = clock
        self._last_run: Optional[float] = None

    @property
    def last_run(self) -> Optional[float]:
        return self._last_run

    def trigger_repair(self) -> bool:
        """Run the repair action unless one ran less than min_interval ago.

        Returns True if the action was started. Launch failures are logged,
        never raised.
        """
        now = self._clock()
        if self._last_run is not None:
            elapsed = now - self._last_run
            # elapsed < 0 means the wall clock stepped back; let the run through
            if 0 <= elapsed < self._min_interval:
                logger.info("Skipping network repair script (throttled)")
                REPAIR_RUNS_TOTAL.labels(outcome="throttled").inc()
                return False
        self._last_run = now

        try:
            rc = self._action.run()
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Network repair could not be run ({type(e).__name__}): {e}")
            REPAIR_RUNS_TOTAL.labels(outcome="failed").inc()
            return True

        logger.info(f"Network repair script exit code: {rc}")
        REPAIR_RUNS_TOTAL.labels(outcome="ran").inc()
        return True
