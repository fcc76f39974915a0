"""One-shot automatic ``renv::snapshot()`` on container exit."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from enum import Enum
from typing import Any, Callable, Optional

from cli_config import SnapshotSettings
from common.logging_utils import Timer, extra_context
from constants import Constants
from snapshot.timestamps import TimestampRecord, backdate_lockfile, restore_timestamp

logger = logging.getLogger(__name__)


class TriggerState(Enum):
    ARMED = "armed"
    FIRED = "fired"
    RESTORED = "restored"


class SnapshotTrigger:
    """Run the snapshot command at most once and back-date the lockfile.

    Every failure is logged and swallowed: the trigger runs while the
    process exits and must not change its exit status.
    """

    def __init__(
        self,
        project_dir: str,
        settings: SnapshotSettings,
        runner: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.project_dir = os.path.abspath(project_dir)
        self.settings = settings
        self.runner = runner or subprocess.run
        self.clock = clock
        self.state = TriggerState.ARMED
        self.record: Optional[TimestampRecord] = None
        self.skip_reason: Optional[str] = None

    @property
    def lockfile_path(self) -> str:
        return os.path.join(self.project_dir, Constants.RENV_LOCK_FILE)

    def _skip_reason(self) -> Optional[str]:
        if not self.settings.enabled:
            return "auto-snapshot disabled"
        if not os.path.isfile(self.lockfile_path):
            return "no renv.lock in project"
        if not os.path.isfile(os.path.join(self.project_dir, Constants.RENV_ACTIVATE_FILE)):
            return "renv is not activated in project"
        return None

    def _run_command(self) -> bool:
        command = list(self.settings.command)
        logger.info("Running snapshot: %s", " ".join(command))
        with Timer() as timer:
            try:
                result = self.runner(
                    command,
                    cwd=self.project_dir,
                    timeout=self.settings.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired:
                logger.warning("Snapshot timed out after %s seconds", self.settings.timeout)
                return False
            except OSError as exc:
                logger.warning("Snapshot could not be started: %s", exc)
                return False
        returncode = getattr(result, "returncode", 1)
        logger.debug(
            "Snapshot finished",
            extra=extra_context(
                event="snapshot",
                component="trigger",
                outcome="success" if returncode == 0 else "failure",
                returncode=returncode,
                duration_ms=timer.duration_ms(),
            ),
        )
        if returncode != 0:
            logger.warning("Snapshot failed with exit code %s", returncode)
            return False
        return True

    def fire(self) -> bool:
        """Fire once. Returns True when a snapshot ran successfully."""
        if self.state is not TriggerState.ARMED:
            logger.debug("Snapshot trigger already fired")
            return False
        self.state = TriggerState.FIRED

        self.skip_reason = self._skip_reason()
        if self.skip_reason:
            logger.info("Skipping auto-snapshot: %s", self.skip_reason)
            return False

        if not self._run_command():
            return False

        logger.info("renv.lock updated")
        if self.settings.adjust_timestamp:
            try:
                self.record = backdate_lockfile(
                    self.project_dir,
                    self.lockfile_path,
                    self.settings.backdate_days,
                    self.clock(),
                )
            except OSError as exc:
                logger.warning("Could not adjust renv.lock timestamp: %s", exc)
        return True

    def restore(self) -> bool:
        """Host-side counterpart of :meth:`fire` for in-process use."""
        if self.state is not TriggerState.FIRED:
            return False
        self.state = TriggerState.RESTORED
        return restore_timestamp(self.project_dir)
