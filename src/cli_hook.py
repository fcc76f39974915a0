"""CLI entry points for the snapshot hook.

``renvcheck hook -- <command...>`` is meant as a container entrypoint: it
runs the command, and when the command (or the container) ends it fires the
snapshot trigger once, then exits with the command's status.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Any, Callable, List, Optional

from cli_config import RenvCheckConfig
from constants import ExitCodes
from snapshot.guard import ExitGuard, child_exit_status
from snapshot.timestamps import restore_timestamp
from snapshot.trigger import SnapshotTrigger

logger = logging.getLogger(__name__)


def parse_hook_command(args: Any) -> List[str]:
    """Extract the wrapped command, dropping a leading ``--`` separator."""
    cmd = list(getattr(args, "HOOK_COMMAND", None) or [])
    if cmd and cmd[0] == "--":
        cmd = cmd[1:]
    return cmd


def run_hook(
    cmd: List[str],
    project_dir: str,
    config: RenvCheckConfig,
    popen: Optional[Callable[..., subprocess.Popen]] = None,
    trigger: Optional[SnapshotTrigger] = None,
) -> int:
    """Run ``cmd`` under an ExitGuard that fires the snapshot trigger.

    Returns:
        The wrapped command's exit status.
    """
    if not cmd:
        sys.stderr.write("Error: No command provided.\nUsage: renvcheck hook -- <command> [args...]\n")
        return ExitCodes.CONFIG_ERROR.value

    trigger = trigger or SnapshotTrigger(project_dir, config.snapshot)
    exit_code = 1
    with ExitGuard(trigger.fire) as guard:
        logger.info("Running: %s", " ".join(cmd))
        try:
            child = (popen or subprocess.Popen)(cmd)  # noqa: S603
        except OSError as exc:
            logger.error("Failed to start %s: %s", cmd[0], exc)
            return 127
        guard.attach(child)
        try:
            returncode = child.wait()
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            returncode = child.wait()
        finally:
            guard.detach()
        exit_code = child_exit_status(returncode)
    return exit_code


def run_snapshot(project_dir: str, config: RenvCheckConfig) -> int:
    """``renvcheck snapshot``: fire the trigger once without wrapping."""
    trigger = SnapshotTrigger(project_dir, config.snapshot)
    trigger.fire()
    return ExitCodes.SUCCESS.value


def run_restore_timestamp(project_dir: str) -> int:
    """``renvcheck restore-timestamp``: host-side timestamp restore."""
    try:
        restored = restore_timestamp(project_dir)
    except OSError as exc:
        logger.error("Could not restore the renv.lock timestamp: %s", exc)
        return ExitCodes.CONFIG_ERROR.value
    if not restored:
        logger.info("No lockfile timestamp to restore")
    return ExitCodes.SUCCESS.value
