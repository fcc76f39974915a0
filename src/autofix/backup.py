"""Backups of the manifest and lockfile taken before an auto-fix writes."""

from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from common.atomic_io import atomic_write_bytes
from common.errors import BackupRestoreFailure
from constants import Constants

logger = logging.getLogger(__name__)


class BackupState:
    """Byte-exact copies of a set of files, restorable as a unit.

    Contents are kept in memory, which is what :meth:`restore` uses. The
    ``<file>.backup.<timestamp>`` copies on disk exist only for the duration
    of the fix so a crash mid-write leaves something to recover from; both
    :meth:`restore` and :meth:`discard` remove them.
    """

    def __init__(
        self,
        contents: Dict[str, Optional[bytes]],
        backup_paths: Dict[str, str],
        writer: Optional[Callable[[str, bytes], None]] = None,
    ):
        self.contents = contents
        self.backup_paths = backup_paths
        self.writer = writer
        self.closed = False

    @classmethod
    def capture(
        cls,
        paths: Iterable[str],
        writer: Optional[Callable[[str, bytes], None]] = None,
        now: Optional[datetime] = None,
    ) -> "BackupState":
        """Snapshot ``paths``; a missing file is recorded as absent.

        Raises:
            OSError: If a file cannot be read or copied. Copies made before
                the failure are removed again.
        """
        stamp = (now or datetime.now()).strftime(Constants.BACKUP_TIMESTAMP_FORMAT)
        contents: Dict[str, Optional[bytes]] = {}
        backup_paths: Dict[str, str] = {}
        state = cls(contents, backup_paths, writer)
        try:
            for path in paths:
                if not os.path.isfile(path):
                    contents[path] = None
                    continue
                with open(path, "rb") as fh:
                    contents[path] = fh.read()
                backup_path = f"{path}.backup.{stamp}"
                backup_paths[path] = backup_path
                shutil.copy2(path, backup_path)
                logger.debug("Backed up %s to %s", path, backup_path)
        except OSError:
            state.discard()
            raise
        return state

    def _remove_copies(self) -> None:
        for backup_path in self.backup_paths.values():
            try:
                os.remove(backup_path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Could not remove backup %s: %s", backup_path, exc)

    def restore(self) -> None:
        """Write every file back to its captured state.

        Raises:
            BackupRestoreFailure: If any file could not be restored. The
                on-disk backup copies are kept in that case.
        """
        failures = []
        for path, data in self.contents.items():
            try:
                if data is None:
                    if os.path.exists(path):
                        os.remove(path)
                else:
                    (self.writer or atomic_write_bytes)(path, data)
            except OSError as exc:
                failures.append(f"{path}: {exc}")
        if failures:
            kept = ", ".join(sorted(self.backup_paths.values())) or "none"
            raise BackupRestoreFailure(
                "Restore from backup failed (" + "; ".join(failures) + f"); backup copies kept: {kept}"
            )
        logger.info("Restored %d file(s) from backup", len(self.contents))
        self._remove_copies()
        self.closed = True

    def discard(self) -> None:
        """Drop the backup after a successful batch."""
        self._remove_copies()
        self.closed = True
