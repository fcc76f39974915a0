"""Lockfile modification-time bookkeeping across the container boundary.

After an automatic snapshot the lockfile mtime is set back so binary package
caches keyed on it stay valid. The true mtime and a content digest are
recorded in ``<project>/.renvcheck/timestamp.json`` so the host side can put
the real time back once validation passes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Optional

from common.atomic_io import atomic_write_text
from constants import Constants

logger = logging.getLogger(__name__)


@dataclass
class TimestampRecord:
    lockfile: str
    true_mtime: float
    adjusted_mtime: float
    digest: str
    restored: bool = False


def file_digest(path: str) -> str:
    sha = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            sha.update(chunk)
    return sha.hexdigest()


def record_path(project_dir: str) -> str:
    return os.path.join(project_dir, Constants.STATE_DIR, Constants.TIMESTAMP_RECORD_FILE)


def save_record(project_dir: str, record: TimestampRecord) -> str:
    path = record_path(project_dir)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    atomic_write_text(path, json.dumps(asdict(record), indent=2) + "\n")
    return path


def load_record(project_dir: str) -> Optional[TimestampRecord]:
    """Return the stored record, or None when absent or unreadable."""
    path = record_path(project_dir)
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        return TimestampRecord(**data)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Ignoring unreadable timestamp record %s: %s", path, exc)
        return None


def backdate_lockfile(
    project_dir: str,
    lockfile_path: str,
    days: float,
    now: float,
) -> TimestampRecord:
    """Record the lockfile's true mtime, then set it ``days`` into the past."""
    stat = os.stat(lockfile_path)
    adjusted = now - days * 86400
    record = TimestampRecord(
        lockfile=os.path.abspath(lockfile_path),
        true_mtime=stat.st_mtime,
        adjusted_mtime=adjusted,
        digest=file_digest(lockfile_path),
    )
    save_record(project_dir, record)
    os.utime(lockfile_path, (stat.st_atime, adjusted))
    logger.info("Adjusted %s timestamp back %s day(s)", os.path.basename(lockfile_path), days)
    return record


def restore_timestamp(project_dir: str) -> bool:
    """Put the lockfile's recorded true mtime back.

    Idempotent: without a record, or once restored, nothing happens. When
    the lockfile content changed since the record was taken its current
    mtime is already authoritative and only the record is closed.

    Returns:
        True when the lockfile mtime was changed.
    """
    record = load_record(project_dir)
    if record is None or record.restored:
        return False
    changed = False
    if os.path.isfile(record.lockfile):
        if file_digest(record.lockfile) == record.digest:
            atime = os.stat(record.lockfile).st_atime
            os.utime(record.lockfile, (atime, record.true_mtime))
            changed = True
            logger.info("Restored %s timestamp", os.path.basename(record.lockfile))
        else:
            logger.info("Lockfile changed since snapshot; keeping its current timestamp")
    else:
        logger.warning("Lockfile %s no longer exists; closing timestamp record", record.lockfile)
    record.restored = True
    save_record(project_dir, record)
    return changed
