"""Exception taxonomy for renvcheck.

Recoverable errors (missing manifest/lockfile, per-package registry lookup
failures) are caught by the pipeline and degrade to warnings. Write errors
trigger a rollback; only ``BackupRestoreFailure`` is allowed to abort a run.
"""

from __future__ import annotations

from typing import Optional


class RenvCheckError(Exception):
    """Base class for all renvcheck errors."""


class ConfigError(RenvCheckError):
    """Invalid configuration file, option value or project path."""


class MalformedPackageName(RenvCheckError, ValueError):
    """Token does not satisfy the package-name grammar."""


class ManifestNotFoundError(RenvCheckError, FileNotFoundError):
    """DESCRIPTION file is absent."""


class LockfileNotFoundError(RenvCheckError, FileNotFoundError):
    """renv.lock is absent."""


class LockfileParseError(RenvCheckError):
    """renv.lock exists but could not be read or decoded."""


class RegistryLookupError(RenvCheckError):
    """Package metadata could not be fetched from the registry."""

    def __init__(self, package: str, reason: str, status: Optional[int] = None):
        super().__init__(f"{package}: {reason}")
        self.package = package
        self.reason = reason
        self.status = status

    @property
    def not_found(self) -> bool:
        """True when the registry answered that the package does not exist."""
        return self.status == 404


class ManifestWriteError(RenvCheckError):
    """Writing DESCRIPTION failed."""


class LockWriteError(RenvCheckError):
    """Writing renv.lock failed."""


class BackupRestoreFailure(RenvCheckError):
    """Both the write and the restore from backup failed."""
