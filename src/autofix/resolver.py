"""Auto-fix: declare and lock the packages a validation report flags.

Lookups are read-only and may run in parallel. Writes are serialized and
guarded by a :class:`BackupState`: if either file fails to write, both are
restored byte-for-byte before anything else happens.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from analysis.models import ValidationReport
from analysis.pipeline import ProjectLayout
from autofix.backup import BackupState
from common.atomic_io import atomic_write_text
from common.errors import LockWriteError, ManifestWriteError, RegistryLookupError
from common.logging_utils import extra_context, format_names, is_debug_enabled
from constants import Constants
from parsers.description import DescriptionFile, write_description
from parsers.lockfile import LockfileDocument, write_lockfile
from registry.cran import RegistryClient, RegistryRecord, build_lock_entry

logger = logging.getLogger(__name__)


@dataclass
class FixResult:
    """Outcome of one auto-fix batch."""
    report: ValidationReport
    added: Tuple[str, ...] = ()
    unresolved: Dict[str, str] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.added)


class Resolver:
    """Resolve ``missing`` and ``unlocked`` packages against the registry.

    Args:
        client: Registry client used for lookups.
        layout: Paths of the manifest and lockfile to rewrite.
        revalidate: Callable re-running the pipeline after the writes.
        writer: ``(path, text)`` writer used for both files.
        max_workers: Parallel lookups; 1 keeps them sequential.
        declared_in: DESCRIPTION fields that already count as a declaration;
            a missing package declared in one of them is not added again.
    """

    def __init__(
        self,
        client: RegistryClient,
        layout: ProjectLayout,
        revalidate: Callable[[], ValidationReport],
        writer: Callable[[str, str], None] = atomic_write_text,
        max_workers: int = 1,
        declared_in: Iterable[str] = Constants.DECLARATION_FIELDS,
    ):
        self.client = client
        self.layout = layout
        self.revalidate = revalidate
        self.writer = writer
        self.max_workers = max(1, int(max_workers))
        self.declared_in = tuple(declared_in)

    def _lookup_one(self, name: str) -> Tuple[str, Optional[RegistryRecord], Optional[RegistryLookupError]]:
        try:
            return name, self.client.lookup(name), None
        except RegistryLookupError as exc:
            return name, None, exc

    def _lookup_all(self, names: List[str]):
        if self.max_workers > 1 and len(names) > 1:
            workers = min(self.max_workers, len(names))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(self._lookup_one, name) for name in names]
                return [future.result() for future in as_completed(futures)]
        return [self._lookup_one(name) for name in names]

    def lookup(self, names: List[str]) -> Tuple[Dict[str, RegistryRecord], Dict[str, str]]:
        """Look up every name; failures are collected, never raised."""
        resolved: Dict[str, RegistryRecord] = {}
        unresolved: Dict[str, str] = {}
        for name, record, error in self._lookup_all(names):
            if record is not None:
                resolved[name] = record
            else:
                unresolved[name] = error.reason if error is not None else "lookup failed"
                logger.warning("Could not resolve %s: %s", name, unresolved[name])
        return resolved, unresolved

    def unknown_packages(self, names: Iterable[str]) -> FrozenSet[str]:
        """Names the registry reports as nonexistent.

        Only a definite "not found" counts; unreachable registries and other
        failures are logged and leave the name alone.
        """
        unknown = set()
        for name, _, error in self._lookup_all(sorted(names)):
            if error is None:
                continue
            if error.not_found:
                unknown.add(name)
            else:
                logger.warning("Could not check %s: %s", name, error.reason)
        if unknown:
            logger.warning("Declared but not on the registry: %s", format_names(unknown))
        return frozenset(unknown)

    def _unresolved_result(self, batch: List[str], unresolved: Dict[str, str], reason: str) -> FixResult:
        for name in batch:
            unresolved[name] = reason
        return FixResult(report=self.revalidate(), unresolved=unresolved)

    def fix(
        self,
        report: ValidationReport,
        description: Optional[DescriptionFile],
        lockfile: Optional[LockfileDocument],
    ) -> FixResult:
        """Add missing imports and lock entries, then re-validate.

        The backup is always restored or discarded before this returns.

        Raises:
            BackupRestoreFailure: If a write failed and the rollback failed too.
        """
        targets = sorted(report.missing | report.unlocked)
        if not targets:
            logger.info("Nothing to fix")
            return FixResult(report=report)

        if description is None:
            description = DescriptionFile(self.layout.manifest_path, "")
        if lockfile is None:
            lockfile = LockfileDocument(self.layout.lockfile_path)

        # Already locked packages only need a declaration, no lookup.
        already_locked = [n for n in targets if n in lockfile.packages]
        to_lookup = [n for n in targets if n not in lockfile.packages]
        logger.info("Resolving %d package(s): %s", len(to_lookup), format_names(to_lookup))
        records, unresolved = self.lookup(to_lookup)
        batch = sorted(set(records) | set(already_locked))
        if not batch:
            logger.warning("No package could be resolved; files left unchanged")
            return FixResult(report=self.revalidate(), unresolved=unresolved)

        try:
            backup = BackupState.capture([self.layout.manifest_path, self.layout.lockfile_path])
        except OSError as exc:
            logger.error("Could not back up DESCRIPTION and renv.lock, files left unchanged: %s", exc)
            return self._unresolved_result(batch, unresolved, f"backup failed: {exc}")

        try:
            manifest_changed = False
            for name in batch:
                if name in report.missing:
                    added = description.add_import(name, declared_in=self.declared_in)
                    manifest_changed = added or manifest_changed
                if name in records:
                    lockfile.add_entry(build_lock_entry(records[name]))
            if manifest_changed:
                write_description(description, self.layout.manifest_path, writer=self.writer)
            if records:
                write_lockfile(lockfile, self.layout.lockfile_path, writer=self.writer)
        except (ManifestWriteError, LockWriteError) as exc:
            logger.error("Write failed, rolling back: %s", exc)
            backup.restore()
            return self._unresolved_result(batch, unresolved, f"write failed: {exc}")
        except BaseException:
            logger.error("Fix interrupted, rolling back")
            backup.restore()
            raise

        backup.discard()
        if is_debug_enabled(logger):
            logger.debug(
                "Fix batch written",
                extra=extra_context(
                    event="fix",
                    component="resolver",
                    outcome="written",
                    added=format_names(batch),
                    unresolved=format_names(unresolved),
                ),
            )
        logger.info("Added %d package(s): %s", len(batch), format_names(batch))
        return FixResult(report=self.revalidate(), added=tuple(batch), unresolved=unresolved)
