"""Validation pipeline: scan, filter, parse and reconcile one project."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from analysis.models import ScanMode, ValidationReport
from analysis.reconciler import Reconciler
from cli_config import RenvCheckConfig
from common.errors import LockfileNotFoundError, LockfileParseError, ManifestNotFoundError
from common.logging_utils import Timer, extra_context, format_names
from constants import Constants
from parsers.description import DescriptionFile, parse_description
from parsers.lockfile import LockfileDocument, parse_lockfile
from scan.extractor import Extractor
from scan.name_filter import FilterResult, NameFilter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectLayout:
    """Resolved paths of the files one validation run touches."""
    project_dir: str
    manifest_path: str
    lockfile_path: str

    @classmethod
    def for_project(
        cls,
        project_dir: str,
        manifest_path: Optional[str] = None,
        lockfile_path: Optional[str] = None,
    ) -> "ProjectLayout":
        root = os.path.abspath(project_dir)
        return cls(
            project_dir=root,
            manifest_path=os.path.abspath(manifest_path or os.path.join(root, Constants.DESCRIPTION_FILE)),
            lockfile_path=os.path.abspath(lockfile_path or os.path.join(root, Constants.RENV_LOCK_FILE)),
        )


@dataclass
class PipelineResult:
    """A report together with the parsed documents it was computed from."""
    report: ValidationReport
    description: Optional[DescriptionFile]
    lockfile: Optional[LockfileDocument]
    filter_result: FilterResult
    warnings: List[str] = field(default_factory=list)


def _load_description(layout: ProjectLayout, warnings: List[str]) -> Optional[DescriptionFile]:
    try:
        return parse_description(layout.manifest_path)
    except ManifestNotFoundError as exc:
        message = f"{exc}; treating declared packages as empty"
        logger.warning(message)
        warnings.append(message)
        return None


def _load_lockfile(layout: ProjectLayout, warnings: List[str]) -> Optional[LockfileDocument]:
    try:
        return parse_lockfile(layout.lockfile_path)
    except (LockfileNotFoundError, LockfileParseError) as exc:
        message = f"{exc}; treating locked packages as empty"
        logger.warning(message)
        warnings.append(message)
        return None


def run_validation(
    layout: ProjectLayout,
    config: RenvCheckConfig,
    mode: ScanMode = ScanMode.STANDARD,
) -> PipelineResult:
    """Run one pass of the validation pipeline.

    A missing DESCRIPTION or renv.lock is not fatal: the corresponding set is
    treated as empty and a warning is recorded, so the report still names
    every package the code needs.
    """
    warnings: List[str] = []
    with Timer() as timer:
        description = _load_description(layout, warnings)
        lockfile = _load_lockfile(layout, warnings)

        self_package = description.package_name if description is not None else None
        extractor = Extractor(
            layout.project_dir,
            config.scan_roots(mode),
            config.scan.extensions,
            include_top_level=config.scan.include_top_level,
        )
        filter_result = NameFilter(config.filter_config(self_package)).apply(extractor.scan())

        declared: FrozenSet[str] = frozenset(
            description.declared_names(config.declaration_fields(mode)) if description is not None else ()
        )
        locked: FrozenSet[str] = lockfile.locked_names() if lockfile is not None else frozenset()
        accounted = set(lockfile.required_names()) if lockfile is not None else set()
        if description is not None:
            accounted.update(description.declared_names(
                config.scan.declaration_fields + config.scan.strict_declaration_fields
            ))

        reconciler = Reconciler(
            protected=config.filter.protected,
            min_length=config.filter.min_length,
        )
        report = reconciler.reconcile(filter_result.names, declared, locked, mode, accounted=accounted)

    logger.info(
        "Validation (%s mode): %d used, %d declared, %d locked",
        mode.value, report.used_count, report.declared_count, report.locked_count,
    )
    if report.extra:
        logger.warning("Extra packages in renv.lock: %s", format_names(report.extra))
    logger.debug(
        "Validation finished",
        extra=extra_context(
            event="validate",
            component="pipeline",
            outcome=report.status.value,
            duration_ms=timer.duration_ms(),
            missing=format_names(report.missing),
            unlocked=format_names(report.unlocked),
            unused=format_names(report.unused),
            extra=format_names(report.extra),
        ),
    )
    return PipelineResult(
        report=report,
        description=description,
        lockfile=lockfile,
        filter_result=filter_result,
        warnings=warnings,
    )
