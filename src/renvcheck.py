"""renvcheck: dependency consistency checks for renv-managed R projects.

Entry point for the ``renvcheck`` console script. Dispatches to the
``validate``, ``snapshot``, ``hook`` and ``restore-timestamp`` commands and
maps their outcome to the process exit code.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import replace

from analysis.models import ScanMode
from analysis.pipeline import ProjectLayout, run_validation
from analysis.report import export_json, render_text, report_payload
from args import parse_args
from autofix.resolver import Resolver
from cli_config import (
    RenvCheckConfig,
    apply_cli_overrides,
    apply_env_overrides,
    describe,
    load_config,
    resolve_project_dir,
)
from cli_hook import parse_hook_command, run_hook, run_restore_timestamp, run_snapshot
from common.errors import BackupRestoreFailure, ConfigError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from registry.cran import RegistryClient
from snapshot.timestamps import restore_timestamp

logger = logging.getLogger(__name__)


def _layout_from_args(args, project_dir: str) -> ProjectLayout:
    manifest = getattr(args, "MANIFEST", None)
    if manifest and not os.path.isfile(manifest):
        raise ConfigError(f"DESCRIPTION file not found: {manifest}")
    return ProjectLayout.for_project(project_dir, manifest, getattr(args, "LOCKFILE", None))


def _registry_client(config) -> RegistryClient:
    return RegistryClient(
        config.registry.url,
        timeout=config.registry.timeout,
        retries=config.registry.retries,
        base_delay=config.registry.backoff,
    )


def run_validate(args, project_dir: str, config) -> int:
    """The ``validate`` command."""
    layout = _layout_from_args(args, project_dir)
    mode = ScanMode.STRICT if args.STRICT else ScanMode.STANDARD
    result = run_validation(layout, config, mode)
    report = result.report
    warnings = list(result.warnings)

    resolver = None
    if args.FIX or config.registry.check_declared:
        resolver = Resolver(
            _registry_client(config),
            layout,
            revalidate=lambda: run_validation(layout, config, mode).report,
            max_workers=config.registry.max_workers,
            declared_in=config.declaration_fields(mode),
        )

    fix_result = None
    if args.FIX and (report.missing or report.unlocked):
        fix_result = resolver.fix(report, result.description, result.lockfile)
        report = fix_result.report
        for name, reason in sorted(fix_result.unresolved.items()):
            warnings.append(f"unresolved {name}: {reason}")
        if fix_result.unresolved:
            logger.warning(
                "%d package(s) need manual attention: %s",
                len(fix_result.unresolved),
                ", ".join(sorted(fix_result.unresolved)),
            )

    if config.registry.check_declared and result.description is not None:
        declared = set(result.description.declared_names(config.declaration_fields(mode)))
        declared -= set(Constants.BASE_PACKAGES) | set(config.filter.protected)
        if fix_result is not None:
            declared -= set(fix_result.added)
        report = replace(report, invalid=resolver.unknown_packages(declared))

    if not args.QUIET:
        sys.stdout.write(render_text(report, unused_fails=config.fail_on_unused) + "\n")

    if args.OUTPUT:
        payload = report_payload(
            report,
            added=fix_result.added if fix_result else None,
            unresolved=fix_result.unresolved if fix_result else None,
            warnings=warnings,
        )
        if not export_json(payload, args.OUTPUT):
            return ExitCodes.CONFIG_ERROR.value

    failed = not report.passed or (config.fail_on_unused and bool(report.unused))
    if failed:
        return ExitCodes.VALIDATION_FAILED.value
    try:
        restore_timestamp(project_dir)
    except OSError as exc:
        logger.warning("Could not restore the renv.lock timestamp: %s", exc)
    return ExitCodes.SUCCESS.value


def run(argv=None) -> int:
    """Parse ``argv``, run the selected command and return its exit code."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE, args.QUIET)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.COMMAND),
        )

    try:
        project_dir = resolve_project_dir(args.PROJECT_DIR)
        # The hook always starts the wrapped command.
        lenient = args.COMMAND == "hook"
        try:
            config = load_config(args.CONFIG, project_dir)
        except ConfigError as exc:
            if not lenient:
                raise
            logger.warning("%s; using the default configuration", exc)
            config = RenvCheckConfig()
        apply_env_overrides(config, lenient=lenient)
        apply_cli_overrides(config, args)
        logger.debug("Effective configuration: %s", describe(config))

        if args.COMMAND == "validate":
            return run_validate(args, project_dir, config)
        if args.COMMAND == "snapshot":
            return run_snapshot(project_dir, config)
        if args.COMMAND == "hook":
            return run_hook(parse_hook_command(args), project_dir, config)
        if args.COMMAND == "restore-timestamp":
            return run_restore_timestamp(project_dir)
    except ConfigError as exc:
        logger.error("%s", exc)
        return ExitCodes.CONFIG_ERROR.value
    except BackupRestoreFailure as exc:
        logger.critical("%s. Manual intervention required: restore DESCRIPTION and renv.lock from the backup copies.", exc)
        return ExitCodes.RESTORE_FAILURE.value

    logger.error("Unknown command: %s", args.COMMAND)
    return ExitCodes.CONFIG_ERROR.value


def main():
    """Main function of the program."""
    sys.exit(run())


if __name__ == "__main__":
    main()
