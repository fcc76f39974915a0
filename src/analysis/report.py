"""Human-readable and JSON rendering of a ValidationReport."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from analysis.models import ValidationReport

logger = logging.getLogger(__name__)

_ACTIONS = {
    "missing": "add to DESCRIPTION Imports",
    "unlocked": "run renv::snapshot() or `renvcheck validate --fix`",
    "unused": "remove from DESCRIPTION Imports if no longer needed",
    "extra": "run renv::snapshot() to drop it from renv.lock, or declare it",
    "invalid": "check the spelling or install it from its own repository",
}
_TITLES = {
    "missing": "Used in code but not declared in DESCRIPTION",
    "unlocked": "Declared in DESCRIPTION but not recorded in renv.lock",
    "unused": "Declared in DESCRIPTION but not used in code",
    "extra": "Recorded in renv.lock but not declared in DESCRIPTION (warning)",
    "invalid": "Declared in DESCRIPTION but unknown to the package registry (warning)",
}


def _section(key: str, names: Iterable[str]) -> List[str]:
    ordered = sorted(names)
    if not ordered:
        return []
    lines = [f"{_TITLES[key]} ({len(ordered)}):"]
    lines.extend(f"  - {name}  -> {_ACTIONS[key]}" for name in ordered)
    return lines


def render_text(report: ValidationReport, unused_fails: bool = False) -> str:
    """Render the report as plain text, one line per package."""
    lines = [
        f"Dependency validation ({report.mode.value} mode): "
        f"{report.used_count} used, {report.declared_count} declared, {report.locked_count} locked"
    ]
    lines.extend(_section("missing", report.missing))
    lines.extend(_section("unlocked", report.unlocked))
    lines.extend(_section("unused", report.unused))
    lines.extend(_section("extra", report.extra))
    lines.extend(_section("invalid", report.invalid))
    failed = not report.passed or (unused_fails and bool(report.unused))
    lines.append("Result: FAIL" if failed else "Result: PASS")
    return "\n".join(lines)


def report_payload(
    report: ValidationReport,
    added: Optional[Iterable[str]] = None,
    unresolved: Optional[Dict[str, str]] = None,
    warnings: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Build the JSON document written by ``--output``."""
    data = report.to_dict()
    if added is not None:
        data["fix"] = {
            "added": sorted(added),
            "unresolved": dict(sorted((unresolved or {}).items())),
        }
    data["warnings"] = list(warnings or [])
    return data


def export_json(payload: Dict[str, Any], path: str) -> bool:
    """Export a report payload to a JSON file.

    Args:
        payload (dict): Output of :func:`report_payload`.
        path (str): File path to export the JSON.

    Returns:
        bool: False when the file could not be written.
    """
    try:
        with open(path, "w", encoding="utf-8") as file:
            json.dump(payload, file, ensure_ascii=False, indent=4)
        logger.info("JSON report has been successfully exported at: %s", path)
    except OSError as e:
        logger.error("JSON report couldn't be written to disk: %s", e)
        return False
    return True
