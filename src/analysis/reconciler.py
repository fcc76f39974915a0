"""Three-way reconciliation of used, declared and locked package sets."""

from __future__ import annotations

import logging
from typing import AbstractSet, FrozenSet, Iterable

from analysis.models import ScanMode, Status, ValidationReport
from constants import Constants

logger = logging.getLogger(__name__)


class Reconciler:
    """Compute the categorized diff that makes up a ValidationReport.

    ``missing = used - declared`` and ``unlocked = declared - locked`` in
    every mode. ``unused = declared - used`` is only computed in strict mode,
    where the scan covers tests and examples too. Base packages ship with R
    and are never locked, so they are exempt from ``unlocked`` and
    ``unused``; protected packages and names too short for the extractor to
    report are never unused. ``extra = locked - declared - accounted`` lists
    locked packages nothing asks for, where ``accounted`` holds names the
    caller knows to be needed anyway (other dependency fields, requirements
    of other locked packages).
    """

    def __init__(
        self,
        protected: Iterable[str] = Constants.PROTECTED_PACKAGES,
        base_packages: Iterable[str] = Constants.BASE_PACKAGES,
        min_length: int = Constants.MIN_PACKAGE_LENGTH,
    ):
        self.protected: FrozenSet[str] = frozenset(protected)
        self.base_packages: FrozenSet[str] = frozenset(base_packages)
        self.min_length = min_length

    def reconcile(
        self,
        used: AbstractSet[str],
        declared: AbstractSet[str],
        locked: AbstractSet[str],
        mode: ScanMode = ScanMode.STANDARD,
        accounted: AbstractSet[str] = frozenset(),
    ) -> ValidationReport:
        used_set = frozenset(str(n) for n in used)
        declared_set = frozenset(declared)
        locked_set = frozenset(locked)

        missing = used_set - declared_set
        unlocked = declared_set - locked_set - self.base_packages
        unused: FrozenSet[str] = frozenset()
        if mode is ScanMode.STRICT:
            unused = frozenset(
                n for n in declared_set - used_set - self.base_packages - self.protected
                if len(n) >= self.min_length
            )
        extra = locked_set - declared_set - frozenset(accounted) - self.base_packages - self.protected

        status = Status.FAIL if (missing or unlocked) else Status.PASS
        logger.debug(
            "Reconciled %d used / %d declared / %d locked: %d missing, %d unlocked, %d unused, %d extra",
            len(used_set), len(declared_set), len(locked_set),
            len(missing), len(unlocked), len(unused), len(extra),
        )
        return ValidationReport(
            missing=missing,
            unlocked=unlocked,
            unused=unused,
            mode=mode,
            status=status,
            used_count=len(used_set),
            declared_count=len(declared_set),
            locked_count=len(locked_set),
            extra=extra,
        )
