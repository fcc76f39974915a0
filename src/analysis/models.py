"""Data models shared by the scan, parse, reconcile and fix stages."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from common.errors import MalformedPackageName
from constants import Constants

_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9._]*$")


def is_valid_package_name(text: str, min_length: int = Constants.MIN_PACKAGE_LENGTH) -> bool:
    """Return True when ``text`` satisfies the package-name grammar.

    Starts with a letter, only letters/digits/dot/underscore, does not end
    with a separator, and is at least ``min_length`` characters long.
    """
    if not isinstance(text, str) or len(text) < min_length:
        return False
    if not _NAME_RE.match(text):
        return False
    return text[-1] not in "._"


class PackageName(str):
    """Validated, immutable package identifier."""

    __slots__ = ()

    def __new__(cls, value: str) -> "PackageName":
        text = str(value).strip()
        if not is_valid_package_name(text):
            raise MalformedPackageName(f"invalid package name: {value!r}")
        return super().__new__(cls, text)


class ScanMode(Enum):
    """Scan scope for code extraction."""
    STANDARD = "standard"
    STRICT = "strict"


class Status(Enum):
    """Outcome of a validation run."""
    PASS = "pass"
    FAIL = "fail"


@dataclass(frozen=True)
class CodeReference:
    """A candidate package token found in a source file."""
    name: str
    path: str  # project-relative POSIX path
    pattern: str  # "call" | "namespace" | "roxygen"
    line: int
    in_comment: bool = False


@dataclass(frozen=True)
class Declaration:
    """A package declared in a DESCRIPTION dependency field."""
    name: str
    constraint: Optional[str]
    field: str


@dataclass(frozen=True)
class LockEntry:
    """A package record from the renv.lock ``Packages`` table."""
    name: str
    version: Optional[str]
    source: Optional[str]
    repository: Optional[str]
    hash: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_json(self) -> Dict[str, Any]:
        """Render as an renv.lock package record."""
        record: Dict[str, Any] = {"Package": self.name}
        for key, value in (
            ("Version", self.version),
            ("Source", self.source),
            ("Repository", self.repository),
        ):
            if value is not None:
                record[key] = value
            elif key in self.raw:
                record[key] = self.raw[key]
        for key, value in self.raw.items():
            if key not in record and key != "Hash":
                record[key] = value
        if self.hash is not None:
            record["Hash"] = self.hash
        elif "Hash" in self.raw:
            record["Hash"] = self.raw["Hash"]
        return record


@dataclass(frozen=True)
class ValidationReport:
    """Categorized three-way diff between code, DESCRIPTION and renv.lock.

    ``extra`` (locked but neither declared nor required by another locked
    package) and ``invalid`` (declared but unknown to the registry) are
    warnings only and never change ``status``.
    """
    missing: FrozenSet[str]
    unlocked: FrozenSet[str]
    unused: FrozenSet[str]
    mode: ScanMode
    status: Status
    used_count: int = 0
    declared_count: int = 0
    locked_count: int = 0
    extra: FrozenSet[str] = frozenset()
    invalid: FrozenSet[str] = frozenset()

    @property
    def passed(self) -> bool:
        return self.status is Status.PASS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "mode": self.mode.value,
            "missing": sorted(self.missing),
            "unlocked": sorted(self.unlocked),
            "unused": sorted(self.unused),
            "extra": sorted(self.extra),
            "invalid": sorted(self.invalid),
            "counts": {
                "used": self.used_count,
                "declared": self.declared_count,
                "locked": self.locked_count,
            },
        }
