"""renv.lock parsing and rewriting.

renv.lock is a JSON document with a top-level ``Packages`` table keyed by
package name. Only the keys matter for reconciliation; the records are kept
so the resolver can add entries and write the document back.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

from analysis.models import LockEntry
from common.atomic_io import atomic_write_text
from common.errors import LockfileNotFoundError, LockfileParseError, LockWriteError
from constants import Constants

logger = logging.getLogger(__name__)

PACKAGES_KEY = "Packages"


def _entry_from_record(name: str, record: Dict[str, Any]) -> LockEntry:
    return LockEntry(
        name=name,
        version=record.get("Version"),
        source=record.get("Source"),
        repository=record.get("Repository"),
        hash=record.get("Hash"),
        raw=dict(record),
    )


class LockfileDocument:
    """A loaded renv.lock with its package table."""

    def __init__(self, path: str, data: Optional[Dict[str, Any]] = None):
        self.path = path
        self.data: Dict[str, Any] = data if data is not None else {PACKAGES_KEY: {}}
        packages = self.data.get(PACKAGES_KEY)
        if not isinstance(packages, dict):
            packages = {}
            self.data[PACKAGES_KEY] = packages

    @property
    def packages(self) -> Dict[str, Any]:
        return self.data[PACKAGES_KEY]

    @property
    def entries(self) -> Dict[str, LockEntry]:
        return {
            name: _entry_from_record(name, record)
            for name, record in self.packages.items()
            if isinstance(record, dict)
        }

    def locked_names(self, exclude: Iterable[str] = Constants.BASE_PACKAGES) -> FrozenSet[str]:
        excluded = set(exclude)
        return frozenset(n for n in self.packages if n not in excluded)

    def required_names(self) -> FrozenSet[str]:
        """Packages listed in the ``Requirements`` of any locked record."""
        names = set()
        for record in self.packages.values():
            requirements = record.get("Requirements") if isinstance(record, dict) else None
            if isinstance(requirements, list):
                names.update(r for r in requirements if isinstance(r, str))
        return frozenset(names)

    def add_entry(self, entry: LockEntry) -> None:
        """Insert or replace a package record, keeping keys sorted."""
        table = dict(self.packages)
        table[entry.name] = entry.to_json()
        self.data[PACKAGES_KEY] = {k: table[k] for k in sorted(table, key=str.lower)}

    def dumps(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"


def parse_lockfile(path: str) -> LockfileDocument:
    """Load renv.lock.

    Raises:
        LockfileNotFoundError: If the file is absent.
        LockfileParseError: If the file cannot be read, is not UTF-8 or is not
            a JSON object.
    """
    if not os.path.isfile(path):
        raise LockfileNotFoundError(f"renv.lock file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise LockfileParseError(f"Failed to read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LockfileParseError(f"Failed to parse {path} (not UTF-8): {exc}") from exc
    except json.JSONDecodeError as exc:
        raise LockfileParseError(f"Failed to parse {path} (invalid JSON): {exc}") from exc
    if not isinstance(data, dict):
        raise LockfileParseError(f"Failed to parse {path}: top-level value is not an object")
    if not isinstance(data.get(PACKAGES_KEY, {}), dict):
        raise LockfileParseError(f"Failed to parse {path}: '{PACKAGES_KEY}' is not an object")
    return LockfileDocument(path, data)


def write_lockfile(
    doc: LockfileDocument,
    path: Optional[str] = None,
    writer: Callable[[str, str], None] = atomic_write_text,
) -> None:
    """Read-modify-write completion: atomically write ``doc`` back.

    Raises:
        LockWriteError: If the write fails for any OS-level reason.
    """
    target = path or doc.path
    try:
        writer(target, doc.dumps())
    except OSError as exc:
        raise LockWriteError(f"Failed to write {target}: {exc}") from exc
