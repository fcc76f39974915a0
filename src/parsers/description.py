"""DESCRIPTION (DCF) parsing and in-place editing.

Only the dependency fields are interpreted. The file is kept as a list of raw
lines so a rewrite touches nothing but the lines it has to, which preserves
version constraints, indentation and every unrelated field verbatim.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from analysis.models import Declaration, is_valid_package_name
from common.atomic_io import atomic_write_text
from common.errors import ManifestNotFoundError, ManifestWriteError
from constants import Constants

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^([A-Za-z][A-Za-z0-9@/._-]*)\s*:(.*)$")
_ENTRY_RE = re.compile(r"^([^\s(]+)\s*(?:\((.*)\))?$")


@dataclass
class FieldSpan:
    """Location of one DCF field: ``lines[start:end]``."""
    name: str
    start: int
    end: int


def split_entries(value: str) -> List[str]:
    """Split a dependency field value on commas outside parentheses."""
    entries: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in value:
        if ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        if ch == "," and depth == 0:
            entries.append("".join(current))
            current = []
            continue
        current.append(ch)
    entries.append("".join(current))
    return [" ".join(e.split()) for e in entries if e.strip()]


def parse_declarations(value: str, field_name: str) -> List[Declaration]:
    """Turn a raw field value into ordered, deduplicated declarations.

    Version constraints are captured but play no part in identity. The ``R``
    pseudo-package and malformed names are dropped silently.
    """
    seen = set()
    result: List[Declaration] = []
    for entry in split_entries(value):
        match = _ENTRY_RE.match(entry)
        if match:
            name, constraint = match.group(1), match.group(2)
        else:
            name = re.sub(r"\([^)]*\)", "", entry).split()[0] if entry.split() else ""
            constraint = None
        constraint = " ".join(constraint.split()) if constraint else None
        if name == "R" or name in seen:
            continue
        if not is_valid_package_name(name, min_length=2):
            logger.debug("Dropping malformed declaration %r in %s", name, field_name)
            continue
        seen.add(name)
        result.append(Declaration(name=name, constraint=constraint, field=field_name))
    return result


class DescriptionFile:
    """Parsed DESCRIPTION file that can be edited and written back."""

    def __init__(self, path: str, text: str, encoding: str = "utf-8"):
        self.path = path
        self.encoding = encoding
        self.trailing_newline = text.endswith("\n") or not text
        self.lines: List[str] = text.splitlines()
        self.fields: Dict[str, FieldSpan] = {}
        self._index()

    def _index(self) -> None:
        self.fields = {}
        current: Optional[FieldSpan] = None
        for idx, line in enumerate(self.lines):
            match = _FIELD_RE.match(line)
            if match and not line[:1].isspace():
                current = FieldSpan(match.group(1), idx, idx + 1)
                self.fields.setdefault(current.name, current)
            elif current is not None and line[:1].isspace() and line.strip():
                current.end = idx + 1
            else:
                current = None

    @property
    def package_name(self) -> Optional[str]:
        value = self.raw_field("Package")
        if value is None:
            return None
        return value.strip() or None

    def raw_field(self, name: str) -> Optional[str]:
        """Return the unmodified field value (continuations joined by newlines)."""
        span = self.fields.get(name)
        if span is None:
            return None
        first = _FIELD_RE.match(self.lines[span.start]).group(2)
        rest = self.lines[span.start + 1:span.end]
        return "\n".join([first.strip()] + rest)

    def declarations(self, field_names: Iterable[str] = Constants.DECLARATION_FIELDS) -> List[Declaration]:
        """Declarations of the given fields, deduplicated across fields."""
        seen = set()
        result: List[Declaration] = []
        for field_name in field_names:
            value = self.raw_field(field_name)
            if value is None:
                continue
            for decl in parse_declarations(value, field_name):
                if decl.name not in seen:
                    seen.add(decl.name)
                    result.append(decl)
        return result

    def declared_names(self, field_names: Iterable[str] = Constants.DECLARATION_FIELDS) -> List[str]:
        return [d.name for d in self.declarations(field_names)]

    def add_import(
        self,
        name: str,
        field_name: str = Constants.IMPORTS_FIELD,
        declared_in: Iterable[str] = Constants.STRICT_DECLARATION_FIELDS,
    ) -> bool:
        """Append ``name`` to a dependency field, keeping its layout.

        Returns:
            False when the package is already declared in ``field_name`` or
            in any of the ``declared_in`` fields.
        """
        if name in self.declared_names(tuple(declared_in) + (field_name,)):
            return False
        span = self.fields.get(field_name)
        if span is None:
            insert_at = len(self.lines)
            while insert_at and not self.lines[insert_at - 1].strip():
                insert_at -= 1
            self.lines[insert_at:insert_at] = [
                f"{field_name}:",
                f"{Constants.DEFAULT_IMPORT_INDENT}{name}",
            ]
            self._index()
            return True

        head = self.lines[span.start]
        value = _FIELD_RE.match(head).group(2)
        if span.end - span.start > 1:
            last = span.end - 1
            indent = re.match(r"^\s*", self.lines[span.start + 1]).group(0)
            tail = self.lines[last].rstrip()
            if tail.endswith(","):
                self.lines.insert(span.end, f"{indent}{name},")
            else:
                self.lines[last] = f"{tail},"
                self.lines.insert(span.end, f"{indent}{name}")
        elif value.strip():
            tail = head.rstrip()
            separator = " " if tail.endswith(",") else ", "
            self.lines[span.start] = f"{tail}{separator}{name}"
        else:
            self.lines[span.start] = f"{field_name}:"
            self.lines.insert(span.start + 1, f"{Constants.DEFAULT_IMPORT_INDENT}{name}")
        self._index()
        return True

    def dumps(self) -> str:
        text = "\n".join(self.lines)
        return text + "\n" if self.trailing_newline or not text else text


def parse_description(path: str) -> DescriptionFile:
    """Read and parse a DESCRIPTION file.

    Files that are not valid UTF-8 are read as Latin-1, the other encoding
    R writes DESCRIPTION files in, and are written back in it.

    Raises:
        ManifestNotFoundError: If ``path`` does not exist or cannot be read.
    """
    if not os.path.isfile(path):
        raise ManifestNotFoundError(f"DESCRIPTION file not found: {path}")
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise ManifestNotFoundError(f"Failed to read {path}: {exc}") from exc
    try:
        return DescriptionFile(path, data.decode("utf-8"))
    except UnicodeDecodeError:
        logger.warning("%s is not valid UTF-8; reading it as Latin-1", path)
        return DescriptionFile(path, data.decode("latin-1"), encoding="latin-1")


def write_description(
    doc: DescriptionFile,
    path: Optional[str] = None,
    writer: Callable[[str, str], None] = atomic_write_text,
) -> None:
    """Atomically write ``doc`` back to disk.

    Raises:
        ManifestWriteError: If the write fails for any OS-level reason.
    """
    target = path or doc.path
    text = doc.dumps()
    try:
        writer(target, text if doc.encoding == "utf-8" else text.encode(doc.encoding))
    except (OSError, UnicodeEncodeError) as exc:
        raise ManifestWriteError(f"Failed to write {target}: {exc}") from exc
