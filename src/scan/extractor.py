"""Lexical extraction of package references from R sources.

This is pure pattern matching, no R code is evaluated. Package names built at
run time (``library(pkg, character.only = TRUE)`` with a variable, ``get()``
tricks) are therefore invisible to the scan.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Iterable, Iterator, List, Sequence, Tuple

from analysis.models import CodeReference
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

_IDENT = r"[A-Za-z][A-Za-z0-9._]*"

LIBRARY_CALL_RE = re.compile(
    r"\b(?:library|require|requireNamespace|loadNamespace|attachNamespace)\s*\(\s*"
    r"(?:package\s*=\s*)?[\"'`]?(" + _IDENT + r")[\"'`]?\s*[,)]"
)
NAMESPACE_RE = re.compile(r"(?<![A-Za-z0-9._$@])(" + _IDENT + r"):::?(?=[A-Za-z._`])")
ROXYGEN_LINE_RE = re.compile(r"^\s*#'")
ROXYGEN_IMPORT_RE = re.compile(
    r"^\s*#'\s*@(import|importFrom|importClassesFrom|importMethodsFrom)\s+(.*)$"
)
FULL_LINE_COMMENT_RE = re.compile(r"^\s*#")


def strip_trailing_comment(line: str) -> str:
    """Drop a trailing ``#`` comment, ignoring ``#`` inside quoted strings."""
    quote = None
    escaped = False
    for idx, ch in enumerate(line):
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if quote:
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"', "`"):
            quote = ch
        elif ch == "#":
            return line[:idx]
    return line


def _roxygen_targets(directive: str, rest: str) -> List[str]:
    tokens = [t.strip("\"'`") for t in rest.split()]
    tokens = [t for t in tokens if t]
    if not tokens:
        return []
    if directive == "import":
        return tokens
    return tokens[:1]


def extract_from_text(text: str, rel_path: str) -> List[CodeReference]:
    """Extract candidate references from the contents of one file.

    Args:
        text: File contents.
        rel_path: Project-relative path recorded as provenance.

    Returns:
        List of CodeReference, duplicates included.
    """
    refs: List[CodeReference] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if ROXYGEN_LINE_RE.match(line):
            directive = ROXYGEN_IMPORT_RE.match(line)
            if directive:
                for target in _roxygen_targets(directive.group(1), directive.group(2)):
                    refs.append(CodeReference(target, rel_path, "roxygen", lineno))
                continue
            # Code inside roxygen blocks (e.g. @examples) is documentation.
            body = line.split("'", 1)[1]
            refs.extend(_match_code(body, rel_path, lineno, in_comment=True))
            continue
        if FULL_LINE_COMMENT_RE.match(line):
            continue
        refs.extend(_match_code(strip_trailing_comment(line), rel_path, lineno, in_comment=False))
    return refs


def _match_code(code: str, rel_path: str, lineno: int, in_comment: bool) -> Iterator[CodeReference]:
    for match in LIBRARY_CALL_RE.finditer(code):
        yield CodeReference(match.group(1), rel_path, "call", lineno, in_comment)
    for match in NAMESPACE_RE.finditer(code):
        yield CodeReference(match.group(1), rel_path, "namespace", lineno, in_comment)


class Extractor:
    """Walk scan roots and collect package references from matching files."""

    def __init__(
        self,
        project_dir: str,
        roots: Sequence[str],
        extensions: Iterable[str],
        include_top_level: bool = True,
    ):
        self.project_dir = os.path.abspath(project_dir)
        self.roots = tuple(roots)
        self.extensions = frozenset(e.lower().lstrip(".") for e in extensions)
        self.include_top_level = include_top_level

    def _matches(self, filename: str) -> bool:
        _, ext = os.path.splitext(filename)
        return ext.lower().lstrip(".") in self.extensions

    def discover_files(self) -> List[Tuple[str, str]]:
        """Return sorted ``(absolute_path, relative_posix_path)`` pairs."""
        found = {}
        for root in self.roots:
            base = os.path.join(self.project_dir, root)
            if not os.path.isdir(base):
                continue
            for dirpath, dirnames, filenames in os.walk(base):
                dirnames.sort()
                for filename in filenames:
                    if self._matches(filename):
                        abs_path = os.path.join(dirpath, filename)
                        found[abs_path] = self._relative(abs_path)
        if self.include_top_level:
            for entry in sorted(os.listdir(self.project_dir)):
                abs_path = os.path.join(self.project_dir, entry)
                if os.path.isfile(abs_path) and self._matches(entry):
                    found[abs_path] = self._relative(abs_path)
        return sorted(found.items(), key=lambda item: item[1])

    def _relative(self, abs_path: str) -> str:
        return os.path.relpath(abs_path, self.project_dir).replace(os.sep, "/")

    def scan(self) -> List[CodeReference]:
        """Scan every discovered file; unreadable files are skipped."""
        files = self.discover_files()
        logger.info("Scanning %d files in: %s", len(files), ", ".join(self.roots))
        refs: List[CodeReference] = []
        failed = 0
        for abs_path, rel_path in files:
            try:
                with open(abs_path, "r", encoding="utf-8", errors="replace") as fh:
                    text = fh.read()
            except OSError as exc:
                failed += 1
                logger.warning("Failed to read %s: %s", rel_path, exc)
                continue
            file_refs = extract_from_text(text, rel_path)
            if is_debug_enabled(logger):
                logger.debug(
                    "Extracted references",
                    extra=extra_context(
                        event="extract",
                        component="extractor",
                        target=rel_path,
                        count=len(file_refs),
                    ),
                )
            refs.extend(file_refs)
        if failed:
            logger.warning("Failed to read %d files", failed)
        return refs
