"""False-positive filtering for extracted package tokens.

Rules run in a fixed order and the first rejection wins. Name-level rules look
only at the token; reference-level rules look at where it was found. A token
is accepted when at least one of its references passes every rule.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from analysis.models import CodeReference, PackageName, is_valid_package_name
from common.errors import MalformedPackageName
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants

logger = logging.getLogger(__name__)

_VALID_CHARS_RE = re.compile(r"^[A-Za-z0-9._]+$")


@dataclass(frozen=True)
class FilterConfig:
    """Immutable filter configuration passed into :class:`NameFilter`."""
    min_length: int = Constants.MIN_PACKAGE_LENGTH
    base_packages: FrozenSet[str] = frozenset(Constants.BASE_PACKAGES)
    reserved_words: FrozenSet[str] = frozenset(Constants.RESERVED_WORDS)
    placeholder_words: FrozenSet[str] = frozenset(w.lower() for w in Constants.PLACEHOLDER_WORDS)
    foreign_namespaces: FrozenSet[str] = frozenset(Constants.FOREIGN_NAMESPACES)
    ignored: FrozenSet[str] = frozenset()
    exclude_globs: Tuple[str, ...] = Constants.EXCLUDE_GLOBS
    self_package: Optional[str] = None

    def with_self_package(self, name: Optional[str]) -> "FilterConfig":
        return replace(self, self_package=name or None)

    def with_extra(
        self,
        placeholder_words: Iterable[str] = (),
        ignored: Iterable[str] = (),
        exclude_globs: Iterable[str] = (),
    ) -> "FilterConfig":
        """Return a copy extended with user-supplied entries."""
        return replace(
            self,
            placeholder_words=self.placeholder_words | {w.lower() for w in placeholder_words},
            ignored=self.ignored | frozenset(ignored),
            exclude_globs=self.exclude_globs + tuple(exclude_globs),
        )


NameRule = Tuple[str, Callable[[str, FilterConfig], bool]]
RefRule = Tuple[str, Callable[[CodeReference, FilterConfig], bool]]

NAME_RULES: Tuple[NameRule, ...] = (
    ("empty", lambda n, c: not n),
    ("too_short", lambda n, c: len(n) < c.min_length),
    ("base_package", lambda n, c: n in c.base_packages),
    ("reserved_word", lambda n, c: n in c.reserved_words),
    ("self_reference", lambda n, c: c.self_package is not None and n == c.self_package),
    ("placeholder_word", lambda n, c: n.lower() in c.placeholder_words),
    ("ignored", lambda n, c: n in c.ignored),
    ("foreign_namespace", lambda n, c: n in c.foreign_namespaces),
    ("leading_separator", lambda n, c: n[0] in "._"),
    ("leading_digit", lambda n, c: n[0].isdigit()),
    ("trailing_separator", lambda n, c: n[-1] in "._"),
    ("invalid_character", lambda n, c: not _VALID_CHARS_RE.match(n)),
)


def _path_excluded(ref: CodeReference, config: FilterConfig) -> bool:
    return any(fnmatch.fnmatchcase(ref.path, pattern) for pattern in config.exclude_globs)


REF_RULES: Tuple[RefRule, ...] = (
    ("excluded_path", _path_excluded),
    ("comment_origin", lambda r, c: r.in_comment),
)


def rejection_reason(name: str, config: FilterConfig) -> Optional[str]:
    """Return the first name-level rule rejecting ``name``, or None."""
    for reason, predicate in NAME_RULES:
        if predicate(name, config):
            return reason
    return None


def reference_rejection(ref: CodeReference, config: FilterConfig) -> Optional[str]:
    """Return the first rule (name- then reference-level) rejecting ``ref``."""
    reason = rejection_reason(ref.name, config)
    if reason:
        return reason
    for reason, predicate in REF_RULES:
        if predicate(ref, config):
            return reason
    return None


@dataclass
class FilterResult:
    """Accepted names plus diagnostics for dropped tokens."""
    names: FrozenSet[PackageName]
    references: Dict[str, List[CodeReference]] = field(default_factory=dict)
    rejected: Dict[str, str] = field(default_factory=dict)


class NameFilter:
    """Apply the ordered rules to a multiset of code references."""

    def __init__(self, config: FilterConfig):
        self.config = config

    def apply(self, refs: Iterable[CodeReference]) -> FilterResult:
        accepted: Dict[str, List[CodeReference]] = {}
        rejected: Dict[str, str] = {}
        for ref in refs:
            reason = reference_rejection(ref, self.config)
            if reason is None:
                accepted.setdefault(ref.name, []).append(ref)
            else:
                rejected.setdefault(ref.name, reason)

        names: Set[PackageName] = set()
        for name in list(accepted):
            try:
                names.add(PackageName(name))
            except MalformedPackageName:
                accepted.pop(name)
                rejected[name] = "malformed"
                continue
            rejected.pop(name, None)

        if is_debug_enabled(logger):
            for name, reason in sorted(rejected.items()):
                logger.debug(
                    "Token rejected",
                    extra=extra_context(
                        event="filter", component="name_filter", target=name, outcome=reason
                    ),
                )
        return FilterResult(names=frozenset(names), references=accepted, rejected=rejected)

    def filter_names(self, tokens: Iterable[str]) -> FrozenSet[PackageName]:
        """Filter bare tokens with the name-level rules only."""
        return frozenset(
            PackageName(t) for t in tokens
            if rejection_reason(t, self.config) is None and is_valid_package_name(t)
        )
