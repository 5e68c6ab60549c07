"""
Include/exclude pattern matching

A pattern is a plain string whose meaning is inferred from its shape:

- ``*`` or ``.*`` matches everything
- ``/.../`` is a regular expression, searched in each component
- anything containing ``*`` is a glob, anchored at both ends
- a dotted or backslashed name such as ``app.http.controllers`` is a
  namespace prefix
- everything else must equal a component exactly
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Iterable, Pattern, Sequence, Tuple

from ..errors import ConfigurationError

MATCH_ALL_PATTERNS = frozenset({"*", ".*"})
REGEX_DELIMITER = "/"
WILDCARD = "*"
NAMESPACE_SEPARATORS = ("\\", ".")


class PatternKind(str, Enum):
    MATCH_ALL = "match_all"
    REGEX = "regex"
    WILDCARD = "wildcard"
    PREFIX = "prefix"
    EXACT = "exact"


def classify_pattern(pattern: str) -> PatternKind:
    """Determine how a pattern string should be interpreted"""
    if pattern in MATCH_ALL_PATTERNS:
        return PatternKind.MATCH_ALL
    if (
        len(pattern) >= 2
        and pattern.startswith(REGEX_DELIMITER)
        and pattern.endswith(REGEX_DELIMITER)
    ):
        return PatternKind.REGEX
    if WILDCARD in pattern:
        return PatternKind.WILDCARD
    # Paths like "GET /index.html" contain dots but are not namespaces
    if (
        any(sep in pattern for sep in NAMESPACE_SEPARATORS)
        and "/" not in pattern
        and not any(ch.isspace() for ch in pattern)
    ):
        return PatternKind.PREFIX
    return PatternKind.EXACT


@dataclass(frozen=True)
class CompiledPattern:
    """A classified pattern with its compiled regular expression"""

    source: str
    kind: PatternKind
    regex: Pattern[str]

    def matches(self, component: str) -> bool:
        if self.kind is PatternKind.MATCH_ALL:
            return True
        if self.kind is PatternKind.REGEX:
            return self.regex.search(component) is not None
        if self.kind is PatternKind.PREFIX:
            return self.regex.match(component) is not None
        return self.regex.fullmatch(component) is not None


def compile_pattern(pattern: str) -> CompiledPattern:
    """Classify and compile a single pattern"""
    if not isinstance(pattern, str):
        raise ConfigurationError(f"Filter patterns must be strings, got {pattern!r}")

    kind = classify_pattern(pattern)
    if kind is PatternKind.MATCH_ALL:
        expression = ".*"
    elif kind is PatternKind.REGEX:
        expression = pattern[1:-1]
    elif kind is PatternKind.WILDCARD:
        expression = ".*".join(re.escape(part) for part in pattern.split(WILDCARD))
    else:
        expression = re.escape(pattern)

    try:
        regex = re.compile(expression, re.DOTALL)
    except re.error as exc:
        raise ConfigurationError(f"Invalid regular expression filter {pattern!r}: {exc}") from exc

    return CompiledPattern(source=pattern, kind=kind, regex=regex)


def validate_patterns(patterns: Sequence[str]) -> Tuple[str, ...]:
    """Check that ``patterns`` is a list of strings and freeze it"""
    if isinstance(patterns, (str, bytes)) or not isinstance(patterns, (list, tuple)):
        raise ConfigurationError(
            f"Filter patterns must be a list of strings, got {type(patterns).__name__}"
        )
    for pattern in patterns:
        if not isinstance(pattern, str):
            raise ConfigurationError(f"Filter patterns must be strings, got {pattern!r}")
    return tuple(patterns)


class PatternSet:
    """An ordered set of compiled patterns evaluated as one disjunction"""

    def __init__(self, patterns: Sequence[str]):
        self.patterns = validate_patterns(patterns)
        self.match_all = any(p in MATCH_ALL_PATTERNS for p in self.patterns)
        self._compiled: Tuple[CompiledPattern, ...] = tuple(
            compile_pattern(p) for p in self.patterns
        )

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __repr__(self) -> str:
        return f"PatternSet({list(self.patterns)!r})"

    def matches(self, components: Iterable[str]) -> bool:
        if not self._compiled:
            return False
        if self.match_all:
            return True

        components = tuple(components)
        for compiled in self._compiled:
            for component in components:
                if compiled.matches(component):
                    return True
        return False

    def first_match(self, components: Iterable[str]):
        """Return the source of the first pattern that matches, if any"""
        components = tuple(components)
        for compiled in self._compiled:
            if compiled.kind is PatternKind.MATCH_ALL:
                return compiled.source
            for component in components:
                if compiled.matches(component):
                    return compiled.source
        return None


@lru_cache(maxsize=256)
def _cached_pattern_set(patterns: Tuple[str, ...]) -> PatternSet:
    return PatternSet(patterns)


def compile_patterns(patterns: Sequence[str]) -> PatternSet:
    """Return a compiled ``PatternSet``, reusing one built for the same patterns"""
    return _cached_pattern_set(validate_patterns(patterns))


def matches(components: Sequence[str], patterns: Sequence[str]) -> bool:
    """Return True when any pattern matches any component

    Empty ``patterns`` never match.
    """
    return compile_patterns(patterns).matches(components)
