"""Region locator: maps raw Ruby source lines to test definition sites.

Detection is deliberately line-local and heuristic: each physical line is
offered to a ``LineMatcher`` and every line that matches becomes a
single-line ``TestRegion``.  Block nesting and end lines are never tracked;
callers anchor the frameworks' own run-test-at-line selection on the
region's start line.

Two matching strategies are provided:

* ``SpecBlockMatcher``: spec-style blocks (``it "does x" do``,
  ``should 'work' {``), as used by RSpec and ``minitest/spec``.
* ``TestMethodMatcher``: classic Minitest/Test::Unit methods
  (``def test_something``).

Titles that span several lines, heredocs and interpolated titles are not
supported.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

# ── Patterns ─────────────────────────────────────────────────────

# ``it``/``should``, optional (parenthesised) title quoted with ' or ",
# then ``do`` or ``{`` and an optional trailing comment.
_SPEC_BLOCK_RE = re.compile(
    r"""^\s*(?:it|should)\b\s*
        (?:\(?\s*(?P<title>(?P<quote>['"]).*(?<!\\)(?P=quote))\s*\)?)?
        \s*(?:do\b|\{)
        \s*(?:\#.*)?$""",
    re.VERBOSE,
)

_TEST_METHOD_RE = re.compile(r"^\s*def\s+(?P<name>test_\w+)(?:\(\))?\s*(?:#.*)?$")

_QUOTED_MIN_LENGTH = 2


# ── Data model ───────────────────────────────────────────────────


@dataclass(frozen=True)
class TestRegion:
    """A source line identified as defining or opening a single test case."""

    __test__ = False

    start_line: int
    """Zero-based line number of the matched line."""

    end_line: int
    """Zero-based end line; always equal to ``start_line``."""

    display_name: str | None = None
    """Quoted title or ``test_`` method name, ``None`` for anonymous blocks."""

    @property
    def line_range(self) -> tuple[int, int]:
        """``(start_line, end_line)`` pair."""
        return (self.start_line, self.end_line)


@dataclass(frozen=True)
class LineMatch:
    """Result of a successful single-line match."""

    display_name: str | None


# ── Matchers ─────────────────────────────────────────────────────


class LineMatcher(ABC):
    """Capability of recognising a test definition on one physical line."""

    @abstractmethod
    def match(self, line: str) -> LineMatch | None:
        """Return a ``LineMatch`` when *line* opens a test, else ``None``."""


class SpecBlockMatcher(LineMatcher):
    """Matches ``it``/``should`` blocks; the title keeps its quote characters."""

    def match(self, line: str) -> LineMatch | None:
        found = _SPEC_BLOCK_RE.match(line)
        if found is None:
            return None
        return LineMatch(display_name=found.group("title"))


class TestMethodMatcher(LineMatcher):
    """Matches ``def test_*`` methods; the name is the bare identifier."""

    def match(self, line: str) -> LineMatch | None:
        found = _TEST_METHOD_RE.match(line)
        if found is None:
            return None
        return LineMatch(display_name=found.group("name"))


class CompositeLineMatcher(LineMatcher):
    """Tries each strategy in order and returns the first match."""

    def __init__(self, matchers: Sequence[LineMatcher]) -> None:
        self._matchers = tuple(matchers)

    def match(self, line: str) -> LineMatch | None:
        for matcher in self._matchers:
            result = matcher.match(line)
            if result is not None:
                return result
        return None


DEFAULT_MATCHER: LineMatcher = CompositeLineMatcher([SpecBlockMatcher(), TestMethodMatcher()])


# ── Public API ───────────────────────────────────────────────────


def iter_test_regions(text: str, matcher: LineMatcher = DEFAULT_MATCHER) -> Iterator[TestRegion]:
    """Lazily yield one ``TestRegion`` per matching line of *text*.

    Regions come out in document order.  Re-invoking with the same text
    yields an identical sequence.

    Args:
        text: Full document text.
        matcher: Line matching strategy (defaults to spec blocks and test methods).

    Yields:
        Single-line regions with zero-based line numbers.
    """
    for line_no, raw_line in enumerate(text.split("\n")):
        line = raw_line.removesuffix("\r")
        result = matcher.match(line)
        if result is not None:
            yield TestRegion(
                start_line=line_no,
                end_line=line_no,
                display_name=result.display_name,
            )


def get_test_regions(text: str, matcher: LineMatcher = DEFAULT_MATCHER) -> list[TestRegion]:
    """Return every test region of *text* as a list."""
    return list(iter_test_regions(text, matcher))


def strip_title_quotes(title: str) -> str:
    """Remove one pair of matching surrounding quotes from *title*.

    ``'"adds numbers"'`` becomes ``'adds numbers'``; unquoted names are
    returned unchanged.
    """
    if len(title) >= _QUOTED_MIN_LENGTH and title[0] == title[-1] and title[0] in "'\"":
        return title[1:-1]
    return title
