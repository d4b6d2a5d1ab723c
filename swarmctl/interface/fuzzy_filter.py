"""Subsequence fuzzy matching for interactive list filtering.

Scoring:
- +10 for each matched character
- +15 for each pair of matched characters that are adjacent in the label
- minus the position of the first match (earlier matches rank higher)

Matching is case-insensitive and greedy left to right. Positions are
character indices into the label and drive match highlighting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

MATCH_SCORE = 10
ADJACENT_BONUS = 15
_REPLACEMENT_CHAR = "�"


@dataclass(frozen=True)
class FilterMatch:
    """Score and matched character positions for one label."""

    score: int
    positions: tuple[int, ...] = ()


@dataclass(frozen=True)
class RankedItem:
    """A label that survived filtering, with its original index."""

    index: int
    label: str
    score: int
    positions: tuple[int, ...] = field(default=())


def match(label: str, query: str) -> FilterMatch | None:
    """Match ``query`` as a subsequence of ``label``.

    Returns:
        The match, or ``None`` if some query character cannot be matched
        before the label is exhausted. An empty query matches with score 0
        and no positions.

    """
    if not query:
        return FilterMatch(0, ())

    positions: list[int] = []
    li = 0
    n = len(label)
    for ch in query:
        qc = ch.lower()
        while li < n and label[li].lower() != qc:
            li += 1
        if li >= n:
            return None
        positions.append(li)
        li += 1

    adjacent = sum(1 for a, b in zip(positions, positions[1:]) if b == a + 1)
    score = MATCH_SCORE * len(positions) + ADJACENT_BONUS * adjacent - positions[0]
    return FilterMatch(score, tuple(positions))


def rank(labels: Sequence[str], query: str) -> list[RankedItem]:
    """Filter and order labels by match quality.

    Ordered by descending score, ties broken by ascending label
    (case-insensitive).
    """
    ranked: list[RankedItem] = []
    for index, label in enumerate(labels):
        m = match(label, query)
        if m is not None:
            ranked.append(RankedItem(index, label, m.score, m.positions))
    ranked.sort(key=lambda item: (-item.score, item.label.lower()))
    return ranked


def sanitize_label(text: str) -> str:
    """Replace control characters so a label cannot break terminal output."""
    return "".join(
        _REPLACEMENT_CHAR if (ord(ch) < 0x20 or 0x7F <= ord(ch) < 0xA0) else ch
        for ch in text
    )


class FuzzyFilter:
    """Incrementally narrowed view over a list of labels."""

    def __init__(self, labels: Sequence[str] | None = None, query: str = ""):
        """Initialize the filter with optional labels and query."""
        self._labels: list[str] = list(labels or [])
        self._query = query
        self._visible: list[RankedItem] = []
        self._recompute()

    @property
    def query(self) -> str:
        """The raw query as typed."""
        return self._query

    @property
    def labels(self) -> list[str]:
        """All labels, unfiltered."""
        return list(self._labels)

    @property
    def visible(self) -> list[RankedItem]:
        """Labels matching the current query, best first."""
        return list(self._visible)

    def __len__(self) -> int:
        """Number of visible labels."""
        return len(self._visible)

    def set_items(self, labels: Sequence[str]) -> None:
        """Replace the label list and re-apply the current query."""
        self._labels = list(labels)
        self._recompute()

    def set_query(self, query: str) -> None:
        """Replace the query."""
        self._query = query
        self._recompute()

    def push_char(self, ch: str) -> None:
        """Append typed characters to the query."""
        self.set_query(self._query + ch)

    def pop_char(self) -> None:
        """Remove the last query character."""
        if self._query:
            self.set_query(self._query[:-1])

    def clear_query(self) -> None:
        """Show every label again."""
        self.set_query("")

    def index_at(self, row: int) -> int | None:
        """Original label index behind a visible row."""
        if 0 <= row < len(self._visible):
            return self._visible[row].index
        return None

    def _recompute(self) -> None:
        # surrounding whitespace is never part of the match
        self._visible = rank(self._labels, self._query.strip())
