"""Multi-selection state for keyed item lists.

Keys are kept in insertion order without duplicates. The anchor is the last
explicit focus point and serves as one end of a range selection.
"""

from __future__ import annotations

from typing import Generic, Hashable, Iterable, Iterator, Sequence, TypeVar

K = TypeVar("K", bound=Hashable)


class SelectionEngine(Generic[K]):
    """Ordered, de-duplicated set of selected keys plus an anchor index."""

    def __init__(self) -> None:
        """Initialize an empty selection with no anchor."""
        # dict preserves insertion order; values unused
        self._selected: dict[K, None] = {}
        self._anchor: int | None = None

    def __len__(self) -> int:
        """Number of selected keys."""
        return len(self._selected)

    def __contains__(self, key: object) -> bool:
        """Whether ``key`` is selected."""
        return key in self._selected

    def __iter__(self) -> Iterator[K]:
        """Iterate selected keys in insertion order."""
        return iter(self._selected)

    @property
    def anchor(self) -> int | None:
        """Index used as one endpoint of range selection."""
        return self._anchor

    def selected(self) -> list[K]:
        """Selected keys in insertion order."""
        return list(self._selected)

    def is_selected(self, key: K) -> bool:
        """Whether ``key`` is selected."""
        return key in self._selected

    def set_anchor(self, index: int | None) -> None:
        """Set (or clear with ``None``) the range anchor."""
        self._anchor = index

    def toggle(self, key: K, index: int) -> None:
        """Flip ``key``'s membership and move the anchor to ``index``."""
        if key in self._selected:
            del self._selected[key]
        else:
            self._selected[key] = None
        self._anchor = index

    def range_select(self, ordered_keys: Sequence[K], target_index: int) -> None:
        """Add every key between the anchor and ``target_index`` inclusive.

        Without an anchor only the target is selected and becomes the anchor.
        The existing selection is extended, never replaced.
        """
        if not ordered_keys:
            return
        last = len(ordered_keys) - 1
        target = min(max(target_index, 0), last)

        if self._anchor is None:
            self._selected.setdefault(ordered_keys[target], None)
            self._anchor = target
            return

        anchor = min(max(self._anchor, 0), last)
        lo, hi = min(anchor, target), max(anchor, target)
        for key in ordered_keys[lo : hi + 1]:
            self._selected.setdefault(key, None)

    def select_all(self, ordered_keys: Iterable[K]) -> None:
        """Select every key of the list."""
        for key in ordered_keys:
            self._selected.setdefault(key, None)

    def invert(self, ordered_keys: Sequence[K]) -> None:
        """Replace the selection with its complement against ``ordered_keys``.

        ``ordered_keys`` must be the full list, not a filtered view of it.
        """
        current = self._selected
        self._selected = {key: None for key in ordered_keys if key not in current}

    def clear(self) -> None:
        """Deselect everything. The anchor is a focus point and is kept."""
        self._selected.clear()

    def retain_existing(self, valid_keys: Iterable[K]) -> None:
        """Drop selected keys missing from a refreshed list.

        The anchor is cleared when the refreshed list is empty.
        """
        valid = set(valid_keys)
        self._selected = {key: None for key in self._selected if key in valid}
        if not valid:
            self._anchor = None
