"""View state for a keyed, filterable, multi-selectable item list."""

from __future__ import annotations

from typing import Callable, Generic, Hashable, Sequence, TypeVar

from swarmctl.interface.fuzzy_filter import FuzzyFilter, RankedItem, sanitize_label
from swarmctl.interface.selection import SelectionEngine

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


class ListView(Generic[T, K]):
    """Items plus focus, selection and fuzzy filter.

    Focus rows index the visible (filtered) list. Range selection runs over
    the visible keys while select-all and invert run over the full list.
    Selected keys survive filtering and are intersected with the key set on
    every refresh.
    """

    def __init__(
        self,
        key_fn: Callable[[T], K],
        label_fn: Callable[[T], str] | None = None,
    ):
        """Initialize an empty view.

        Args:
            key_fn: Returns the stable identity of an item
            label_fn: Returns the text matched by the filter (defaults to str(key))

        """
        self._key_fn = key_fn
        self._label_fn = label_fn or (lambda item: str(key_fn(item)))
        self._items: list[T] = []
        self._keys: list[K] = []
        self.filter = FuzzyFilter()
        self.selection: SelectionEngine[K] = SelectionEngine()
        self._focus: int | None = None

    @property
    def items(self) -> list[T]:
        """All items, unfiltered."""
        return list(self._items)

    @property
    def keys(self) -> list[K]:
        """Keys of all items, in list order."""
        return list(self._keys)

    @property
    def focus(self) -> int | None:
        """Focused visible row."""
        return self._focus

    @property
    def visible(self) -> list[RankedItem]:
        """Filter results for the current query."""
        return self.filter.visible

    def visible_items(self) -> list[T]:
        """Items matching the current query, best first."""
        return [self._items[r.index] for r in self.filter.visible]

    def visible_keys(self) -> list[K]:
        """Keys of the visible items, in display order."""
        return [self._keys[r.index] for r in self.filter.visible]

    @property
    def focused_item(self) -> T | None:
        """The item under the focus row."""
        if self._focus is None:
            return None
        index = self.filter.index_at(self._focus)
        return None if index is None else self._items[index]

    @property
    def focused_key(self) -> K | None:
        """Key of the focused item."""
        item = self.focused_item
        return None if item is None else self._key_fn(item)

    def set_items(self, items: Sequence[T]) -> None:
        """Replace the list after a refresh."""
        self._items = list(items)
        self._keys = [self._key_fn(item) for item in self._items]
        self.filter.set_items([sanitize_label(self._label_fn(item)) for item in self._items])
        self.selection.retain_existing(self._keys)
        self._clamp_focus()

    def set_query(self, query: str) -> None:
        """Narrow the visible list."""
        self.filter.set_query(query)
        self._clamp_focus()

    def set_focus(self, row: int | None) -> None:
        """Focus a visible row; the row also becomes the range anchor.

        Clearing focus keeps the anchor while something is still selected,
        so a later range extends the existing selection.
        """
        if row is None or not self.filter.visible:
            self._focus = None
            if len(self.selection) == 0 or not self._items:
                self.selection.set_anchor(None)
            return
        self._focus = min(max(row, 0), len(self.filter.visible) - 1)
        self.selection.set_anchor(self._focus)

    def move_focus(self, delta: int) -> None:
        """Move focus up or down by ``delta`` rows."""
        if not self.filter.visible:
            self.set_focus(None)
            return
        current = self._focus if self._focus is not None else 0
        self.set_focus(current + delta)

    def toggle_focused(self) -> None:
        """Toggle selection of the focused item."""
        key = self.focused_key
        if key is None or self._focus is None:
            return
        self.selection.toggle(key, self._focus)

    def range_to(self, row: int) -> None:
        """Select from the anchor to ``row`` over the visible list."""
        keys = self.visible_keys()
        if not keys:
            return
        self.selection.range_select(keys, row)
        self._focus = min(max(row, 0), len(keys) - 1)

    def select_all(self) -> None:
        """Select every item, including ones hidden by the filter."""
        self.selection.select_all(self._keys)

    def invert(self) -> None:
        """Invert the selection against the full list."""
        self.selection.invert(self._keys)

    def clear_selection(self) -> None:
        """Deselect everything."""
        self.selection.clear()

    def targets(self) -> list[K]:
        """Keys an action should apply to.

        Selected keys in list order, or the focused key when nothing is
        selected.
        """
        if len(self.selection):
            return [key for key in self._keys if key in self.selection]
        key = self.focused_key
        return [] if key is None else [key]

    def _clamp_focus(self) -> None:
        count = len(self.filter.visible)
        if count == 0:
            self._focus = None
            if not self._items:
                self.selection.set_anchor(None)
        elif self._focus is None:
            self._focus = 0
        elif self._focus >= count:
            self._focus = count - 1
