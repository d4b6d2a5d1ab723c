"""Tests for the multi-selection engine."""

from __future__ import annotations

from swarmctl.interface.selection import SelectionEngine

KEYS = ["a", "b", "c", "d", "e"]


class TestToggle:
    """Toggling single keys."""

    def test_toggle_adds_then_removes(self):
        """Test that toggling twice restores the selection."""
        sel: SelectionEngine[str] = SelectionEngine()

        sel.toggle("b", 1)
        assert sel.selected() == ["b"]
        assert sel.anchor == 1

        sel.toggle("b", 1)
        assert sel.selected() == []
        assert sel.anchor == 1

    def test_insertion_order_without_duplicates(self):
        """Test that keys keep the order they were selected in."""
        sel: SelectionEngine[str] = SelectionEngine()
        for index, key in [(3, "d"), (0, "a"), (2, "c")]:
            sel.toggle(key, index)

        assert sel.selected() == ["d", "a", "c"]
        assert len(sel) == 3
        assert "a" in sel
        assert sel.is_selected("c")
        assert not sel.is_selected("b")


class TestRangeSelect:
    """Anchor-based range selection."""

    def test_range_from_anchor(self):
        """Test adding the inclusive range between anchor and target."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.toggle("b", 1)

        sel.range_select(KEYS, 3)

        assert set(sel.selected()) == {"b", "c", "d"}
        assert sel.anchor == 1

    def test_range_backwards(self):
        """Test a target before the anchor."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.set_anchor(4)

        sel.range_select(KEYS, 2)

        assert set(sel.selected()) == {"c", "d", "e"}

    def test_range_extends_existing_selection(self):
        """Test that keys outside the range stay selected."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.toggle("a", 0)
        sel.set_anchor(3)

        sel.range_select(KEYS, 4)

        assert set(sel.selected()) == {"a", "d", "e"}

    def test_range_without_anchor_selects_target(self):
        """Test that with no anchor only the target is selected."""
        sel: SelectionEngine[str] = SelectionEngine()

        sel.range_select(KEYS, 2)

        assert sel.selected() == ["c"]
        assert sel.anchor == 2

    def test_range_clamps_indices(self):
        """Test that out-of-range indices are clamped to the list."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.set_anchor(10)

        sel.range_select(KEYS, -3)

        assert set(sel.selected()) == set(KEYS)

    def test_range_on_empty_list(self):
        """Test that an empty list is a no-op."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.set_anchor(1)

        sel.range_select([], 0)

        assert sel.selected() == []
        assert sel.anchor == 1


class TestBulkOperations:
    """Select all, invert, clear and refresh."""

    def test_select_all_and_invert(self):
        """Test that invert complements against the full list."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.toggle("b", 1)
        sel.toggle("d", 3)

        sel.invert(KEYS)
        assert sel.selected() == ["a", "c", "e"]

        sel.select_all(KEYS)
        assert set(sel.selected()) == set(KEYS)

        sel.invert(KEYS)
        assert sel.selected() == []

    def test_clear_keeps_anchor(self):
        """Test that clearing empties the selection only."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.toggle("c", 2)

        sel.clear()

        assert len(sel) == 0
        assert sel.anchor == 2

    def test_retain_existing(self):
        """Test that a refresh drops vanished keys and keeps the anchor."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.toggle("b", 1)
        sel.range_select(KEYS, 3)

        sel.retain_existing(["a", "c", "d"])

        assert set(sel.selected()) == {"c", "d"}
        assert sel.anchor == 1

    def test_retain_existing_empty_clears_anchor(self):
        """Test that an empty refresh clears selection and anchor."""
        sel: SelectionEngine[str] = SelectionEngine()
        sel.toggle("a", 0)

        sel.retain_existing([])

        assert sel.selected() == []
        assert sel.anchor is None
