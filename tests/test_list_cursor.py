"""Tests for the clamped list cursor and the notes side panel."""

from marginalia.cli import NotesPanel
from marginalia.core.list_cursor import ListCursor


def test_move_is_clamped():
    """Test that moves stop at both ends."""
    items = ["a", "b", "c"]
    cursor = ListCursor(items)

    cursor.move(-1)
    assert cursor.selected == 0
    cursor.move(5)
    assert cursor.selected == 2
    cursor.move(-1)
    assert cursor.selected == 1


def test_clamp_after_shrink():
    """Test re-clamping after the collection shrinks."""
    items = ["a", "b", "c"]
    cursor = ListCursor(items)
    cursor.move(2)
    del items[1:]
    cursor.clamp()
    assert cursor.selected == 0

    items.clear()
    cursor.clamp()
    assert cursor.selected == 0


def test_notes_panel_previews_selection(session):
    """Test that moving through the panel previews the selected note."""
    panel = NotesPanel(session)
    panel.load("#idea")
    assert len(panel.notes) == 2
    assert panel.lines()[0].startswith(">")

    panel.move(1)
    selected = panel.notes[panel.cursor.selected]
    assert panel.cursor.selected == 1
    assert session.active.title == selected.title
    assert session.active.card_count == 1

    panel.move(1)
    assert panel.cursor.selected == 1
