"""Tests for card layout, the line partition and cursor/card synchronization."""

import pytest

from marginalia.adapters.line_renderer import PlainLineRenderer
from marginalia.core.model import Note, PickMatch, PickResult
from marginalia.preview.layout import Layout, SectionPartition, content_width, preview_width
from marginalia.preview.state import PreviewNavState


def three_cards():
    return [
        Note(id="a", title="A", content="# Title A\ntext"),
        Note(id="b", title="B", content=""),
        Note(id="c", title="C", content="text\n## Sub\nmore"),
    ]


@pytest.fixture
def cards_session(memory_session):
    memory_session.show_card_list("three", three_cards())
    return memory_session


def assert_synced(variant):
    idx = variant.selected_card_index
    variant.sync_card_index_from_cursor()
    assert variant.selected_card_index == idx
    assert variant.nav.card_at_line(variant.nav.cursor_line) in (idx, None)


def test_card_ranges(cards_session):
    """Test that every card is framed and the ranges are ordered and disjoint."""
    nav = cards_session.active.nav
    assert nav.card_line_ranges == [(0, 4), (5, 8), (9, 14)]
    assert len(nav.lines) == 14

    previous_end = 0
    for s, e in nav.card_line_ranges:
        assert e - s >= 3
        assert s >= previous_end
        previous_end = e
    assert nav.lines[0].text.startswith("╭─ A ")
    assert nav.lines[3].text.startswith("╰")
    assert nav.lines[4].text == ""
    assert nav.lines[6].text == "  (empty)"
    assert nav.lines[4].note_id is None


def test_content_line_predicate(cards_session):
    """Test that frame lines are never content lines."""
    nav = cards_session.active.nav
    for s, e in nav.card_line_ranges:
        assert not nav.is_content_line(s)
        assert not nav.is_content_line(e - 1)
        assert all(nav.is_content_line(i) for i in range(s + 1, e - 1))
    assert not nav.is_content_line(4)
    assert not nav.is_content_line(8)


def test_header_lines(cards_session):
    """Test that ATX headers are recorded and tag lines are not."""
    assert cards_session.active.header_lines() == [1, 11]

    layout = Layout(width=40)
    body = PlainLineRenderer().render(
        Note(id="t", content="#tag only\n# Real"), 38, cards_session.active.display
    )
    layout.add_card("T", body)
    assert layout.headers == [2]


def test_empty_card_list(memory_session):
    """Test the placeholder of an empty card list."""
    memory_session.show_card_list("none", [])
    nav = memory_session.active.nav
    assert [ln.text for ln in nav.lines] == ["No matching notes."]
    assert nav.card_line_ranges == []
    assert memory_session.active.selected_card_index == 0
    assert memory_session.resolve_target() is None


def test_pick_group_layout():
    """Test that pick matches show their content line number and keep provenance."""
    layout = Layout(width=40)
    result = PickResult(
        id="n1",
        title="Note",
        file="/v/n1.md",
        matches=(PickMatch(line=7, content="- [ ] call #work"), PickMatch(line=12, content="#work later")),
    )
    layout.add_pick_group(result, 38)

    texts = [ln.text for ln in layout.lines]
    assert texts[1] == "  L07: - [ ] call #work"
    assert texts[2] == "  L12: #work later"
    assert " 2 matches " in texts[3]
    assert layout.lines[1].line_num == 7
    assert layout.lines[2].note_id == "n1"
    assert layout.lines[0].note_id is None
    assert layout.ranges == [(0, 4)]


def test_narrow_width_fallback():
    """Test that tiny widths fall back to a usable preview width."""
    assert preview_width(5) == 40
    assert preview_width(80) == 80
    assert content_width(80) == 78


def test_card_at_line_gap_belongs_to_next_card():
    """Test that separator lines between cards select the card after them."""
    nav = PreviewNavState(card_line_ranges=[(0, 4), (5, 8), (9, 14)])
    assert nav.card_at_line(4) == 1
    assert nav.card_at_line(8) == 2
    assert nav.card_at_line(13) == 2
    assert nav.card_at_line(20) is None


def test_section_partition_fallback():
    """Test that indexes past the last section range land in the last section."""
    sections = SectionPartition(card_ranges=[(0, 3), (3, 5), (5, 8)])
    assert sections.section_for_card(8) == 2
    assert sections.section_for_card(2) == 0
    assert sections.section_for_card(3) == 1
    assert sections.local_card_index(4) == 1
    assert sections.section_for_line(999) == 2


def test_move_down_skips_frames(cards_session):
    """Test that line movement only stops on content lines and does not wrap."""
    session = cards_session
    nav = session.active.nav
    seen = [nav.cursor_line]
    for _ in range(6):
        session.move_down()
        seen.append(nav.cursor_line)
        assert_synced(session.active)

    assert seen == [1, 2, 6, 10, 11, 12, 12]
    assert session.active.selected_card_index == 2

    session.move_up()
    session.move_up()
    session.move_up()
    assert nav.cursor_line == 6
    assert session.active.selected_card_index == 1


def test_card_jumps(cards_session):
    """Test card-wise movement lands on the first content line of each card."""
    session = cards_session
    nav = session.active.nav

    session.card_down()
    assert (nav.cursor_line, session.active.selected_card_index) == (6, 1)
    session.card_down()
    assert (nav.cursor_line, session.active.selected_card_index) == (10, 2)
    session.card_down()
    assert (nav.cursor_line, session.active.selected_card_index) == (10, 2)
    session.card_up()
    assert (nav.cursor_line, session.active.selected_card_index) == (6, 1)
    assert_synced(session.active)


def test_header_jumps(cards_session):
    """Test header-wise movement across cards."""
    session = cards_session
    nav = session.active.nav

    session.next_header()
    assert nav.cursor_line == 11
    assert session.active.selected_card_index == 2
    session.prev_header()
    assert nav.cursor_line == 1
    session.prev_header()
    assert nav.cursor_line == 1
    assert_synced(session.active)


def test_click_snaps_off_frame(cards_session):
    """Test clicks on frame lines and on gaps."""
    session = cards_session
    nav = session.active.nav

    session.click(9)
    assert nav.cursor_line == 10
    assert session.active.selected_card_index == 2

    session.click(4)
    assert nav.cursor_line == 4
    assert session.active.selected_card_index == 1

    session.click(12)
    assert nav.cursor_line == 12
    assert_synced(session.active)


def test_sync_from_frame_line(cards_session):
    """Test that syncing from a frame line selects that frame's card."""
    variant = cards_session.active
    variant.nav.cursor_line = 13
    variant.sync_card_index_from_cursor()
    assert variant.selected_card_index == 2


def test_scroll_is_clamped(cards_session):
    """Test scrolling stops at the top of the buffer."""
    session = cards_session
    nav = session.active.nav
    session.scroll_down()
    assert nav.scroll_offset == 3
    session.scroll_up()
    assert nav.scroll_offset == 0
    session.scroll_up()
    assert nav.scroll_offset == 0


def test_cursor_kept_visible(memory_session):
    """Test that a bounded preview scrolls with the cursor."""
    session = memory_session
    session.height = 4
    session.show_card_list("three", three_cards())
    session.card_down()
    session.card_down()
    nav = session.active.nav
    assert nav.cursor_line == 10
    assert nav.scroll_offset <= 9 <= nav.scroll_offset + 3
    assert nav.scroll_offset <= nav.cursor_line < nav.scroll_offset + 4
