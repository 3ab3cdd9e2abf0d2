"""Tests for preview session operations over a vault on disk."""

from marginalia.adapters.fs_store import FsNoteStore
from marginalia.adapters.line_renderer import PlainLineRenderer
from marginalia.core.model import Note, PickMatch, PickOptions, PickResult, SearchOptions
from marginalia.core.ports import StoreError
from marginalia.preview.session import PreviewSession, dedupe_notes, sort_done_last, without_todo_lines


def test_search_builds_card_list(session):
    """Test that a search shows one card per matching note."""
    assert session.search("#idea") is True
    variant = session.active
    assert variant.key == "card_list"
    assert variant.title == "#idea"
    assert {c.id for c in variant.cards} == {"beta", "gamma"}
    assert len(variant.nav.card_line_ranges) == 2
    assert session.search_query == "#idea"


def test_open_missing_note(session):
    """Test that opening an unknown note changes nothing."""
    assert session.open_note("missing") is False
    assert session.active.is_empty
    assert session.history.entries == []


def test_date_preview_sections(session):
    """Test the three-section layout of a day."""
    assert session.load_date_preview("2024-03-05") is True
    variant = session.active
    nav = variant.nav

    assert variant.key == "date_preview"
    assert variant.title == "Tuesday, March 5 2024"
    assert len(nav.lines) == 13
    assert variant.header_lines() == [0, 4, 10]
    assert "Inline Tags" in nav.lines[0].text
    assert nav.lines[2].text == " No tagged lines"
    assert nav.lines[7].text == "  L04: - [ ] write tests @2024-03-05"
    assert nav.lines[12].text == " No notes"
    assert nav.card_line_ranges == [(6, 9)]
    assert variant.sections.card_ranges == [(0, 0), (0, 1), (1, 1)]
    assert variant.sections.line_ranges == [(0, 4), (4, 10), (10, 13)]


def test_date_preview_section_jumps(session):
    """Test moving between day sections."""
    session.load_date_preview("2024-03-05")
    nav = session.active.nav

    session.next_section()
    assert nav.cursor_line == 7
    assert session.active.selected_card_index == 0
    session.next_section()
    assert nav.cursor_line == 10
    session.next_section()
    assert nav.cursor_line == 10
    session.prev_section()
    assert nav.cursor_line == 7
    session.prev_section()
    assert nav.cursor_line == 0


def test_date_preview_enter_opens_note(session):
    """Test that enter on a day item opens the note at the picked line."""
    session.load_date_preview("2024-03-05")
    session.next_section()
    assert session.preview_enter() is True

    assert session.active.key == "card_list"
    assert session.active.title == "Alpha"
    target = session.resolve_target()
    assert (target.note_id, target.line_num) == ("alpha", 4)
    assert len(session.history.entries) == 1

    session.nav_back()
    assert session.active.key == "date_preview"
    assert session.active.nav.cursor_line == 7


def test_invalid_date(session):
    """Test that a malformed date is reported and nothing is shown."""
    assert session.load_date_preview("2024-13-45") is False
    assert session.status == ["Invalid date: 2024-13-45"]
    assert session.active.is_empty


def test_quiet_day(session):
    """Test a day with no activity."""
    session.load_date_preview("1999-01-01")
    assert [ln.text for ln in session.active.nav.lines] == ["No activity on 1999-01-01"]


def test_pick_then_open(session):
    """Test opening the selected pick group at the line under the cursor."""
    session.pick(["idea"])
    variant = session.active
    assert variant.key == "pick_results"
    first = variant.results[0]

    target = session.resolve_target()
    assert (target.note_id, target.line_num) == (first.id, first.matches[0].line)
    assert session.preview_enter() is True

    assert session.active.title == first.title
    assert session.resolve_target() == target


def test_compose_view(session):
    """Test the compose view and opening a child from it."""
    assert session.show_compose("alpha") is True
    variant = session.active
    assert variant.key == "compose"
    assert variant.title == "Alpha"
    texts = [ln.text for ln in variant.nav.lines]
    assert "## Beta" in texts

    line = texts.index("Beta body line #idea")
    session.click(line)
    target = session.resolve_target()
    assert (target.note_id, target.line_num) == ("beta", 1)

    assert session.preview_enter() is True
    assert session.active.title == "Beta"


def test_compose_missing(session):
    """Test composing a note that does not exist."""
    assert session.show_compose("missing") is False
    assert session.status[-1].startswith("Compose failed:")


def test_delete_card(session, vault):
    """Test deleting the selected card."""
    session.show_card_list("two", [session.store.get(i, SearchOptions()) for i in ("beta", "gamma")])
    session.card_down()
    assert session.delete_card() is True

    assert not (vault / "gamma.md").exists()
    assert [c.id for c in session.active.cards] == ["beta"]
    assert session.active.selected_card_index == 0
    assert session.status == ["Deleted Gamma"]


def test_move_and_order_cards(session, store):
    """Test reordering cards and persisting the order."""
    session.show_card_list("two", [store.get(i, SearchOptions()) for i in ("beta", "gamma")])
    assert session.move_card("down") is True

    variant = session.active
    assert [c.id for c in variant.cards] == ["gamma", "beta"]
    assert variant.selected_card_index == 1
    assert variant.temporarily_moved == {1}
    start = variant.nav.card_line_ranges[1][0]
    assert "Temporarily Moved" in variant.nav.lines[start].text
    assert session.move_card("down") is False

    assert session.order_cards() is True
    assert store.get("gamma", SearchOptions()).order == 1
    assert store.get("beta", SearchOptions()).order == 2
    assert variant.temporarily_moved == set()
    assert variant.selected_card_index == 1


def test_merge_card(session, vault):
    """Test merging the next card into the selected one."""
    session.show_card_list("two", [session.store.get(i, SearchOptions()) for i in ("beta", "gamma")])
    assert session.merge_card("down") is True

    variant = session.active
    assert [c.id for c in variant.cards] == ["beta"]
    assert any(ln.text == "Gamma mentions #idea here" for ln in variant.nav.lines)
    assert not (vault / "gamma.md").exists()


def test_card_mutations_need_a_card_list(session):
    """Test that card mutations are no-ops outside a card list."""
    session.pick(["idea"])
    assert session.delete_card() is False
    assert session.move_card("down") is False
    assert session.order_cards() is False


def test_display_toggles(session):
    """Test the per-variant display toggles."""
    session.open_note("alpha")

    def texts():
        return [ln.text for ln in session.active.nav.lines]

    session.toggle_title()
    assert "# Alpha" not in texts()
    session.toggle_title()
    assert "# Alpha" in texts()

    session.toggle_frontmatter()
    assert "title: Alpha" in texts()
    session.toggle_frontmatter()

    session.toggle_markdown()
    assert "- [ ] write tests @2024-03-05" in texts()

    assert session.contexts.pick_results.display.render_markdown is True


def test_reload_keeps_cursor(session, vault):
    """Test that reloading after an outside edit keeps the cursor line."""
    session.open_note("alpha")
    session.click(5)
    path = vault / "alpha.md"
    path.write_text(path.read_text().replace("Second paragraph", "Second edited paragraph"))

    session.reload_content()

    nav = session.active.nav
    assert nav.cursor_line == 5
    assert nav.lines[5].text.startswith("Second edited paragraph")


def test_open_in_editor(session, runner):
    """Test that the editor runs on the selected note and the view reloads."""
    session.open_note("alpha")
    session.click(4)

    assert session.open_in_editor() is True

    assert len(runner.calls) == 1
    command = runner.calls[0]
    assert command[:2] == ["myedit", "--wait"]
    assert command[2].endswith("alpha.md")
    assert session.active.nav.cursor_line == 4


def test_editor_failure_is_reported(store):
    """Test that a missing editor binary becomes a status message."""
    def broken(command):
        raise FileNotFoundError(command[0])

    session = PreviewSession(store, PlainLineRenderer(), runner=broken, editor="no-such-editor")
    session.open_note("alpha")
    assert session.open_in_editor() is False
    assert session.status[-1].startswith("Editor failed:")


class BrokenSearch(FsNoteStore):
    def search(self, query, options):
        raise StoreError("index unavailable")


def test_failed_search_keeps_view(vault):
    """Test that a failing store leaves the current preview in place."""
    session = PreviewSession(BrokenSearch(vault), PlainLineRenderer())
    session.open_note("alpha")

    assert session.search("anything") is False

    assert session.active.title == "Alpha"
    assert session.history.entries == []
    assert session.status == ["Search failed: index unavailable"]


def test_describe(session):
    """Test the JSON snapshot of the preview."""
    session.open_note("alpha")
    data = session.describe()

    assert data["variant"] == "card_list"
    assert data["cursor_line"] == 1
    assert data["card_line_ranges"] == [[0, 7]]
    assert data["header_lines"] == [1]
    assert data["lines"][4]["line_num"] == 4
    assert [lk["text"] for lk in data["links"]] == ["[[Beta]]", "https://example.com/page"]


def test_day_helpers():
    """Test the grouping helpers of the date preview."""
    result = PickResult(
        id="n",
        matches=(
            PickMatch(line=1, content="- [ ] todo"),
            PickMatch(line=2, content="tagged", done=True),
            PickMatch(line=3, content="open"),
        ),
    )
    filtered = without_todo_lines([result])
    assert [m.line for m in filtered[0].matches] == [2, 3]

    ordered = sort_done_last(filtered + [PickResult(id="m", matches=(PickMatch(line=9, content="x"),))])
    assert [(r.id, [m.line for m in r.matches]) for r in ordered] == [("n", [3]), ("m", [9]), ("n", [2])]

    notes = dedupe_notes([Note(id="a")], [Note(id="a"), Note(id="b")])
    assert [n.id for n in notes] == ["a", "b"]


def test_pick_options_todo_only(session):
    """Test a todo-only pick view."""
    session.pick([], PickOptions(todo=True))
    results = session.active.results
    assert [(r.id, [m.line for m in r.matches]) for r in results if r.id == "alpha"] == [("alpha", [4])]
