"""
One interactive preview: the active variant, its history and every
controller operation.

Controller operations never raise. Store failures become status messages
and leave the preview exactly as it was; impossible requests (no card, no
link, buffer edge) are silent no-ops.
"""

import logging
import shlex
import subprocess
import webbrowser
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Sequence

from ..core.model import LineOp, LineTarget, Note, NoteId, PickOptions, PickResult, SearchOptions
from ..core.ports import LineRenderer, NoteStore, StoreError
from ..core.syntax import is_date_token, is_tag_token, is_todo, normalize_tag
from . import navigation
from .links import extract_links, link_at, next_link_index, prev_link_index, wiki_target
from .resolver import date_op, done_op, resolve_path, resolve_target, tag_op
from .state import (
    CARD_LIST,
    COMPOSE,
    DATE_PREVIEW,
    DEFAULT_HISTORY_LIMIT,
    PICK_RESULTS,
    NavEntry,
    PickQuery,
    PreviewDisplayState,
    PreviewLink,
    SharedNavHistory,
)
from .variants import PreviewContexts, PreviewVariant

logger = logging.getLogger(__name__)

DATE_NOTES_LIMIT = 100


@dataclass(frozen=True)
class HistoryItem:
    index: int
    title: str
    variant_key: str
    current: bool


class PreviewSession:
    def __init__(
        self,
        store: NoteStore,
        renderer: LineRenderer,
        width: int = 80,
        height: int = 0,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        display: PreviewDisplayState | None = None,
        editor: str = "vi",
        opener: Callable[[str], Any] | None = None,
        runner: Callable[[list[str]], int] | None = None,
    ):
        self.store = store
        self.renderer = renderer
        self.width = width
        self.height = height
        self.history = SharedNavHistory(limit=history_limit)
        self.contexts = PreviewContexts(self.history, display)
        self.editor = editor
        self.opener = opener or webbrowser.open
        self.runner = runner or _run
        self.status: list[str] = []
        self.search_query = ""

    @property
    def active(self) -> PreviewVariant:
        return self.contexts.active

    def _fail(self, action: str, err: Exception) -> None:
        message = f"{action} failed: {err}"
        self.status.append(message)
        logger.warning(message)

    # --- rendering ---

    def render(self) -> None:
        variant = self.active
        variant.apply_layout(variant.build(self.renderer, self.width))
        nav = variant.nav
        nav.links = extract_links(nav.lines)
        nav.rendered_link = nav.highlighted_link
        nav.highlighted_link = None
        navigation.ensure_cursor_visible(variant, self.height)

    # --- showing content ---

    def show_card_list(self, title: str, cards: Sequence[Note]) -> None:
        cl = self.contexts.card_list
        cl.cards = list(cards)
        cl.title = title
        cl.temporarily_moved = set()
        cl.mark_changed()
        self.contexts.active_key = CARD_LIST
        self.render()

    def show_pick_results(
        self, title: str, results: Sequence[PickResult], query: PickQuery | None = None
    ) -> None:
        pr = self.contexts.pick_results
        pr.results = list(results)
        pr.query = query
        pr.title = title
        pr.mark_changed()
        self.contexts.active_key = PICK_RESULTS
        self.render()

    def search(self, query: str, title: str | None = None) -> bool:
        try:
            notes = self.store.search(query, SearchOptions(sort="created:desc"))
        except StoreError as e:
            self._fail("Search", e)
            return False
        self.push_history()
        self.search_query = query
        self.show_card_list(title or query, notes)
        return True

    def pick(self, tags: Sequence[str], options: PickOptions | None = None) -> bool:
        query = PickQuery(tags=tuple(tags), options=options or PickOptions())
        try:
            results = self.store.pick(query.tags, query.options)
        except StoreError as e:
            self._fail("Pick", e)
            return False
        self.push_history()
        self.show_pick_results(" ".join(query.tags), results, query)
        return True

    def show_compose(self, parent_id: NoteId, parent_title: str = "") -> bool:
        try:
            composed = self.store.compose(parent_id)
        except StoreError as e:
            self._fail("Compose", e)
            return False
        self.push_history()
        comp = self.contexts.compose
        comp.note = composed.note
        comp.source_map = list(composed.source_map)
        comp.parent_id = parent_id
        comp.parent_title = parent_title or composed.note.title
        comp.title = comp.parent_title
        comp.mark_changed()
        self.contexts.active_key = COMPOSE
        self.render()
        return True

    def load_date_preview(self, date: str) -> bool:
        try:
            day = datetime.strptime(date, "%Y-%m-%d")
        except ValueError:
            self.status.append(f"Invalid date: {date}")
            return False
        try:
            tag_picks, todo_picks, notes = self._fetch_day(date)
        except StoreError as e:
            self._fail("Date preview", e)
            return False
        self.push_history()
        dp = self.contexts.date_preview
        dp.target_date = date
        dp.tag_picks, dp.todo_picks, dp.notes = tag_picks, todo_picks, notes
        dp.title = f"{day:%A, %B} {day.day} {day:%Y}"
        dp.mark_changed()
        self.contexts.active_key = DATE_PREVIEW
        self.render()
        return True

    def _fetch_day(self, date: str) -> tuple[list[PickResult], list[PickResult], list[Note]]:
        tagged = self.store.pick([], PickOptions(date="@" + date))
        tag_picks = sort_done_last(without_todo_lines(tagged))
        todo_picks = self.store.pick([], PickOptions(date="@" + date, todo=True))
        opts = SearchOptions(sort="created", limit=DATE_NOTES_LIMIT, strip_title=True)
        created = self.store.search(f"created:{date}", opts)
        updated = self.store.search(f"updated:{date}", opts)
        return tag_picks, todo_picks, dedupe_notes(created, updated)

    def open_note(self, note_id: NoteId) -> bool:
        try:
            note = self.store.get(note_id, SearchOptions())
        except StoreError as e:
            self._fail("Open", e)
            return False
        if note is None:
            return False
        self.push_history()
        self.show_card_list(note.title, [note])
        return True

    def open_pick_result(self) -> bool:
        pr = self.contexts.pick_results
        if self.contexts.active_key != PICK_RESULTS or not pr.results:
            return False
        return self._open_pick(pr.results[pr.selected_card_index])

    def _open_pick(self, result: PickResult) -> bool:
        """Open the full note behind a pick result, cursor on the matched line."""
        target = self.resolve_target()
        line_num = None
        if target is not None and target.note_id == result.id:
            line_num = target.line_num
        elif result.matches:
            line_num = result.matches[0].line
        try:
            note = self.store.get(result.id, SearchOptions())
        except StoreError as e:
            self._fail("Open", e)
            return False
        if note is None:
            return False
        self.push_history()
        self.show_card_list(note.title, [note])
        if line_num is not None:
            self._cursor_to_content_line(note.id, line_num)
        return True

    def _cursor_to_content_line(self, note_id: NoteId, line_num: int) -> None:
        variant = self.active
        for i, line in enumerate(variant.nav.lines):
            if line.note_id == note_id and line.line_num == line_num:
                variant.nav.cursor_line = i
                variant.sync_card_index_from_cursor()
                self.render()
                return

    def preview_enter(self) -> bool:
        key = self.contexts.active_key
        if key == PICK_RESULTS:
            return self.open_pick_result()
        if key == DATE_PREVIEW:
            return self._open_date_item()
        if key == COMPOSE:
            target = self.resolve_target()
            return target is not None and self.open_note(target.note_id)
        return False

    def _open_date_item(self) -> bool:
        dp = self.contexts.date_preview
        if dp.card_count == 0:
            return False
        idx = dp.selected_card_index
        section = dp.sections.section_for_card(idx)
        local = dp.sections.local_card_index(idx)
        if section == 0 and local < len(dp.tag_picks):
            return self._open_pick(dp.tag_picks[local])
        if section == 1 and local < len(dp.todo_picks):
            return self._open_pick(dp.todo_picks[local])
        if section == 2 and local < len(dp.notes):
            note = dp.notes[local]
            self.push_history()
            self.show_card_list(note.title, [note])
            return True
        return False

    # --- history ---

    def push_history(self) -> None:
        if self.history.push(self.active.capture()):
            logger.debug("history push: %d entries, index %d", len(self.history.entries), self.history.index)

    def nav_back(self) -> None:
        entry = self.history.back(self.active.capture())
        if entry is not None:
            self._restore(entry)

    def nav_forward(self) -> None:
        entry = self.history.forward(self.active.capture())
        if entry is not None:
            self._restore(entry)

    def show_history(self) -> list[HistoryItem]:
        """History, most recent first. The unrecorded live view, if any, comes first."""
        items = []
        if self.history.entries and not self.history.live_recorded:
            live = self.active
            items.append(HistoryItem(len(self.history.entries), live.title, live.key, True))
        for i, entry in self.history.most_recent_first():
            current = self.history.live_recorded and i == self.history.index
            items.append(HistoryItem(i, entry.title, entry.variant_key, current))
        return items

    def select_history(self, index: int) -> None:
        entry = self.history.select(index, self.active.capture())
        if entry is not None:
            self._restore(entry)

    def _restore(self, entry: NavEntry) -> None:
        self.contexts.active_key = entry.variant_key
        self.active.restore(entry)
        self.render()

    # --- cursor movement ---

    def _moved(self, ok: bool) -> None:
        if ok:
            self.render()

    def move_down(self) -> None:
        self._moved(navigation.move_down(self.active))

    def move_up(self) -> None:
        self._moved(navigation.move_up(self.active))

    def card_down(self) -> None:
        self._moved(navigation.card_down(self.active))

    def card_up(self) -> None:
        self._moved(navigation.card_up(self.active))

    def next_header(self) -> None:
        self._moved(navigation.next_header(self.active))

    def prev_header(self) -> None:
        self._moved(navigation.prev_header(self.active))

    def next_section(self) -> None:
        self._moved(navigation.next_section(self.active))

    def prev_section(self) -> None:
        self._moved(navigation.prev_section(self.active))

    def scroll_down(self) -> None:
        navigation.scroll_down(self.active)

    def scroll_up(self) -> None:
        navigation.scroll_up(self.active)

    def sync_card_index_from_cursor(self) -> None:
        self.active.sync_card_index_from_cursor()

    def click(self, line: int, col: int = 0) -> None:
        nav = self.active.nav
        link = link_at(extract_links(nav.lines), line, col)
        if link is not None:
            self.follow_link(link)
            return
        self._moved(navigation.place_cursor(self.active, line))

    # --- links ---

    def highlight_next_link(self) -> None:
        self._highlight(next_link_index)

    def highlight_prev_link(self) -> None:
        self._highlight(prev_link_index)

    def _highlight(self, step: Callable[[int, int | None], int | None]) -> None:
        variant = self.active
        nav = variant.nav
        nav.links = extract_links(nav.lines)
        idx = step(len(nav.links), nav.rendered_link)
        if idx is None:
            return
        nav.highlighted_link = idx
        nav.cursor_line = nav.links[idx].line
        variant.sync_card_index_from_cursor()
        self.render()

    def open_link(self) -> None:
        nav = self.active.nav
        idx = nav.rendered_link
        if idx is None or not 0 <= idx < len(nav.links):
            return
        self.follow_link(nav.links[idx])

    def follow_link(self, link: PreviewLink) -> None:
        target = wiki_target(link.text)
        if target is not None:
            try:
                note = self.store.get_by_title(target, SearchOptions())
            except StoreError as e:
                logger.debug("Link target %r not resolved: %s", target, e)
                return
            if note is None:
                return
            self.push_history()
            self.show_card_list(note.title, [note])
        elif link.is_url:
            self.opener(link.text)

    # --- line operations ---

    def resolve_target(self) -> LineTarget | None:
        return resolve_target(self.active.nav)

    def toggle_todo(self) -> bool:
        return self._line_op(lambda raw: LineOp("toggle_todo"))

    def append_done(self) -> bool:
        return self._line_op(done_op)

    def toggle_inline_tag(self, tag: str) -> bool:
        if not tag.strip().lstrip("#"):
            return False
        if not is_tag_token(normalize_tag(tag)):
            self.status.append(f"Invalid tag: {tag}")
            return False
        return self._line_op(lambda raw: tag_op(raw, tag))

    def toggle_inline_date(self, date: str) -> bool:
        if not date.strip().lstrip("@"):
            return False
        if not is_date_token("@" + date.strip().lstrip("@")):
            self.status.append(f"Invalid date: {date}")
            return False
        return self._line_op(lambda raw: date_op(raw, date))

    def _line_op(self, plan: Callable[[str], LineOp]) -> bool:
        target = self.resolve_target()
        if target is None:
            return False
        try:
            raw = self.store.read_line(target.note_id, target.line_num)
            if raw is None:
                return False
            op = plan(raw)
            self.store.mutate_line(target.note_id, target.line_num, op)
        except StoreError as e:
            self._fail("Line edit", e)
            return False
        logger.info("%s on %s:%d", op.kind, target.note_id, target.line_num)
        self._invalidate(target.note_id)
        self.reload_content()
        return True

    def _invalidate(self, note_id: NoteId) -> None:
        cl = self.contexts.card_list
        cl.cards = [replace(c, content=None) if c.id == note_id else c for c in cl.cards]
        comp = self.contexts.compose
        if comp.note is not None and any(e.id == note_id for e in comp.source_map):
            comp.note = replace(comp.note, content=None)

    # --- reload ---

    def reload_content(self) -> None:
        """Re-fetch the active view's content, keeping cursor, scroll and selection."""
        variant = self.active
        selected = variant.selected_card_index
        try:
            self._refetch(variant)
        except StoreError as e:
            self._fail("Reload", e)
            return
        variant.remember_selection(selected)
        self.render()

    def _refetch(self, variant: PreviewVariant) -> None:
        key = variant.key
        if key == CARD_LIST:
            cl = self.contexts.card_list
            fresh = []
            for card in cl.cards:
                note = self.store.get(card.id, SearchOptions())
                fresh.append(note if note is not None else replace(card, content=""))
            cl.cards = fresh
            cl.temporarily_moved = set()
        elif key == PICK_RESULTS:
            pr = self.contexts.pick_results
            if pr.query is not None:
                pr.results = self.store.pick(pr.query.tags, pr.query.options)
        elif key == COMPOSE:
            comp = self.contexts.compose
            if comp.parent_id is not None:
                composed = self.store.compose(comp.parent_id)
                comp.note = composed.note
                comp.source_map = list(composed.source_map)
        elif key == DATE_PREVIEW:
            dp = self.contexts.date_preview
            dp.tag_picks, dp.todo_picks, dp.notes = self._fetch_day(dp.target_date)

    # --- card mutations (card list only) ---

    def _card_list(self, minimum: int = 1):
        cl = self.contexts.card_list
        if self.contexts.active_key != CARD_LIST or len(cl.cards) < minimum:
            return None
        return cl

    def _render_selecting(self, idx: int) -> None:
        self.render()
        if self.active.select_card(idx):
            self.render()

    def delete_card(self) -> bool:
        cl = self._card_list()
        if cl is None:
            return False
        idx = cl.selected_card_index
        card = cl.cards[idx]
        try:
            self.store.delete(card.id)
        except StoreError as e:
            self._fail("Delete", e)
            return False
        del cl.cards[idx]
        self.status.append(f"Deleted {card.title or card.path}")
        self._render_selecting(min(idx, max(len(cl.cards) - 1, 0)))
        return True

    def move_card(self, direction: str) -> bool:
        cl = self._card_list(minimum=2)
        if cl is None:
            return False
        idx = cl.selected_card_index
        new = idx - 1 if direction == "up" else idx + 1
        if not 0 <= new < len(cl.cards):
            return False
        cl.cards[idx], cl.cards[new] = cl.cards[new], cl.cards[idx]
        cl.temporarily_moved.add(new)
        self._render_selecting(new)
        return True

    def merge_card(self, direction: str = "down") -> bool:
        """Fold the neighbouring card into the selected one."""
        cl = self._card_list(minimum=2)
        if cl is None:
            return False
        idx = cl.selected_card_index
        source = idx + 1 if direction == "down" else idx - 1
        if not 0 <= source < len(cl.cards):
            return False
        try:
            merged = self.store.merge(cl.cards[idx].id, cl.cards[source].id)
        except StoreError as e:
            self._fail("Merge", e)
            return False
        cl.cards[idx] = merged
        del cl.cards[source]
        self._render_selecting(idx if source > idx else idx - 1)
        return True

    def order_cards(self) -> bool:
        """Persist the displayed order as each note's ``order`` field."""
        cl = self._card_list()
        if cl is None:
            return False
        try:
            for i, card in enumerate(cl.cards):
                self.store.set_order(card.id, i + 1)
        except StoreError as e:
            self._fail("Order", e)
            return False
        cl.temporarily_moved = set()
        self.reload_content()
        return True

    # --- display toggles ---

    def _toggle(self, name: str) -> None:
        display = self.active.display
        setattr(display, name, not getattr(display, name))
        self.render()

    def toggle_frontmatter(self) -> None:
        self._toggle("show_frontmatter")

    def toggle_title(self) -> None:
        self._toggle("show_title")

    def toggle_global_tags(self) -> None:
        self._toggle("show_global_tags")

    def toggle_markdown(self) -> None:
        self._toggle("render_markdown")

    # --- editor ---

    def current_path(self) -> str | None:
        variant = self.active
        idx = variant.selected_card_index
        if variant.key == CARD_LIST and self.contexts.card_list.cards:
            return self.contexts.card_list.cards[idx].path or None
        if variant.key == PICK_RESULTS and self.contexts.pick_results.results:
            return self.contexts.pick_results.results[idx].file or None
        return resolve_path(variant.nav)

    def open_in_editor(self) -> bool:
        """Block on the editor for the file under the cursor, then reload in place."""
        path = self.current_path()
        if not path:
            return False
        nav = self.active.nav
        saved_cursor, saved_scroll = nav.cursor_line, nav.scroll_offset
        command = shlex.split(self.editor) + [path]
        logger.info("Opening %s", " ".join(command))
        try:
            code = self.runner(command)
        except OSError as e:
            self._fail("Editor", e)
            return False
        if code != 0:
            self.status.append(f"Editor exited with status {code}")
        self.reload_content()
        nav = self.active.nav
        nav.cursor_line, nav.scroll_offset = saved_cursor, saved_scroll
        self.render()
        return True

    # --- snapshot for callers ---

    def describe(self) -> dict[str, Any]:
        variant = self.active
        nav = variant.nav
        return {
            "variant": variant.key,
            "title": variant.title,
            "cursor_line": nav.cursor_line,
            "scroll_offset": nav.scroll_offset,
            "selected_card_index": variant.selected_card_index,
            "card_count": variant.card_count,
            "card_line_ranges": [list(r) for r in nav.card_line_ranges],
            "header_lines": variant.header_lines(),
            "lines": [
                {"text": ln.text, "note_id": ln.note_id, "line_num": ln.line_num, "path": ln.path}
                for ln in nav.lines
            ],
            "links": [
                {"text": lk.text, "line": lk.line, "col": lk.col, "length": lk.length}
                for lk in nav.links
            ],
            "rendered_link": nav.rendered_link,
            "display": {
                "show_frontmatter": variant.display.show_frontmatter,
                "show_title": variant.display.show_title,
                "show_global_tags": variant.display.show_global_tags,
                "render_markdown": variant.display.render_markdown,
            },
            "history": {"size": len(self.history.entries), "index": self.history.index},
            "status": list(self.status),
        }


def _run(command: list[str]) -> int:
    return subprocess.run(command).returncode


def without_todo_lines(results: Sequence[PickResult]) -> list[PickResult]:
    filtered = []
    for r in results:
        matches = tuple(m for m in r.matches if not is_todo(m.content))
        if matches:
            filtered.append(replace(r, matches=matches))
    return filtered


def sort_done_last(results: Sequence[PickResult]) -> list[PickResult]:
    """Split every result into open and done matches; all done groups go last."""
    active, done = [], []
    for r in results:
        open_matches = tuple(m for m in r.matches if not m.done)
        done_matches = tuple(m for m in r.matches if m.done)
        if open_matches:
            active.append(replace(r, matches=open_matches))
        if done_matches:
            done.append(replace(r, matches=done_matches))
    return active + done


def dedupe_notes(created: Sequence[Note], updated: Sequence[Note]) -> list[Note]:
    seen = {n.id for n in created}
    return [*created, *(n for n in updated if n.id not in seen)]
