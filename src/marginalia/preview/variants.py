"""
The four preview variants and the registry that selects the active one.

Every variant owns its navigation and display state, shares one
SharedNavHistory, and knows how to lay its cards out and how to capture
and restore itself as a NavEntry.
"""

from dataclasses import replace

from ..core.model import Note, NoteId, PickResult, SourceMapEntry
from ..core.ports import LineRenderer
from .layout import (
    SECTION_LABELS,
    SECTION_PLACEHOLDERS,
    Layout,
    SectionPartition,
    content_width,
    preview_width,
    straight_separator,
)
from .state import (
    CARD_LIST,
    COMPOSE,
    DATE_PREVIEW,
    PICK_RESULTS,
    NavEntry,
    PickQuery,
    PreviewDisplayState,
    PreviewNavState,
    SharedNavHistory,
)


def card_footer(note: Note, parent_label: str = "") -> str:
    return " · ".join(p for p in (note.short_date(), note.global_tags_string(), parent_label) if p)


class PreviewVariant:
    key = ""
    empty_message = "Nothing to show."

    def __init__(self, history: SharedNavHistory, display: PreviewDisplayState | None = None):
        self.nav = PreviewNavState()
        self.display = display or PreviewDisplayState()
        self.nav_history = history
        self.title = ""
        self._selected = 0
        self._pending = True  # content changed since the last layout

    # --- capability set shared by every variant ---

    @property
    def nav_state(self) -> PreviewNavState:
        return self.nav

    @property
    def display_state(self) -> PreviewDisplayState:
        return self.display

    @property
    def card_count(self) -> int:
        raise NotImplementedError

    @property
    def is_empty(self) -> bool:
        return self.card_count == 0

    @property
    def selected_card_index(self) -> int:
        """
        Card under the cursor according to the current partition; the stored
        selection only answers while a new layout is pending.
        """
        idx = None
        if not self._pending:
            idx = self.nav.card_at_line(self.nav.cursor_line)
        if idx is None:
            idx = self._selected
        return _clamp(idx, self.card_count)

    def select_card(self, idx: int) -> bool:
        if not 0 <= idx < self.card_count:
            return False
        self._selected = idx
        if not self._pending:
            first = self.nav.first_content_line(idx)
            if first is not None:
                self.nav.cursor_line = first
        return True

    def remember_selection(self, idx: int) -> None:
        """Stored fallback only; the cursor keeps its place."""
        self._selected = _clamp(idx, self.card_count)

    def sync_card_index_from_cursor(self) -> None:
        idx = self.nav.card_at_line(self.nav.cursor_line)
        if idx is not None:
            self._selected = idx

    def header_lines(self) -> list[int]:
        return self.nav.header_lines

    # --- layout ---

    def build(self, renderer: LineRenderer, width: int) -> Layout:
        raise NotImplementedError

    def apply_layout(self, layout: Layout) -> None:
        nav = self.nav
        nav.lines = layout.lines
        nav.card_line_ranges = layout.ranges
        nav.header_lines = layout.headers
        if nav.lines:
            nav.cursor_line = min(max(nav.cursor_line, 0), len(nav.lines) - 1)
        else:
            nav.cursor_line = 0
        nav.scroll_offset = min(max(nav.scroll_offset, 0), max(len(nav.lines) - 1, 0))
        self._pending = False
        self.sync_card_index_from_cursor()

    def mark_changed(self, cursor_line: int = 1, selected: int = 0) -> None:
        """New content: reset the view to its first card."""
        self.nav.clear_layout()
        self.nav.cursor_line = cursor_line
        self.nav.scroll_offset = 0
        self.nav.highlighted_link = None
        self._selected = selected
        self._pending = True

    # --- history ---

    def capture(self) -> NavEntry:
        return NavEntry(
            variant_key=self.key,
            title=self.title,
            selected_card_index=self.selected_card_index,
            cursor_line=self.nav.cursor_line,
            scroll_offset=self.nav.scroll_offset,
            **self._payload(),
        )

    def restore(self, entry: NavEntry) -> None:
        self.title = entry.title
        self._load_payload(entry)
        self.nav.clear_layout()
        self.nav.cursor_line = entry.cursor_line
        self.nav.scroll_offset = entry.scroll_offset
        self.nav.highlighted_link = None
        self._selected = entry.selected_card_index
        self._pending = True

    def _payload(self) -> dict:
        return {}

    def _load_payload(self, entry: NavEntry) -> None:
        pass

    def _empty(self, layout: Layout) -> Layout:
        layout.emit(self.empty_message)
        return layout


class CardListPreview(PreviewVariant):
    key = CARD_LIST
    empty_message = "No matching notes."

    def __init__(self, history: SharedNavHistory, display: PreviewDisplayState | None = None):
        super().__init__(history, display)
        self.cards: list[Note] = []
        self.temporarily_moved: set[int] = set()
        self.parent_labels: dict[NoteId, str] = {}

    @property
    def card_count(self) -> int:
        return len(self.cards)

    def build(self, renderer: LineRenderer, width: int) -> Layout:
        layout = Layout(width=preview_width(width))
        if not self.cards:
            return self._empty(layout)
        cw = content_width(width)
        for i, note in enumerate(self.cards):
            body = renderer.render(note, cw, self.display)
            parent = self.parent_labels.get(note.parent, "") if note.parent else ""
            moved = "Temporarily Moved" if i in self.temporarily_moved else ""
            layout.add_card(note.title, body, card_footer(note, parent), moved)
            if i < len(self.cards) - 1:
                layout.blank()
        return layout

    def _payload(self) -> dict:
        return {"cards": tuple(self.cards)}

    def _load_payload(self, entry: NavEntry) -> None:
        self.cards = list(entry.cards)
        self.temporarily_moved = set()


class PickResultsPreview(PreviewVariant):
    key = PICK_RESULTS
    empty_message = "No matches."

    def __init__(self, history: SharedNavHistory, display: PreviewDisplayState | None = None):
        super().__init__(history, display)
        self.results: list[PickResult] = []
        self.query: PickQuery | None = None

    @property
    def card_count(self) -> int:
        return len(self.results)

    def build(self, renderer: LineRenderer, width: int) -> Layout:
        layout = Layout(width=preview_width(width))
        if not self.results:
            return self._empty(layout)
        cw = content_width(width)
        for i, result in enumerate(self.results):
            layout.add_pick_group(result, cw)
            if i < len(self.results) - 1:
                layout.blank()
        return layout

    def _payload(self) -> dict:
        return {"pick_results": tuple(self.results), "pick_query": self.query}

    def _load_payload(self, entry: NavEntry) -> None:
        self.results = list(entry.pick_results)
        self.query = entry.pick_query


class ComposePreview(PreviewVariant):
    key = COMPOSE
    empty_message = "Nothing composed."

    def __init__(self, history: SharedNavHistory, display: PreviewDisplayState | None = None):
        super().__init__(history, display)
        self.note: Note | None = None
        self.source_map: list[SourceMapEntry] = []
        self.parent_id: NoteId | None = None
        self.parent_title = ""

    @property
    def card_count(self) -> int:
        return 0 if self.note is None else 1

    def build(self, renderer: LineRenderer, width: int) -> Layout:
        layout = Layout(width=preview_width(width))
        if self.note is None:
            return self._empty(layout)
        body = renderer.render(self.note, content_width(width), self.display, self.source_map)
        layout.add_card(self.parent_title or self.note.title, body, card_footer(self.note))
        return layout

    def _payload(self) -> dict:
        return {
            "cards": () if self.note is None else (self.note,),
            "compose_source_map": tuple(self.source_map),
            "compose_parent_id": self.parent_id,
            "compose_parent_title": self.parent_title,
        }

    def _load_payload(self, entry: NavEntry) -> None:
        self.note = entry.cards[0] if entry.cards else None
        self.source_map = list(entry.compose_source_map)
        self.parent_id = entry.compose_parent_id
        self.parent_title = entry.compose_parent_title


class DatePreview(PreviewVariant):
    """One calendar day: tagged lines, todos and notes, in three sections."""

    key = DATE_PREVIEW

    def __init__(self, history: SharedNavHistory, display: PreviewDisplayState | None = None):
        super().__init__(history, display)
        self.target_date = ""
        self.tag_picks: list[PickResult] = []
        self.todo_picks: list[PickResult] = []
        self.notes: list[Note] = []
        self.sections = SectionPartition()

    @property
    def card_count(self) -> int:
        return len(self.tag_picks) + len(self.todo_picks) + len(self.notes)

    def header_lines(self) -> list[int]:
        return sorted({*self.nav.header_lines, *self.sections.header_lines})

    def build(self, renderer: LineRenderer, width: int) -> Layout:
        layout = Layout(width=preview_width(width))
        self.sections = SectionPartition()
        if self.card_count == 0:
            layout.emit(f"No activity on {self.target_date}")
            return layout

        cw = content_width(width)
        card = 0
        groups = (self.tag_picks, self.todo_picks, self.notes)
        for section, items in enumerate(groups):
            line_start = layout.line_count
            self.sections.header_lines.append(line_start)
            layout.emit(straight_separator(f" {SECTION_LABELS[section]} ", layout.width))
            layout.blank()
            first_card = card
            if not items:
                layout.emit(f" {SECTION_PLACEHOLDERS[section]}")
            for i, item in enumerate(items):
                if isinstance(item, PickResult):
                    layout.add_pick_group(item, cw)
                else:
                    layout.add_card(item.title, renderer.render(item, cw, self.display), card_footer(item))
                if i < len(items) - 1:
                    layout.blank()
                card += 1
            self.sections.card_ranges[section] = (first_card, card)
            if section < len(groups) - 1:
                layout.blank()
            self.sections.line_ranges[section] = (line_start, layout.line_count)
        return layout

    def _payload(self) -> dict:
        return {
            "date_target": self.target_date,
            "date_tag_picks": tuple(self.tag_picks),
            "date_todo_picks": tuple(self.todo_picks),
            "date_notes": tuple(self.notes),
        }

    def _load_payload(self, entry: NavEntry) -> None:
        self.target_date = entry.date_target
        self.tag_picks = list(entry.date_tag_picks)
        self.todo_picks = list(entry.date_todo_picks)
        self.notes = list(entry.date_notes)


class PreviewContexts:
    """Registry of the variants of one session, keyed by variant key."""

    def __init__(self, history: SharedNavHistory, display: PreviewDisplayState | None = None):
        display = display or PreviewDisplayState()
        self.history = history
        self.card_list = CardListPreview(history, replace(display))
        self.pick_results = PickResultsPreview(history, replace(display))
        self.compose = ComposePreview(history, replace(display))
        self.date_preview = DatePreview(history, replace(display))
        self.active_key = CARD_LIST

    def get(self, key: str) -> PreviewVariant:
        variants: dict[str, PreviewVariant] = {
            CARD_LIST: self.card_list,
            PICK_RESULTS: self.pick_results,
            COMPOSE: self.compose,
            DATE_PREVIEW: self.date_preview,
        }
        if key not in variants:
            raise KeyError(f"Unknown preview variant: {key}")
        return variants[key]

    @property
    def active(self) -> PreviewVariant:
        return self.get(self.active_key)


def _clamp(idx: int, count: int) -> int:
    if count == 0:
        return 0
    return min(max(idx, 0), count - 1)
