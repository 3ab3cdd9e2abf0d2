"""Preview navigation state, display toggles and history snapshots."""

from dataclasses import dataclass, field

from ..core.model import Note, NoteId, PickOptions, PickResult, SourceLine, SourceMapEntry

LineRange = tuple[int, int]

CARD_LIST = "card_list"
PICK_RESULTS = "pick_results"
COMPOSE = "compose"
DATE_PREVIEW = "date_preview"

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class PreviewLink:
    text: str
    line: int
    col: int
    length: int

    @property
    def is_url(self) -> bool:
        return self.text.startswith(("http://", "https://"))


@dataclass
class PreviewNavState:
    scroll_offset: int = 0
    cursor_line: int = 0
    card_line_ranges: list[LineRange] = field(default_factory=list)
    header_lines: list[int] = field(default_factory=list)
    lines: list[SourceLine] = field(default_factory=list)
    links: list[PreviewLink] = field(default_factory=list)
    highlighted_link: int | None = None
    rendered_link: int | None = None

    def is_content_line(self, i: int) -> bool:
        """Lines strictly inside a card; the first and last line of a range frame it."""
        return any(s < i < e - 1 for s, e in self.card_line_ranges)

    def card_at_line(self, i: int) -> int | None:
        """
        Card owning line ``i``. A line in the gap between two ranges belongs
        to the card after the gap; anything else has no card.
        """
        ranges = self.card_line_ranges
        for idx, (s, e) in enumerate(ranges):
            if s <= i < e:
                return idx
        for idx in range(1, len(ranges)):
            if ranges[idx - 1][1] <= i < ranges[idx][0]:
                return idx
        return None

    def first_content_line(self, card: int) -> int | None:
        if 0 <= card < len(self.card_line_ranges):
            return self.card_line_ranges[card][0] + 1
        return None

    def clear_layout(self) -> None:
        self.card_line_ranges = []
        self.header_lines = []
        self.lines = []
        self.links = []


@dataclass
class PreviewDisplayState:
    show_frontmatter: bool = False
    show_title: bool = True
    show_global_tags: bool = True
    render_markdown: bool = True


@dataclass(frozen=True)
class PickQuery:
    """The request behind a pick view, kept so the view can be re-run."""

    tags: tuple[str, ...] = ()
    options: PickOptions = field(default_factory=PickOptions)


@dataclass(frozen=True)
class NavEntry:
    variant_key: str
    title: str = ""
    cards: tuple[Note, ...] = ()
    selected_card_index: int = 0
    cursor_line: int = 0
    scroll_offset: int = 0
    pick_results: tuple[PickResult, ...] = ()
    pick_query: PickQuery | None = None
    compose_source_map: tuple[SourceMapEntry, ...] = ()
    compose_parent_id: NoteId | None = None
    compose_parent_title: str = ""
    date_target: str = ""
    date_tag_picks: tuple[PickResult, ...] = ()
    date_todo_picks: tuple[PickResult, ...] = ()
    date_notes: tuple[Note, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.cards
            or self.pick_results
            or self.date_tag_picks
            or self.date_todo_picks
            or self.date_notes
        )


@dataclass
class SharedNavHistory:
    """
    Back/forward history shared by every preview variant of one session.

    ``entries[index]`` is the most recently recorded state. The live view is
    written into the list lazily: ``live_recorded`` is true once the live
    view occupies ``entries[index]`` (after a back, forward or select), and
    false right after a push, when the live view has not been stored yet.
    """

    entries: list[NavEntry] = field(default_factory=list)
    index: int = -1
    limit: int = DEFAULT_HISTORY_LIMIT
    live_recorded: bool = False

    def push(self, live: NavEntry) -> bool:
        """Record ``live`` before navigating away from it."""
        if live.is_empty:
            return False
        del self.entries[self.index + 1 :]
        if self.live_recorded and self.index >= 0:
            self.entries[self.index] = live
        else:
            self.entries.append(live)
        self.index = len(self.entries) - 1
        self.live_recorded = False
        self._trim()
        return True

    def back(self, live: NavEntry) -> NavEntry | None:
        if self.index < 0:
            return None
        self._record_live(live)
        if self.index == 0:
            return None
        self.index -= 1
        return self.entries[self.index]

    def forward(self, live: NavEntry) -> NavEntry | None:
        if not self.live_recorded or self.index >= len(self.entries) - 1:
            return None
        self.entries[self.index] = live
        self.index += 1
        return self.entries[self.index]

    def select(self, target: int, live: NavEntry) -> NavEntry | None:
        """Jump to ``entries[target]``, recording the live view first."""
        if not self.entries:
            return None
        target -= self._record_live(live)
        if not 0 <= target < len(self.entries) or target == self.index:
            return None
        self.index = target
        return self.entries[target]

    def most_recent_first(self) -> list[tuple[int, NavEntry]]:
        return [(i, self.entries[i]) for i in range(len(self.entries) - 1, -1, -1)]

    def _record_live(self, live: NavEntry) -> int:
        if self.live_recorded:
            self.entries[self.index] = live
            return 0
        self.entries.append(live)
        self.index = len(self.entries) - 1
        self.live_recorded = True
        return self._trim()

    def _trim(self) -> int:
        overflow = len(self.entries) - self.limit
        if overflow <= 0:
            return 0
        del self.entries[:overflow]
        self.index = max(self.index - overflow, 0)
        return overflow
