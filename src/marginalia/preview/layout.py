"""Build the source-line table and card partition for a preview."""

from dataclasses import dataclass, field

from ..core.model import PickResult, SourceLine
from ..core.syntax import is_header_line
from ..adapters.line_renderer import wrap_line
from .state import LineRange

SEP = "─"
MIN_WIDTH = 10
FALLBACK_WIDTH = 40
EMPTY_CARD = "(empty)"

SECTION_LABELS = ("Inline Tags", "Todos", "Notes")
SECTION_PLACEHOLDERS = ("No tagged lines", "No todos", "No notes")


def separator(upper: bool, left: str, right: str, width: int) -> str:
    fill = max(width - len(left) - len(right) - 4, 0)
    open_, close = ("╭", "╮") if upper else ("╰", "╯")
    return f"{open_}{SEP}{left}{SEP * fill}{right}{SEP}{close}"


def straight_separator(label: str, width: int) -> str:
    fill = max(width - len(label) - 2, 0)
    return f"{SEP}{label}{SEP * fill}{SEP}"


@dataclass
class Layout:
    """Lines, card ranges and header lines accumulated in display order."""

    width: int
    lines: list[SourceLine] = field(default_factory=list)
    ranges: list[LineRange] = field(default_factory=list)
    headers: list[int] = field(default_factory=list)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def emit(self, text: str, source: SourceLine | None = None) -> None:
        if source is None:
            self.lines.append(SourceLine(text=text))
        else:
            self.lines.append(
                SourceLine(
                    text=text,
                    note_id=source.note_id,
                    line_num=source.line_num,
                    path=source.path,
                )
            )

    def blank(self) -> None:
        self.emit("")

    def add_card(
        self, title: str, body: list[SourceLine], footer: str = "", upper_right: str = ""
    ) -> None:
        start = self.line_count
        left = f" {title or 'Untitled'} "
        right = f" {upper_right} " if upper_right else ""
        self.emit(separator(True, left, right, self.width))
        if not body:
            self.emit(f"  {EMPTY_CARD}")
        for sl in body:
            if is_header_line(sl.text):
                self.headers.append(self.line_count)
            self.emit(sl.text, sl)
        self.emit(separator(False, "", f" {footer} " if footer else "", self.width))
        self.ranges.append((start, self.line_count))

    def add_pick_group(self, result: PickResult, content_width: int) -> None:
        """One card per pick result: each match is shown as ``L07: text``."""
        start = self.line_count
        self.emit(separator(True, f" {result.title or 'Untitled'} ", "", self.width))
        for match in result.matches:
            prefix = f"  L{match.line:02d}: "
            source = SourceLine(text="", note_id=result.id, line_num=match.line, path=result.file)
            pieces = wrap_line(match.content, max(content_width - len(prefix), 1))
            for j, piece in enumerate(pieces):
                text = prefix + piece if j == 0 else " " * len(prefix) + piece
                self.emit(text, source)
        if not result.matches:
            self.emit(f"  {EMPTY_CARD}")
        self.emit(separator(False, "", f" {len(result.matches)} matches ", self.width))
        self.ranges.append((start, self.line_count))


@dataclass
class SectionPartition:
    """
    Card and line ranges of the three date-preview sections. Indexes outside
    every range belong to the last section.
    """

    card_ranges: list[LineRange] = field(default_factory=lambda: [(0, 0)] * 3)
    line_ranges: list[LineRange] = field(default_factory=lambda: [(0, 0)] * 3)
    header_lines: list[int] = field(default_factory=list)

    def section_for_card(self, card: int) -> int:
        for i, (s, e) in enumerate(self.card_ranges):
            if s <= card < e:
                return i
        return len(self.card_ranges) - 1

    def section_for_line(self, line: int) -> int:
        for i, (s, e) in enumerate(self.line_ranges):
            if s <= line < e:
                return i
        return len(self.line_ranges) - 1

    def local_card_index(self, card: int) -> int:
        return card - self.card_ranges[self.section_for_card(card)][0]


def preview_width(width: int) -> int:
    return width if width >= MIN_WIDTH else FALLBACK_WIDTH


def content_width(width: int) -> int:
    return max(preview_width(width) - 2, 1)
