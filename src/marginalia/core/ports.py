from typing import Protocol, Sequence

from .model import (
    ComposedNote,
    LineOp,
    Note,
    NoteId,
    PickOptions,
    PickResult,
    SearchOptions,
    SourceLine,
    SourceMapEntry,
)


class StoreError(Exception):
    """A note store request failed; preview state must be left untouched."""


class NoteStore(Protocol):
    """
    Request/response access to the notes behind a preview.

    Every call is synchronous and may raise StoreError. Line numbers are
    1-indexed content lines counted after the frontmatter block.
    """

    def search(self, query: str, options: SearchOptions) -> list[Note]:
        pass

    def get(self, id: NoteId, options: SearchOptions) -> Note | None:
        pass

    def get_by_title(self, title: str, options: SearchOptions) -> Note | None:
        pass

    def pick(self, tags: Sequence[str], options: PickOptions) -> list[PickResult]:
        pass

    def compose(self, parent_id: NoteId) -> ComposedNote:
        pass

    def read_line(self, id: NoteId, line_num: int) -> str | None:
        pass

    def mutate_line(self, id: NoteId, line_num: int, op: LineOp) -> None:
        pass

    def set_order(self, id: NoteId, order: int) -> None:
        pass

    def merge(self, target_id: NoteId, source_id: NoteId) -> Note:
        pass

    def delete(self, id: NoteId) -> None:
        pass


class LineRenderer(Protocol):
    """
    Turn one card into display lines. Must emit exactly one SourceLine per
    display line and keep the store's content-line numbering.
    """

    def render(
        self,
        note: Note,
        width: int,
        display: "DisplayOptions",
        source_map: Sequence[SourceMapEntry] | None = None,
    ) -> list[SourceLine]:
        pass


class DisplayOptions(Protocol):
    show_frontmatter: bool
    show_title: bool
    show_global_tags: bool
    render_markdown: bool
