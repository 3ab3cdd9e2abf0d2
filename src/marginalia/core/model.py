from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime

NoteId = str


@dataclass(frozen=True)
class Note:
    id: NoteId
    path: str = ""
    title: str = ""
    content: str | None = None  # None = not loaded (or invalidated)
    tags: tuple[str, ...] = ()  # global tags, from frontmatter
    inline_tags: tuple[str, ...] = ()
    created: datetime | None = None
    updated: datetime | None = None
    parent: NoteId | None = None
    order: int | None = None

    def short_date(self) -> str:
        if self.created is None:
            return ""
        return self.created.strftime("%b %d")

    def global_tags_string(self) -> str:
        return ", ".join(_hashed(t) for t in self.tags)


def _hashed(tag: str) -> str:
    return tag if tag.startswith("#") else "#" + tag


@dataclass(frozen=True)
class PickMatch:
    line: int  # 1-indexed content line
    content: str
    tags: tuple[str, ...] = ()
    done: bool = False


@dataclass(frozen=True)
class PickResult:
    id: NoteId
    title: str = ""
    file: str = ""
    matches: tuple[PickMatch, ...] = ()


@dataclass(frozen=True)
class SourceMapEntry:
    id: NoteId
    path: str
    title: str
    start_line: int  # 1-indexed, inclusive, in the composed content
    end_line: int


@dataclass(frozen=True)
class ComposedNote:
    note: Note
    source_map: tuple[SourceMapEntry, ...] = ()


@dataclass(frozen=True)
class SourceLine:
    text: str
    note_id: NoteId | None = None
    line_num: int | None = None  # 1-indexed content line (after frontmatter)
    path: str | None = None

    @property
    def addressable(self) -> bool:
        return bool(self.note_id) and bool(self.line_num)


@dataclass(frozen=True)
class LineTarget:
    note_id: NoteId
    line_num: int
    path: str | None = None


LINE_OP_KINDS = ("toggle_todo", "add_tag", "remove_tag", "add_date", "remove_date")


@dataclass(frozen=True)
class LineOp:
    kind: str  # one of LINE_OP_KINDS
    value: str | None = None  # "#tag" or "YYYY-MM-DD"

    def __post_init__(self) -> None:
        if self.kind not in LINE_OP_KINDS:
            raise ValueError(f"Unknown line operation: {self.kind}")


@dataclass
class SearchOptions:
    sort: str = ""  # "created", "created:desc", "updated", "title", ...
    limit: int = 0
    include_content: bool = True
    strip_title: bool = False
    strip_global_tags: bool = False


@dataclass
class PickOptions:
    any_tag: bool = False
    date: str | None = None  # "@YYYY-MM-DD"
    todo: bool = False
    include_done: bool = True
