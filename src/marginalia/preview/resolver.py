"""Map the cursor back to a source line and decide which line operation to issue."""

from ..core.model import LineOp, LineTarget
from ..core.syntax import find_dates, has_tag, normalize_tag
from .state import PreviewNavState

DONE_TAG = "#done"


def resolve_target(nav: PreviewNavState) -> LineTarget | None:
    """Source line under the cursor, or None for frame, separator and other unaddressed lines."""
    if not 0 <= nav.cursor_line < len(nav.lines):
        return None
    line = nav.lines[nav.cursor_line]
    if not line.addressable:
        return None
    return LineTarget(note_id=line.note_id, line_num=line.line_num, path=line.path)


def resolve_path(nav: PreviewNavState) -> str | None:
    """Path at the cursor, or the nearest one above it."""
    if not nav.lines:
        return None
    start = min(nav.cursor_line, len(nav.lines) - 1)
    for i in range(start, -1, -1):
        if nav.lines[i].path:
            return nav.lines[i].path
    return None


def tag_op(raw_line: str, tag: str) -> LineOp:
    tag = normalize_tag(tag)
    kind = "remove_tag" if has_tag(raw_line, tag) else "add_tag"
    return LineOp(kind, tag)


def done_op(raw_line: str) -> LineOp:
    return tag_op(raw_line, DONE_TAG)


def date_op(raw_line: str, date: str) -> LineOp:
    date = date.strip().lstrip("@")
    kind = "remove_date" if "@" + date in find_dates(raw_line) else "add_date"
    return LineOp(kind, date)
