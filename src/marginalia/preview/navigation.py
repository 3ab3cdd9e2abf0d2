"""
Cursor and card movement over a laid-out preview variant.

Every function returns True when it moved something and the caller should
re-render; False means the request was a no-op (buffer edge, no cards, no
header in that direction).
"""

from .variants import DatePreview, PreviewVariant

SCROLL_STEP = 3


def move_down(variant: PreviewVariant) -> bool:
    nav = variant.nav
    for i in range(nav.cursor_line + 1, len(nav.lines)):
        if nav.is_content_line(i):
            nav.cursor_line = i
            variant.sync_card_index_from_cursor()
            return True
    return False


def move_up(variant: PreviewVariant) -> bool:
    nav = variant.nav
    for i in range(min(nav.cursor_line, len(nav.lines)) - 1, -1, -1):
        if nav.is_content_line(i):
            nav.cursor_line = i
            variant.sync_card_index_from_cursor()
            return True
    return False


def card_down(variant: PreviewVariant) -> bool:
    return _jump_card(variant, variant.selected_card_index + 1)


def card_up(variant: PreviewVariant) -> bool:
    return _jump_card(variant, variant.selected_card_index - 1)


def _jump_card(variant: PreviewVariant, idx: int) -> bool:
    ranges = variant.nav.card_line_ranges
    if not 0 <= idx < variant.card_count or idx >= len(ranges):
        return False
    variant.select_card(idx)
    variant.nav.cursor_line = ranges[idx][0] + 1
    return True


def next_header(variant: PreviewVariant) -> bool:
    cursor = variant.nav.cursor_line
    for h in variant.header_lines():
        if h > cursor:
            variant.nav.cursor_line = h
            variant.sync_card_index_from_cursor()
            return True
    return False


def prev_header(variant: PreviewVariant) -> bool:
    cursor = variant.nav.cursor_line
    for h in reversed(variant.header_lines()):
        if h < cursor:
            variant.nav.cursor_line = h
            variant.sync_card_index_from_cursor()
            return True
    return False


def next_section(variant: PreviewVariant) -> bool:
    cursor = variant.nav.cursor_line
    for target in _section_targets(variant):
        if target > cursor:
            return _jump_to(variant, target)
    return False


def prev_section(variant: PreviewVariant) -> bool:
    cursor = variant.nav.cursor_line
    for target in reversed(_section_targets(variant)):
        if target < cursor:
            return _jump_to(variant, target)
    return False


def _section_targets(variant: PreviewVariant) -> list[int]:
    """First content line of each date-preview section, or its divider when it has no cards."""
    if not isinstance(variant, DatePreview):
        return []
    sections = variant.sections
    targets = []
    for divider, (first, end) in zip(sections.header_lines, sections.card_ranges):
        line = variant.nav.first_content_line(first) if end > first else None
        targets.append(divider if line is None else line)
    return targets


def _jump_to(variant: PreviewVariant, line: int) -> bool:
    variant.nav.cursor_line = line
    variant.sync_card_index_from_cursor()
    return True


def scroll_down(variant: PreviewVariant) -> bool:
    nav = variant.nav
    limit = max(len(nav.lines) - 1, 0)
    new = min(nav.scroll_offset + SCROLL_STEP, limit)
    if new == nav.scroll_offset:
        return False
    nav.scroll_offset = new
    return True


def scroll_up(variant: PreviewVariant) -> bool:
    nav = variant.nav
    new = max(nav.scroll_offset - SCROLL_STEP, 0)
    if new == nav.scroll_offset:
        return False
    nav.scroll_offset = new
    return True


def place_cursor(variant: PreviewVariant, line: int) -> bool:
    """
    Put the cursor on ``line`` as a click would: inside a card, snap off the
    frame onto the first content line.
    """
    nav = variant.nav
    if not 0 <= line < len(nav.lines):
        return False
    for s, e in nav.card_line_ranges:
        if s <= line < e:
            if not nav.is_content_line(line):
                line = s + 1
            break
    nav.cursor_line = line
    variant.sync_card_index_from_cursor()
    return True


def ensure_cursor_visible(variant: PreviewVariant, height: int) -> None:
    """Scroll so the cursor line, and the frame next to it, fit in ``height`` lines."""
    if height <= 0:
        return
    nav = variant.nav
    cursor = nav.cursor_line
    show_from = show_to = cursor
    idx = variant.selected_card_index
    if idx < len(nav.card_line_ranges):
        s, e = nav.card_line_ranges[idx]
        if cursor == s + 1:
            show_from = s
        if cursor == e - 2:
            show_to = e - 1
    if show_from < nav.scroll_offset:
        nav.scroll_offset = show_from
    elif show_to >= nav.scroll_offset + height:
        nav.scroll_offset = show_to - height + 1
