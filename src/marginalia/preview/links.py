"""Cross-reference and URL spans in rendered preview lines."""

from ..core.model import SourceLine
from ..core.syntax import URL_RE, WIKI_LINK_RE
from .state import PreviewLink


def extract_links(lines: list[SourceLine]) -> list[PreviewLink]:
    """All ``[[...]]`` and ``http(s)://`` spans, in document order."""
    links = []
    for n, line in enumerate(lines):
        found = []
        for regex in (WIKI_LINK_RE, URL_RE):
            for m in regex.finditer(line.text):
                found.append(PreviewLink(text=m.group(0), line=n, col=m.start(), length=m.end() - m.start()))
        links.extend(sorted(found, key=lambda link: link.col))
    return links


def next_link_index(count: int, current: int | None) -> int | None:
    if count == 0:
        return None
    if current is None or current + 1 >= count:
        return 0
    return current + 1


def prev_link_index(count: int, current: int | None) -> int | None:
    if count == 0:
        return None
    if current is None or current - 1 < 0:
        return count - 1
    return current - 1


def link_at(links: list[PreviewLink], line: int, col: int) -> PreviewLink | None:
    for link in links:
        if link.line == line and link.col <= col < link.col + link.length:
            return link
    return None


def wiki_target(text: str) -> str | None:
    """
    Title a cross-reference points at: ``[[Title#Section|label]]`` -> ``Title``.
    None for anything that is not a cross-reference.
    """
    if not (text.startswith("[[") and text.endswith("]]")):
        return None
    target = text[2:-2].split("|", 1)[0].split("#", 1)[0].strip()
    return target or None
