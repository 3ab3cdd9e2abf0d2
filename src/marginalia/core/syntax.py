"""Inline note syntax shared by the store, the renderer and line operations."""

import re

INLINE_TAG_RE = re.compile(r"#[\w-]+")
INLINE_DATE_RE = re.compile(r"@\d{4}-\d{2}-\d{2}")
TODO_RE = re.compile(r"^(\s*[-*] \[)([ xX])(\])")
HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
WIKI_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")
URL_RE = re.compile(r"https?://[^\s)\]>]+")


def is_header_line(line: str) -> bool:
    """ATX header check; "#tag" lines are not headers."""
    trimmed = line.lstrip(" ")
    rest = trimmed.lstrip("#")
    return len(rest) < len(trimmed) and rest[:1] == " "


def strip_header_prefix(s: str) -> str:
    """'## Title' and '### Title' both become 'Title'."""
    stripped = s.lstrip("#")
    if len(stripped) == len(s):
        return s
    return stripped.lstrip(" ")


def normalize_tag(tag: str) -> str:
    tag = tag.strip()
    return tag if tag.startswith("#") else "#" + tag


def find_tags(line: str) -> list[str]:
    return INLINE_TAG_RE.findall(line)


def has_tag(line: str, tag: str) -> bool:
    wanted = normalize_tag(tag).lower()
    return any(t.lower() == wanted for t in find_tags(line))


def find_dates(line: str) -> list[str]:
    return INLINE_DATE_RE.findall(line)


def is_tag_token(token: str) -> bool:
    """A single "#tag" token, as find_tags would see it."""
    return INLINE_TAG_RE.fullmatch(token) is not None


def is_date_token(token: str) -> bool:
    """A single "@YYYY-MM-DD" token, as find_dates would see it."""
    return INLINE_DATE_RE.fullmatch(token) is not None


def is_todo(line: str) -> bool:
    return TODO_RE.match(line) is not None


def is_done_todo(line: str) -> bool:
    m = TODO_RE.match(line)
    return m is not None and m.group(2) in "xX"
