"""Plain-text card renderer with per-line source provenance."""

import logging
import re
import textwrap
from pathlib import Path
from typing import Sequence

from ..core.model import Note, NoteId, SourceLine, SourceMapEntry
from ..core.ports import DisplayOptions, LineRenderer
from ..core.syntax import HEADING_RE, TODO_RE, strip_header_prefix
from .yaml_codec import content_start

logger = logging.getLogger(__name__)

BOLD_RE = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1")
ITALIC_RE = re.compile(r"(?<![\w*])([*_])(?=\S)(.+?)(?<=\S)\1(?![\w*])")
CODE_RE = re.compile(r"`([^`]+)`")
BULLET_RE = re.compile(r"^(\s*)[-*+] ")

# (note id, content line, path) for one content line
Provenance = tuple[NoteId | None, int | None, str | None]


class PlainLineRenderer(LineRenderer):
    """
    Render a note into wrapped display lines.

    Content line numbers are recovered from the note file on disk, so they
    always match what the store addresses even when the store has stripped
    the title or global tag lines from ``note.content``.
    """

    def render(
        self,
        note: Note,
        width: int,
        display: DisplayOptions,
        source_map: Sequence[SourceMapEntry] | None = None,
    ) -> list[SourceLine]:
        content = note.content or ""
        texts = content.split("\n") if content else []
        raw = _read_lines(note.path)
        start = content_start(raw)

        if source_map:
            prov = _compose_line_map(texts, source_map)
        else:
            prov = _raw_line_map(texts, raw[start:], note.id, note.path)

        pairs = list(zip(texts, prov))
        if not display.show_title:
            pairs = _drop_title(pairs, note.title)
        if not display.show_global_tags and note.tags:
            pairs = _drop_global_tag_lines(pairs, note.tags)

        out: list[SourceLine] = []
        if display.show_frontmatter and start > 0:
            out.extend(SourceLine(text=ln) for ln in raw[:start])

        in_fence = False
        for text, (nid, num, path) in pairs:
            shown = text
            if text.lstrip().startswith("```"):
                in_fence = not in_fence
            elif display.render_markdown and not in_fence:
                shown = render_inline_markdown(text)
            for piece in wrap_line(shown, width):
                out.append(SourceLine(text=piece, note_id=nid, line_num=num, path=path))

        return _trim_blank_edges(out)


def render_inline_markdown(line: str) -> str:
    """Strip inline emphasis and code markers; headers keep their ``#`` run."""
    m = TODO_RE.match(line)
    if m:
        prefix = m.group(1)
        indent = prefix[: len(prefix) - len(prefix.lstrip())]
        line = f"{indent}[{m.group(2)}]{line[m.end():]}"
    else:
        line = BULLET_RE.sub(lambda b: b.group(1) + "• ", line)
    line = CODE_RE.sub(r"\1", line)
    line = BOLD_RE.sub(r"\2", line)
    return ITALIC_RE.sub(r"\2", line)


def wrap_line(text: str, width: int) -> list[str]:
    if width <= 0 or len(text) <= width or not text.strip():
        return [text.rstrip()]
    indent = text[: len(text) - len(text.lstrip())]
    pieces = textwrap.wrap(
        text,
        width=width,
        subsequent_indent=indent,
        break_long_words=False,
        break_on_hyphens=False,
    )
    return pieces or [""]


def _read_lines(path: str) -> list[str]:
    if not path:
        return []
    try:
        return Path(path).read_text(encoding="utf-8").split("\n")
    except OSError as e:
        logger.debug("No source file for %s: %s", path, e)
        return []


def _raw_line_map(
    texts: list[str], body: list[str], note_id: NoteId, path: str
) -> list[Provenance]:
    """Forward-scan the file body for each content line; sequential if absent."""
    prov: list[Provenance] = []
    pos = 0
    for i, text in enumerate(texts):
        want = text.strip()
        found = None
        if body:
            for j in range(pos, len(body)):
                if body[j].strip() == want:
                    found = j
                    break
        if found is not None:
            prov.append((note_id, found + 1, path or None))
            pos = found + 1
        elif body:
            prov.append((note_id, None, path or None))
        else:
            prov.append((note_id, i + 1, path or None))
    return prov


def _compose_line_map(
    texts: list[str], source_map: Sequence[SourceMapEntry]
) -> list[Provenance]:
    """
    Map composed content lines back to child files.

    Composition demotes headers, so lines are compared with their ``#`` run
    removed. Blank and unmatched lines keep the child's id and path so the
    editor can still find the file, but carry no line number.
    """
    bodies: dict[str, list[str]] = {}
    cursors: dict[str, int] = {}
    prov: list[Provenance] = []
    for k, text in enumerate(texts, start=1):
        entry = next((e for e in source_map if e.start_line <= k <= e.end_line), None)
        if entry is None:
            prov.append((None, None, None))
            continue
        if entry.id not in bodies:
            raw = _read_lines(entry.path)
            bodies[entry.id] = raw[content_start(raw):]
            cursors[entry.id] = 0
        want = strip_header_prefix(text.strip())
        if not want:
            prov.append((entry.id, None, entry.path))
            continue
        body = bodies[entry.id]
        found = None
        for j in range(cursors[entry.id], len(body)):
            if strip_header_prefix(body[j].strip()) == want:
                found = j
                break
        if found is None:
            prov.append((entry.id, None, entry.path))
        else:
            cursors[entry.id] = found + 1
            prov.append((entry.id, found + 1, entry.path))
    return prov


def _drop_title(pairs: list[tuple[str, Provenance]], title: str) -> list[tuple[str, Provenance]]:
    for i, (text, _) in enumerate(pairs):
        if not text.strip():
            continue
        m = HEADING_RE.match(text)
        if m and len(m.group(1)) == 1 and m.group(2).strip() == title:
            return pairs[:i] + pairs[i + 1 :]
        break
    return pairs


def _drop_global_tag_lines(
    pairs: list[tuple[str, Provenance]], tags: Sequence[str]
) -> list[tuple[str, Provenance]]:
    lowered = {t.lower() if t.startswith("#") else "#" + t.lower() for t in tags}

    def only_tags(text: str) -> bool:
        words = text.split()
        return bool(words) and all(w.lower() in lowered for w in words)

    return [p for p in pairs if not only_tags(p[0])]


def _trim_blank_edges(lines: list[SourceLine]) -> list[SourceLine]:
    start, end = 0, len(lines)
    while start < end and not lines[start].text.strip():
        start += 1
    while end > start and not lines[end - 1].text.strip():
        end -= 1
    return lines[start:end]
