"""Flat-directory note store: one ``<id>.md`` per note with optional YAML frontmatter."""

import logging
import re
from dataclasses import replace
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, Sequence

from ..core.model import (
    ComposedNote,
    LineOp,
    Note,
    NoteId,
    PickMatch,
    PickOptions,
    PickResult,
    SearchOptions,
    SourceMapEntry,
)
from ..core.ports import NoteStore, StoreError
from ..core.syntax import (
    HEADING_RE,
    TODO_RE,
    find_dates,
    find_tags,
    has_tag,
    is_date_token,
    is_done_todo,
    is_tag_token,
    is_todo,
    normalize_tag,
)
from .yaml_codec import YamlFrontmatter, content_start

logger = logging.getLogger(__name__)

_RELATIVE_DAYS = re.compile(r"^(\d+)d$")


class FsNoteStore(NoteStore):
    def __init__(self, root: Path, codec: YamlFrontmatter | None = None):
        self.root = root
        self.codec = codec or YamlFrontmatter()

    def _path(self, id: str) -> Path:
        return self.root / f"{id}.md"

    def _read(self, id: str) -> str | None:
        p = self._path(id)
        return p.read_text(encoding="utf-8") if p.exists() else None

    def _write(self, id: str, contents: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._path(id).write_text(contents, encoding="utf-8")

    def list_ids(self) -> Iterable[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.md") if not p.name.startswith("."))

    # --- loading ---

    def _load(self, id: str, options: SearchOptions) -> Note | None:
        raw = self._read(id)
        if raw is None:
            return None
        meta, body = self.codec.decode(raw)
        return self._to_note(id, meta, body, options)

    def _all(self, options: SearchOptions) -> list[Note]:
        notes = []
        for nid in self.list_ids():
            note = self._load(nid, options)
            if note is not None:
                notes.append(note)
        return notes

    def _to_note(self, id: str, meta: dict[str, Any], body: str, options: SearchOptions) -> Note:
        path = self._path(id)
        title = str(meta.get("title") or _first_heading(body) or id)
        tags = tuple(normalize_tag(t) for t in _as_list(meta.get("tags")))
        global_lower = {t.lower() for t in tags}
        inline: list[str] = []
        for t in find_tags(body):
            if t.lower() not in global_lower and t not in inline:
                inline.append(t)

        mtime = datetime.fromtimestamp(path.stat().st_mtime)
        created = _as_datetime(meta.get("created")) or mtime
        updated = _as_datetime(meta.get("updated")) or mtime

        content = None
        if options.include_content:
            content = _strip_content(body, title, tags, options)

        parent = meta.get("parent")
        order = meta.get("order")
        return Note(
            id=id,
            path=str(path),
            title=title,
            content=content,
            tags=tags,
            inline_tags=tuple(inline),
            created=created,
            updated=updated,
            parent=str(parent) if parent else None,
            order=int(order) if isinstance(order, int) else None,
        )

    # --- queries ---

    def search(self, query: str, options: SearchOptions) -> list[Note]:
        terms = query.split()
        hits = [n for n in self._all(_with_content(options)) if _matches(n, terms)]
        hits = _sorted(hits, options.sort)
        if options.limit > 0:
            hits = hits[: options.limit]
        if not options.include_content:
            hits = [_drop_content(n) for n in hits]
        return hits

    def get(self, id: NoteId, options: SearchOptions) -> Note | None:
        return self._load(id, options)

    def get_by_title(self, title: str, options: SearchOptions) -> Note | None:
        wanted = title.strip().lower()
        if not wanted:
            return None
        for note in self._all(options):
            if note.title.lower() == wanted or note.id.lower() == wanted:
                return note
        return None

    def pick(self, tags: Sequence[str], options: PickOptions) -> list[PickResult]:
        wanted = [normalize_tag(t) for t in tags]
        if not wanted and not options.date and not options.todo:
            return []

        results = []
        for note in _sorted(self._all(SearchOptions()), "created"):
            matches = []
            body_lines = (note.content or "").split("\n")
            for i, line in enumerate(body_lines, start=1):
                if not _line_picked(line, wanted, options):
                    continue
                done = is_done_todo(line) or has_tag(line, "#done")
                if done and not options.include_done:
                    continue
                matches.append(
                    PickMatch(line=i, content=line.strip(), tags=tuple(find_tags(line)), done=done)
                )
            if matches:
                results.append(
                    PickResult(id=note.id, title=note.title, file=note.path, matches=tuple(matches))
                )
        return results

    def compose(self, parent_id: NoteId) -> ComposedNote:
        parent = self._load(parent_id, SearchOptions())
        if parent is None:
            raise StoreError(f"Note {parent_id} not found")

        everything = self._all(SearchOptions(strip_title=True))
        by_parent: dict[str, list[Note]] = {}
        for n in everything:
            if n.parent:
                by_parent.setdefault(n.parent, []).append(n)

        lines: list[str] = []
        source_map: list[SourceMapEntry] = []

        def emit(note: Note, body: str, depth: int) -> None:
            if depth > 0:
                lines.append("#" * min(depth + 1, 6) + " " + note.title)
            start = len(lines) + 1
            for ln in body.split("\n"):
                lines.append(_demote(ln, depth))
            if len(lines) >= start:
                source_map.append(
                    SourceMapEntry(
                        id=note.id, path=note.path, title=note.title,
                        start_line=start, end_line=len(lines),
                    )
                )

        seen = {parent_id}

        def walk(nid: str, depth: int) -> None:
            children = sorted(by_parent.get(nid, []), key=_child_key)
            for child in children:
                if child.id in seen:
                    continue
                seen.add(child.id)
                emit(child, (child.content or "").strip("\n"), depth)
                walk(child.id, depth + 1)

        stripped = _strip_content(
            (self.codec.decode(self._read(parent_id) or "")[1]), parent.title, parent.tags,
            SearchOptions(strip_title=True),
        )
        emit(parent, stripped.strip("\n"), 0)
        walk(parent_id, 1)

        composed = Note(
            id=parent.id,
            path=parent.path,
            title=parent.title,
            content="\n".join(lines),
            tags=parent.tags,
            created=parent.created,
            updated=parent.updated,
        )
        return ComposedNote(note=composed, source_map=tuple(source_map))

    # --- line addressing ---

    def _file_lines(self, id: NoteId) -> tuple[list[str], int]:
        raw = self._read(id)
        if raw is None:
            raise StoreError(f"Note {id} not found")
        lines = raw.split("\n")
        return lines, content_start(lines)

    def read_line(self, id: NoteId, line_num: int) -> str | None:
        try:
            lines, start = self._file_lines(id)
        except StoreError:
            return None
        idx = start + line_num - 1
        if line_num < 1 or idx >= len(lines):
            return None
        return lines[idx]

    def mutate_line(self, id: NoteId, line_num: int, op: LineOp) -> None:
        lines, start = self._file_lines(id)
        idx = start + line_num - 1
        if line_num < 1 or idx >= len(lines):
            raise StoreError(f"Line {line_num} is out of range for note {id}")

        old = lines[idx]
        if op.kind == "toggle_todo":
            new = _toggle_todo(old)
            if new is None:
                raise StoreError(f"Line {line_num} of note {id} is not a todo")
        elif op.kind in ("add_tag", "remove_tag"):
            token = normalize_tag(op.value or "")
            if not is_tag_token(token):
                raise StoreError(f"Invalid tag: {op.value}")
            new = _add_token(old, token) if op.kind == "add_tag" else _remove_token(old, token)
        else:
            token = "@" + (op.value or "").lstrip("@")
            if not is_date_token(token):
                raise StoreError(f"Invalid date: {op.value}")
            new = _add_token(old, token) if op.kind == "add_date" else _remove_token(old, token)

        if new == old:
            return
        lines[idx] = new
        self._write(id, "\n".join(lines))
        logger.debug("%s line %d of %s: %r -> %r", op.kind, line_num, id, old, new)

    # --- note-level mutations ---

    def set_order(self, id: NoteId, order: int) -> None:
        raw = self._read(id)
        if raw is None:
            raise StoreError(f"Note {id} not found")
        meta, body = self.codec.decode(raw)
        meta["order"] = order
        self._write(id, self.codec.encode(meta) + body)

    def merge(self, target_id: NoteId, source_id: NoteId) -> Note:
        target_raw = self._read(target_id)
        source_raw = self._read(source_id)
        if target_raw is None or source_raw is None:
            missing = target_id if target_raw is None else source_id
            raise StoreError(f"Note {missing} not found")

        t_meta, t_body = self.codec.decode(target_raw)
        s_meta, s_body = self.codec.decode(source_raw)
        tags = list(_as_list(t_meta.get("tags")))
        for tag in _as_list(s_meta.get("tags")):
            if tag not in tags:
                tags.append(tag)
        if tags:
            t_meta["tags"] = tags
        body = t_body.rstrip("\n") + "\n\n" + s_body.lstrip("\n")
        self._write(target_id, self.codec.encode(t_meta) + body)
        self.delete(source_id)

        merged = self._load(target_id, SearchOptions())
        if merged is None:
            raise StoreError(f"Note {target_id} not found")
        return merged

    def delete(self, id: NoteId) -> None:
        p = self._path(id)
        if not p.exists():
            raise StoreError(f"Note {id} not found")
        p.unlink()


# --- helpers ---


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v for v in value.replace(",", " ").split() if v]
    return [str(v) for v in value]


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _first_heading(body: str) -> str | None:
    for line in body.split("\n"):
        m = HEADING_RE.match(line)
        if m and len(m.group(1)) == 1:
            return m.group(2).strip()
        if line.strip():
            return None
    return None


def _strip_content(body: str, title: str, tags: tuple[str, ...], options: SearchOptions) -> str:
    lines = body.split("\n")
    if options.strip_title:
        for i, line in enumerate(lines):
            if not line.strip():
                continue
            m = HEADING_RE.match(line)
            if m and len(m.group(1)) == 1 and m.group(2).strip() == title:
                del lines[i]
            break
    if options.strip_global_tags and tags:
        global_lower = {t.lower() for t in tags}

        def only_global(line: str) -> bool:
            words = line.split()
            return bool(words) and all(w.lower() in global_lower for w in words)

        lines = [ln for ln in lines if not only_global(ln)]
    return "\n".join(lines)


def _with_content(options: SearchOptions) -> SearchOptions:
    return SearchOptions(
        sort=options.sort,
        limit=options.limit,
        include_content=True,
        strip_title=options.strip_title,
        strip_global_tags=options.strip_global_tags,
    )


def _drop_content(note: Note) -> Note:
    return replace(note, content=None)


def _matches(note: Note, terms: list[str]) -> bool:
    body = (note.content or "").lower()
    for term in terms:
        if term.startswith("#"):
            wanted = term.lower()
            if not any(t.lower() == wanted for t in (*note.tags, *note.inline_tags)):
                return False
        elif term.startswith(("created:", "updated:")):
            field_name, _, value = term.partition(":")
            stamp = note.created if field_name == "created" else note.updated
            if not _date_matches(stamp, value):
                return False
        elif term.lower() not in body and term.lower() not in note.title.lower():
            return False
    return True


def _date_matches(stamp: datetime | None, value: str) -> bool:
    if stamp is None:
        return False
    rel = _RELATIVE_DAYS.match(value)
    if rel:
        cutoff = datetime.now() - timedelta(days=int(rel.group(1)))
        return stamp >= cutoff
    return stamp.strftime("%Y-%m-%d") == value


def _sorted(notes: list[Note], sort: str) -> list[Note]:
    if not sort:
        return notes
    key_name, _, direction = sort.partition(":")
    reverse = direction == "desc"
    if key_name == "title":
        return sorted(notes, key=lambda n: n.title.lower(), reverse=reverse)
    if key_name in ("created", "updated"):
        return sorted(
            notes,
            key=lambda n: getattr(n, key_name) or datetime.min,
            reverse=reverse,
        )
    return notes


def _child_key(note: Note) -> tuple[int, int, float]:
    has_order = 0 if note.order is not None else 1
    created = note.created.timestamp() if note.created else 0.0
    return (has_order, note.order or 0, -created)


def _demote(line: str, depth: int) -> str:
    m = HEADING_RE.match(line)
    if not m or depth == 0:
        return line
    level = min(len(m.group(1)) + depth, 6)
    return "#" * level + " " + m.group(2)


def _line_picked(line: str, wanted: list[str], options: PickOptions) -> bool:
    if wanted:
        hits = [has_tag(line, t) for t in wanted]
        if not (any(hits) if options.any_tag else all(hits)):
            return False
    if options.date and "@" + options.date.lstrip("@") not in find_dates(line):
        return False
    if options.todo and not is_todo(line):
        return False
    return True


def _toggle_todo(line: str) -> str | None:
    m = TODO_RE.match(line)
    if m is None:
        return None
    mark = " " if m.group(2) in "xX" else "x"
    return m.group(1) + mark + m.group(3) + line[m.end():]


def _token_pattern(token: str) -> re.Pattern[str]:
    return re.compile(r"\s*" + re.escape(token) + r"(?![\w-])", re.IGNORECASE)


def _add_token(line: str, token: str) -> str:
    if _token_pattern(token).search(line):
        return line
    stripped = line.rstrip()
    return f"{stripped} {token}" if stripped else token


def _remove_token(line: str, token: str) -> str:
    new = _token_pattern(token).sub("", line)
    if not line[:1].isspace():
        new = new.lstrip()
    return new
