"""CLI for marginalia - browse note previews from the terminal."""

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path
from typing import Any, Callable, TextIO

from .core.list_cursor import ListCursor
from .core.model import Note, PickOptions, SearchOptions
from .core.ports import StoreError
from .preview.session import PreviewSession
from .runtime import build_runtime

logger = logging.getLogger(__name__)


def print_preview(session: PreviewSession, args: argparse.Namespace, out: TextIO = sys.stdout) -> None:
    if args.json:
        print(json.dumps(session.describe(), indent=2), file=out)
        return
    variant = session.active
    nav = variant.nav
    if not args.quiet and variant.title:
        print(f"# {variant.title}", file=out)
    lines = nav.lines
    if session.height > 0:
        lines = lines[nav.scroll_offset : nav.scroll_offset + session.height]
        offset = nav.scroll_offset
    else:
        offset = 0
    for i, line in enumerate(lines, start=offset):
        marker = ">" if i == nav.cursor_line and not args.quiet else " "
        print(f"{marker}{line.text}", file=out)
    for message in session.status:
        print(message, file=sys.stderr)
    session.status.clear()


def _session(args: argparse.Namespace, rt: Any) -> PreviewSession:
    return rt.new_session(width=args.width)


def cmd_show(args: argparse.Namespace, rt: Any) -> int:
    """Preview one note."""
    session = _session(args, rt)
    if not session.open_note(args.id):
        print(f"Error: Note {args.id} not found", file=sys.stderr)
        return 1
    print_preview(session, args)
    return 0


def cmd_search(args: argparse.Namespace, rt: Any) -> int:
    """Preview every note matching a query."""
    session = _session(args, rt)
    ok = session.search(args.query)
    print_preview(session, args)
    return 0 if ok else 1


def _pick_options(args: argparse.Namespace) -> PickOptions:
    return PickOptions(
        any_tag=args.any,
        date=f"@{args.date.lstrip('@')}" if args.date else None,
        todo=args.todo,
        include_done=not args.no_done,
    )


def cmd_pick(args: argparse.Namespace, rt: Any) -> int:
    """Preview the lines carrying the given tags."""
    session = _session(args, rt)
    ok = session.pick(args.tags, _pick_options(args))
    print_preview(session, args)
    return 0 if ok else 1


def cmd_compose(args: argparse.Namespace, rt: Any) -> int:
    """Preview a parent note with all of its children."""
    session = _session(args, rt)
    ok = session.show_compose(args.parent)
    print_preview(session, args)
    return 0 if ok else 1


def cmd_date(args: argparse.Namespace, rt: Any) -> int:
    """Preview the activity of one day."""
    session = _session(args, rt)
    ok = session.load_date_preview(args.date)
    print_preview(session, args)
    return 0 if ok else 1


class NotesPanel:
    """Side list of notes; moving through it previews the selected note."""

    def __init__(self, session: PreviewSession):
        self.session = session
        self.notes: list[Note] = []
        self.cursor = ListCursor(self.notes)

    def load(self, query: str) -> None:
        self.notes[:] = self.session.store.search(query, SearchOptions(sort="created:desc"))
        self.cursor.clamp()

    def move(self, delta: int) -> None:
        if not self.notes:
            return
        self.cursor.move(delta)
        note = self.notes[self.cursor.selected]
        self.session.show_card_list(note.title, [note])

    def lines(self) -> list[str]:
        return [
            f"{'>' if i == self.cursor.selected else ' '} {n.id}\t{n.title}"
            for i, n in enumerate(self.notes)
        ]


def _browse_commands(session: PreviewSession, panel: NotesPanel) -> dict[str, Callable[[list[str]], Any]]:
    def history(argv: list[str]) -> None:
        if argv:
            session.select_history(int(argv[0]))
            return
        for item in session.show_history():
            marker = "*" if item.current else " "
            print(f"{marker} {item.index}\t{item.variant_key}\t{item.title}")

    def ls(argv: list[str]) -> None:
        if argv:
            panel.load(" ".join(argv))
        print("\n".join(panel.lines()))

    def pick(argv: list[str]) -> None:
        todo = "--todo" in argv
        tags = [a for a in argv if a != "--todo"]
        session.pick(tags, PickOptions(todo=todo))

    return {
        "j": lambda a: session.move_down(),
        "k": lambda a: session.move_up(),
        "J": lambda a: session.card_down(),
        "K": lambda a: session.card_up(),
        "}": lambda a: session.next_header(),
        "{": lambda a: session.prev_header(),
        "]": lambda a: session.next_section(),
        "[": lambda a: session.prev_section(),
        "ctrl-e": lambda a: session.scroll_down(),
        "ctrl-y": lambda a: session.scroll_up(),
        "click": lambda a: session.click(int(a[0]), int(a[1]) if len(a) > 1 else 0),
        "l": lambda a: session.highlight_next_link(),
        "L": lambda a: session.highlight_prev_link(),
        "o": lambda a: session.open_link(),
        "enter": lambda a: session.preview_enter(),
        "b": lambda a: session.nav_back(),
        "f": lambda a: session.nav_forward(),
        "history": history,
        "x": lambda a: session.toggle_todo(),
        "done": lambda a: session.append_done(),
        "tag": lambda a: session.toggle_inline_tag(a[0]) if a else None,
        "date": lambda a: session.toggle_inline_date(a[0]) if a else None,
        "e": lambda a: session.open_in_editor(),
        "delete": lambda a: session.delete_card(),
        "move": lambda a: session.move_card(a[0] if a else "down"),
        "merge": lambda a: session.merge_card(a[0] if a else "down"),
        "order": lambda a: session.order_cards(),
        "fm": lambda a: session.toggle_frontmatter(),
        "title": lambda a: session.toggle_title(),
        "gtags": lambda a: session.toggle_global_tags(),
        "md": lambda a: session.toggle_markdown(),
        "reload": lambda a: session.reload_content(),
        "search": lambda a: session.search(" ".join(a)),
        "show": lambda a: session.open_note(a[0]) if a else None,
        "pick": pick,
        "compose": lambda a: session.show_compose(a[0]) if a else None,
        "day": lambda a: session.load_date_preview(a[0]) if a else None,
        "ls": ls,
        "down": lambda a: panel.move(1),
        "up": lambda a: panel.move(-1),
    }


def cmd_browse(args: argparse.Namespace, rt: Any) -> int:
    """Line-driven preview browser: one command per input line, ``q`` quits."""
    session = _session(args, rt)
    panel = NotesPanel(session)
    if args.query:
        session.search(args.query)
        panel.load(args.query)
        print_preview(session, args)
    commands = _browse_commands(session, panel)

    for raw in sys.stdin:
        try:
            argv = shlex.split(raw)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            continue
        if not argv:
            continue
        name, rest = argv[0], argv[1:]
        if name in ("q", "quit"):
            break
        command = commands.get(name)
        if command is None:
            print(f"Unknown command: {name}", file=sys.stderr)
            continue
        try:
            command(rest)
        except (ValueError, IndexError, StoreError) as e:
            print(f"Error: {e}", file=sys.stderr)
            continue
        if name not in ("history", "ls") or rest:
            print_preview(session, args)
    return 0


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start local JSON API server."""
    import uvicorn

    from .api.app import create_app, generate_token

    token_arg = args.token or rt.config.api.token or "auto"
    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = token_arg

    app = create_app(rt, token=token, enable_cors=args.cors, width=args.width)
    host = args.host or rt.config.api.host
    port = args.port or rt.config.api.port
    print(f"Starting server on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(prog="marg", description="Marginalia note preview CLI")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/marginalia.toml, vault/marginalia.toml)",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Path to vault directory (overrides config)",
    )
    parser.add_argument("--width", type=int, default=None, help="Preview width in columns")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimize output")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    parser_show = subparsers.add_parser("show", help="Preview a note")
    parser_show.add_argument("id", help="Note ID")

    parser_search = subparsers.add_parser("search", help="Preview notes matching a query")
    parser_search.add_argument("query", help="Words, #tags, created:/updated: filters")

    parser_pick = subparsers.add_parser("pick", help="Preview lines carrying tags")
    parser_pick.add_argument("tags", nargs="*", help="Tags to match (all by default)")
    parser_pick.add_argument("--any", action="store_true", help="Match any tag instead of all")
    parser_pick.add_argument("--todo", action="store_true", help="Only todo lines")
    parser_pick.add_argument("--date", default=None, help="Only lines carrying @YYYY-MM-DD")
    parser_pick.add_argument("--no-done", action="store_true", help="Skip finished lines")

    parser_compose = subparsers.add_parser("compose", help="Preview a parent with its children")
    parser_compose.add_argument("parent", help="Parent note ID")

    parser_date = subparsers.add_parser("date", help="Preview one day of activity")
    parser_date.add_argument("date", help="Day as YYYY-MM-DD")

    parser_browse = subparsers.add_parser("browse", help="Interactive line-driven browser")
    parser_browse.add_argument("query", nargs="?", default="", help="Initial search")

    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument("--host", default=None, help="Host to bind to (default: 127.0.0.1)")
    parser_serve.add_argument("--port", type=int, default=None, help="Port to bind to (default: 8765)")
    parser_serve.add_argument(
        "--token", default=None, help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument("--cors", action="store_true", help="Enable CORS (default: false)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    rt = build_runtime(vault_path=args.vault, config_path=args.config)

    handlers = {
        "show": cmd_show,
        "search": cmd_search,
        "pick": cmd_pick,
        "compose": cmd_compose,
        "date": cmd_date,
        "browse": cmd_browse,
        "serve": cmd_serve,
    }

    handler = handlers.get(args.cmd)
    if handler:
        try:
            exit_code = handler(args, rt)
            sys.exit(exit_code)
        except Exception as e:
            logger.debug("command failed", exc_info=True)
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
