"""FastAPI application driving one preview session over local JSON."""

import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ..core.model import PickOptions
from ..preview.session import PreviewSession


class SearchRequest(BaseModel):
    query: str


class PickRequest(BaseModel):
    tags: list[str] = []
    any_tag: bool = False
    todo: bool = False
    date: str | None = None


class ComposeRequest(BaseModel):
    parent_id: str


class DateRequest(BaseModel):
    date: str


class TagRequest(BaseModel):
    tag: str


class LineDateRequest(BaseModel):
    date: str


class ClickRequest(BaseModel):
    line: int
    col: int = 0


def _actions(session: PreviewSession) -> dict[str, Any]:
    return {
        "move_down": session.move_down,
        "move_up": session.move_up,
        "card_down": session.card_down,
        "card_up": session.card_up,
        "next_header": session.next_header,
        "prev_header": session.prev_header,
        "next_section": session.next_section,
        "prev_section": session.prev_section,
        "scroll_down": session.scroll_down,
        "scroll_up": session.scroll_up,
        "back": session.nav_back,
        "forward": session.nav_forward,
        "next_link": session.highlight_next_link,
        "prev_link": session.highlight_prev_link,
        "open_link": session.open_link,
        "enter": session.preview_enter,
        "toggle_todo": session.toggle_todo,
        "append_done": session.append_done,
        "delete_card": session.delete_card,
        "move_card_up": lambda: session.move_card("up"),
        "move_card_down": lambda: session.move_card("down"),
        "merge_down": lambda: session.merge_card("down"),
        "merge_up": lambda: session.merge_card("up"),
        "order_cards": session.order_cards,
        "toggle_frontmatter": session.toggle_frontmatter,
        "toggle_title": session.toggle_title,
        "toggle_global_tags": session.toggle_global_tags,
        "toggle_markdown": session.toggle_markdown,
        "reload": session.reload_content,
    }


def create_app(
    runtime: Any,
    token: str | None = None,
    enable_cors: bool = False,
    width: int | None = None,
) -> FastAPI:
    """
    Create FastAPI application with one preview session.

    Args:
        runtime: Runtime instance with store, renderer and config
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware
        width: Preview width (defaults to the configured width)

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="Marginalia API",
        description="Local JSON API for a marginalia preview session",
        version="0.1.0",
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    session = runtime.new_session(width=width)
    app.state.session = session
    actions = _actions(session)

    @app.get("/health")  # type: ignore[misc]
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/preview")  # type: ignore[misc]
    async def preview(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Current preview: lines with provenance, card ranges, cursor and links."""
        return session.describe()

    @app.post("/preview/search")  # type: ignore[misc]
    async def search(req: SearchRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        session.search(req.query)
        return session.describe()

    @app.post("/preview/pick")  # type: ignore[misc]
    async def pick(req: PickRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        date = f"@{req.date.lstrip('@')}" if req.date else None
        session.pick(req.tags, PickOptions(any_tag=req.any_tag, todo=req.todo, date=date))
        return session.describe()

    @app.post("/preview/compose")  # type: ignore[misc]
    async def compose(req: ComposeRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        if not session.show_compose(req.parent_id):
            raise HTTPException(status_code=404, detail=session.status[-1] if session.status else "Not found")
        return session.describe()

    @app.post("/preview/date")  # type: ignore[misc]
    async def date_preview(req: DateRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        if not session.load_date_preview(req.date):
            raise HTTPException(status_code=400, detail=session.status[-1] if session.status else "Bad date")
        return session.describe()

    @app.post("/preview/open/{note_id}")  # type: ignore[misc]
    async def open_note(note_id: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        if not session.open_note(note_id):
            raise HTTPException(status_code=404, detail=f"Note {note_id} not found")
        return session.describe()

    @app.post("/preview/actions/{action}")  # type: ignore[misc]
    async def run_action(action: str, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Run one controller operation by name."""
        handler = actions.get(action)
        if handler is None:
            raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
        handler()
        return session.describe()

    @app.post("/preview/click")  # type: ignore[misc]
    async def click(req: ClickRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        session.click(req.line, req.col)
        return session.describe()

    @app.post("/preview/lines/tag")  # type: ignore[misc]
    async def toggle_tag(req: TagRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        session.toggle_inline_tag(req.tag)
        return session.describe()

    @app.post("/preview/lines/date")  # type: ignore[misc]
    async def toggle_date(req: LineDateRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        session.toggle_inline_date(req.date)
        return session.describe()

    @app.get("/preview/target")  # type: ignore[misc]
    async def target(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Source line under the cursor."""
        t = session.resolve_target()
        if t is None:
            return {"target": None}
        return {"target": {"note_id": t.note_id, "line_num": t.line_num, "path": t.path}}

    @app.get("/preview/history")  # type: ignore[misc]
    async def history(auth: None = Depends(verify_token)) -> list[dict[str, Any]]:
        return [
            {"index": item.index, "title": item.title, "variant": item.variant_key, "current": item.current}
            for item in session.show_history()
        ]

    @app.post("/preview/history/{index}")  # type: ignore[misc]
    async def select_history(index: int, auth: None = Depends(verify_token)) -> dict[str, Any]:
        session.select_history(index)
        return session.describe()

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
