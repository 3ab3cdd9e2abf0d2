"""Runtime wiring helper for the CLI and the API."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.fs_store import FsNoteStore
from .adapters.line_renderer import PlainLineRenderer
from .adapters.yaml_codec import YamlFrontmatter
from .config import MarginaliaConfig, load_config
from .preview.session import PreviewSession
from .preview.state import PreviewDisplayState


@dataclass
class Runtime:
    """Container for all wired components."""
    store: FsNoteStore
    renderer: PlainLineRenderer
    config: MarginaliaConfig

    def new_session(self, width: int | None = None) -> PreviewSession:
        pc = self.config.preview
        display = PreviewDisplayState(
            show_frontmatter=pc.show_frontmatter,
            show_title=pc.show_title,
            show_global_tags=pc.show_global_tags,
            render_markdown=pc.render_markdown,
        )
        return PreviewSession(
            self.store,
            self.renderer,
            width=width or pc.width,
            height=pc.height,
            history_limit=pc.history_limit,
            display=display,
            editor=self.config.editor.command,
        )


def build_runtime(
    vault_path: Path | None = None,
    config_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for a vault."""
    config = load_config(config_path=config_path, vault_path=vault_path)

    if vault_path is None:
        vault_path = config.vault.root

    return Runtime(
        store=FsNoteStore(vault_path, YamlFrontmatter()),
        renderer=PlainLineRenderer(),
        config=config,
    )
