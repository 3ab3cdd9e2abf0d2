"""Configuration loader for marginalia.toml."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

CONFIG_NAME = "marginalia.toml"


@dataclass
class VaultConfig:
    """Where the notes live."""
    root: Path


@dataclass
class PreviewConfig:
    """Preview pane defaults."""
    width: int = 80
    height: int = 0
    history_limit: int = 50
    show_frontmatter: bool = False
    show_title: bool = True
    show_global_tags: bool = True
    render_markdown: bool = True


@dataclass
class EditorConfig:
    command: str = "vi"


@dataclass
class ApiConfig:
    token: str | None = None
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class MarginaliaConfig:
    """Complete marginalia configuration."""
    vault: VaultConfig
    preview: PreviewConfig
    editor: EditorConfig
    api: ApiConfig


def load_config(config_path: Path | None = None, vault_path: Path | None = None) -> MarginaliaConfig:
    """
    Load configuration from marginalia.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/marginalia.toml
    3. vault_path/marginalia.toml

    Missing sections and keys fall back to defaults. The editor command
    falls back to $EDITOR, then vi.
    """
    toml_data: dict[str, Any] = {}

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if vault_path:
        search_paths.append(vault_path / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    vault_data = toml_data.get("vault", {})
    vault_config = VaultConfig(
        root=Path(vault_data.get("root", vault_path or Path("./vault"))),
    )

    defaults = PreviewConfig()
    preview_data = toml_data.get("preview", {})
    preview_config = PreviewConfig(
        width=int(preview_data.get("width", defaults.width)),
        height=int(preview_data.get("height", defaults.height)),
        history_limit=max(int(preview_data.get("history_limit", defaults.history_limit)), 1),
        show_frontmatter=bool(preview_data.get("show_frontmatter", defaults.show_frontmatter)),
        show_title=bool(preview_data.get("show_title", defaults.show_title)),
        show_global_tags=bool(preview_data.get("show_global_tags", defaults.show_global_tags)),
        render_markdown=bool(preview_data.get("render_markdown", defaults.render_markdown)),
    )

    editor_data = toml_data.get("editor", {})
    editor_config = EditorConfig(
        command=editor_data.get("command") or os.environ.get("EDITOR") or "vi",
    )

    api_data = toml_data.get("api", {})
    api_config = ApiConfig(
        token=api_data.get("token") or None,
        host=api_data.get("host", "127.0.0.1"),
        port=int(api_data.get("port", 8765)),
    )

    return MarginaliaConfig(
        vault=vault_config,
        preview=preview_config,
        editor=editor_config,
        api=api_config,
    )
