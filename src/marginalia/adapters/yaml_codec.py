import io
import logging
from typing import Any

import yaml

logger = logging.getLogger(__name__)

FM_DELIM = "---"


def content_start(lines: list[str]) -> int:
    """
    Index of the first content line after a frontmatter block.

    A block exists when the first line starts with ``---`` and a later line
    is exactly ``---`` (surrounding whitespace ignored). Both the store and the
    renderer count content lines from here, so they must share this rule.
    """
    if not lines or not lines[0].startswith(FM_DELIM):
        return 0
    for i in range(1, len(lines)):
        if lines[i].strip() == FM_DELIM:
            return i + 1
    return 0


class YamlFrontmatter:
    def split(self, text: str) -> tuple[str, str]:
        """Return (raw frontmatter yaml, body) for a note file."""
        lines = text.split("\n")
        start = content_start(lines)
        if start == 0:
            return "", text
        return "\n".join(lines[1 : start - 1]), "\n".join(lines[start:])

    def decode(self, text: str) -> tuple[dict[str, Any], str]:
        fm, body = self.split(text)
        if not fm:
            return {}, body
        try:
            meta = yaml.safe_load(io.StringIO(fm)) or {}
        except yaml.YAMLError as e:
            logger.warning("Ignoring unreadable frontmatter: %s", e)
            return {}, body
        if not isinstance(meta, dict):
            return {}, body
        return meta, body

    def encode(self, meta: dict[str, Any]) -> str:
        if not meta:
            return ""
        buf = io.StringIO()
        yaml.safe_dump(meta, buf, sort_keys=False, allow_unicode=True)
        return f"{FM_DELIM}\n{buf.getvalue()}{FM_DELIM}\n"
