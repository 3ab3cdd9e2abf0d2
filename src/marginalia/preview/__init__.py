"""Preview navigation and source provenance for rendered note cards."""

from .session import HistoryItem, PreviewSession
from .state import NavEntry, PreviewDisplayState, PreviewNavState, SharedNavHistory
from .variants import PreviewContexts

__all__ = [
    "HistoryItem",
    "NavEntry",
    "PreviewContexts",
    "PreviewDisplayState",
    "PreviewNavState",
    "PreviewSession",
    "SharedNavHistory",
]
