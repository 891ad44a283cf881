"""UI components for REPL Sessions."""

from .widgets import (
    DebugPanelView,
    SessionBar,
    build_input_text,
    build_retort_text,
)
from .styles import APP_CSS

__all__ = [
    "DebugPanelView",
    "SessionBar",
    "build_input_text",
    "build_retort_text",
    "APP_CSS",
]
