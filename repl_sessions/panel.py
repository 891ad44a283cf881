"""The debug panel: one shared surface for retort output and errors."""

import threading
from typing import Callable, Optional

from rich.text import Text

from .config import AnsiTreatment


def ansi_text(raw: str, treatment: AnsiTreatment, style: str = "") -> Text:
    """Build a Text from raw interpreter output per the ANSI treatment."""
    if treatment == AnsiTreatment.NONE:
        return Text(raw, style=style)
    decoded = Text.from_ansi(raw, style=style)
    # from_ansi works line by line and drops the final newline
    if raw.endswith("\n"):
        decoded.append("\n")
    if treatment == AnsiTreatment.STRIP:
        return Text(decoded.plain, style=style)
    return decoded


class PanelDraft:
    """Contents being assembled for the panel, swapped in whole by DebugPanel.replace()."""

    def __init__(self):
        self.segments = []
        self.images = []

    def insert(self, raw: str, style: str = ""):
        self.segments.append((raw, style))

    def insert_text(self, text: Text):
        """Insert already-rendered text, which skips ANSI treatment."""
        self.segments.append((text, ""))

    def add_image(self, path: str):
        self.images.append(path)


class DebugPanel:
    """Process-wide singleton holding the last rendered retort.

    Contents are kept as raw segments and turned into a rich Text on
    render(), so the ANSI treatment applies to everything inserted. Writers
    build a PanelDraft and replace() the contents in one step; with several
    writers the last replace wins.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._segments = []
                cls._instance.images = []
                cls._instance.ansi_treatment = AnsiTreatment.NONE
                cls._instance.visible = False
                cls._instance.focused = False
                cls._instance._listeners = []
                cls._instance._contents_lock = threading.RLock()
            return cls._instance

    @classmethod
    def discard(cls):
        """Forget the singleton; the next DebugPanel() starts empty."""
        with cls._lock:
            cls._instance = None

    def add_listener(self, listener: Callable[["DebugPanel"], None]):
        """Call listener(panel) after every content or visibility change."""
        self._listeners.append(listener)

    def _changed(self):
        for listener in list(self._listeners):
            listener(self)

    def replace(self, draft: PanelDraft, treatment: Optional[AnsiTreatment] = None):
        """Swap in the draft's segments and images, and the treatment if given."""
        with self._contents_lock:
            self._segments = list(draft.segments)
            self.images = list(draft.images)
            if treatment is not None:
                self.ansi_treatment = AnsiTreatment(treatment)
        self._changed()

    def render(self) -> Text:
        with self._contents_lock:
            segments = list(self._segments)
            treatment = self.ansi_treatment
        text = Text()
        for raw, style in segments:
            if isinstance(raw, Text):
                text.append_text(raw)
            else:
                text.append_text(ansi_text(raw, treatment, style))
        return text

    @property
    def contents(self) -> str:
        return self.render().plain

    @property
    def is_empty(self) -> bool:
        with self._contents_lock:
            return not self._segments

    def show(self, focus: bool = False):
        self.visible = True
        self.focused = focus
        self._changed()

    def hide(self):
        self.visible = False
        self.focused = False
        self._changed()
