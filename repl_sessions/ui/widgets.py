"""UI widgets for the REPL Sessions TUI."""

from typing import Optional

from rich.text import Text
from textual.containers import ScrollableContainer
from textual.widgets import Static

from ..implementations import get_implementation
from ..models import Retort
from ..panel import DebugPanel
from ..session import Session


def truncate(text: str, max_len: int = 100) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def session_label(session: Session) -> Text:
    implementation = get_implementation(session.identity)
    color = implementation.color if implementation else "white"
    name = implementation.display_name if implementation else session.identity
    text = Text()
    text.append(name, style=f"bold {color}")
    if session.module:
        text.append(f" {session.module}", style="dim")
    return text


class SessionBar(Static):
    """One-line summary of live sessions, current one highlighted."""

    def show_sessions(self, sessions: list[Session], current: Optional[Session]):
        text = Text()
        if not sessions:
            text.append("No live sessions", style="dim")
            text.append(" | ,switch IMPL to start one", style="dim")
            self.update(text)
            return

        for session in sessions:
            marker = "●" if session is current else "○"
            text.append(f"[{marker}", style="bold" if session is current else "dim")
            text.append_text(session_label(session))
            text.append("] ", style="bold" if session is current else "dim")

        text.append(f" | {len(sessions)} live", style="dim")
        self.update(text)


def build_retort_text(retort: Retort) -> Text:
    """Build the transcript entry for one retort."""
    text = Text()
    if retort.output:
        text.append(retort.output.rstrip("\n") + "\n")

    err = retort.error
    if err is not None:
        text.append(f"{err.kind}", style="bold red")
        if err.message:
            text.append(f": {truncate(err.message, 200)}", style="red")
    elif retort.result is not None:
        text.append("=> ", style="dim")
        text.append(retort.result, style="green")
    else:
        text.append("; no value", style="dim")
    return text


def build_input_text(prompt: str, code: str) -> Text:
    text = Text()
    text.append(prompt, style="bold cyan")
    text.append(code)
    return text


class DebugPanelView(ScrollableContainer, can_focus=True):
    """Scrollable view of the shared debug panel."""

    def update(self, text: Text) -> None:
        """Update the content (replaces all content)."""
        for child in list(self.children):
            child.remove()
        self.mount(Static(text, markup=False))

    def show_panel(self, panel: DebugPanel):
        """Render the panel's current contents."""
        text = panel.render()
        if panel.images:
            text.append("\n━━━ Images ━━━\n", style="bold magenta")
            for path in panel.images:
                text.append(f"  {path}\n", style="magenta")
        if not text.plain.strip():
            text = Text("Nothing to show", style="dim")
        self.update(text)
        self.scroll_home(animate=False)
