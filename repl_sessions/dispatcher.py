"""Turning retorts into user-visible effects."""

import logging
import re
from enum import Enum
from typing import Callable, Optional

from .config import Config
from .models import Err, Retort
from .panel import DebugPanel, PanelDraft
from .registry import Context, SessionRegistry
from .session import Session

logger = logging.getLogger(__name__)

IMAGE_PATTERN = re.compile(r"#<Image: ([-+.\\/_:0-9a-zA-Z]+)>")


class DispatchOutcome(str, Enum):
    DEBUGGER_HANDOFF = "debugger-handoff"  # the interpreter's debugger took over
    SUPPRESSED = "suppressed"  # rendered, nothing worth showing
    VISIBLE = "visible"
    HIDDEN = "hidden"  # worth showing, but showing is turned off


def line_count(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + 1


class RetortDispatcher:
    """Decides what to show for each retort, and shows it.

    Every retort is handled exactly once. The panel is shared, so the last
    retort rendered is the one left on it.

    Hooks, all optional:
      focus_session(session)          switch to the session's REPL
      enter_debugger(session, err, hint)
      jump_to_error(err)              go to the first error location
      show_status(message)            transient status message
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[SessionRegistry] = None,
        panel: Optional[DebugPanel] = None,
        focus_session: Optional[Callable] = None,
        enter_debugger: Optional[Callable] = None,
        jump_to_error: Optional[Callable] = None,
        show_status: Optional[Callable] = None,
    ):
        self.config = config or Config()
        self.registry = registry
        self._panel = panel
        self.focus_session = focus_session
        self.enter_debugger = enter_debugger
        self.jump_to_error = jump_to_error
        self.show_status = show_status

    @property
    def panel(self) -> DebugPanel:
        if self._panel is None:
            self._panel = DebugPanel()
        return self._panel

    def dispatch(
        self,
        retort: Retort,
        input_text: str = "",
        rendered_result: Optional[str] = None,
        session: Optional[Session] = None,
        context: Optional[Context] = None,
    ) -> DispatchOutcome:
        if session is None and context is not None and self.registry is not None:
            session = self.registry.current(context)

        if retort.is_debugger_entry:
            return self._hand_off(retort, session)

        input_after = self.input_goes_after(input_text)
        draft = self._render(retort, input_text, input_after, rendered_result, session)
        self.panel.replace(draft, self.config.ansi_treatment)
        images = len(draft.images)
        return self._display(retort, images)

    def input_goes_after(self, input_text: str) -> bool:
        if self.config.always_display_input_after:
            return True
        return line_count(input_text) >= self.config.long_input_line_threshold

    def _hand_off(self, err: Err, session: Optional[Session]) -> DispatchOutcome:
        logger.info(f"Debugger entered in {session!r}: {err.message}")
        if session is not None and self.focus_session:
            self.focus_session(session)
        hint = session.implementation.enter_debugger(session, err) if session else ""
        if self.enter_debugger:
            self.enter_debugger(session, err, hint)
        return DispatchOutcome.DEBUGGER_HANDOFF

    def _render(self, retort, input_text, input_after, rendered_result, session) -> PanelDraft:
        draft = PanelDraft()

        if input_text and not input_after:
            draft.insert(input_text.rstrip("\n") + "\n", style="dim")

        result = rendered_result if rendered_result is not None else retort.result
        if result is not None:
            self._insert_result(draft, result)

        err = retort.error
        if err is not None or retort.output:
            formatted = None
            if err is not None and session is not None:
                formatted = session.implementation.format_error(
                    err.module or session.module, err.kind, err.message, retort.output
                )
            if formatted is not None:
                draft.insert_text(formatted)
            else:
                if err is not None:
                    tag = f"{err.kind}: {err.message}" if err.message else err.kind
                    draft.insert(tag + "\n\n", style="bold red")
                if retort.output:
                    draft.insert(retort.output.rstrip("\n") + "\n")

        if input_text and input_after:
            draft.insert("\n" + input_text.rstrip("\n") + "\n", style="dim")

        return draft

    def _insert_result(self, draft: PanelDraft, result: str):
        """Insert the result, pulling out embedded image references."""
        if not self.config.auto_display_images:
            draft.insert(result.rstrip("\n") + "\n")
            return

        position = 0
        for match in IMAGE_PATTERN.finditer(result):
            draft.insert(result[position:match.start()])
            draft.insert(f"[image: {match.group(1)}]", style="magenta")
            draft.add_image(match.group(1))
            position = match.end()
        draft.insert(result[position:].rstrip("\n") + "\n")

    def _display(self, retort: Retort, images: int) -> DispatchOutcome:
        err = retort.error
        if not (images or err is not None or retort.output):
            return DispatchOutcome.SUPPRESSED
        if not self.config.show_panel_on_error:
            return DispatchOutcome.HIDDEN

        self.panel.show(focus=self.config.jump_to_panel_on_error)

        if err is not None and self.config.auto_jump_to_first_error:
            if self.jump_to_error:
                try:
                    self.jump_to_error(err)
                except Exception:
                    logger.warning("Could not jump to the first error", exc_info=True)
            if self.show_status:
                self.show_status(f"=> {retort.output}")

        return DispatchOutcome.VISIBLE
