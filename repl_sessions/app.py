"""REPL Sessions TUI Application."""

import logging
import re
import shlex
from typing import Optional

from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.suggester import SuggestFromList
from textual.widgets import Footer, Header, Input, RichLog, Static

from .config import Config
from .dispatcher import RetortDispatcher
from .evaluator import ReplEvaluator
from .exceptions import ReplSessionsError
from .models import Err
from .orchestrator import Orchestrator
from .panel import DebugPanel
from .registry import Context, SessionRegistry
from .session import Session
from .ui import APP_CSS, DebugPanelView, SessionBar, build_input_text, build_retort_text

logger = logging.getLogger(__name__)

ERROR_LOCATION = re.compile(r"(?P<file>[^\s:]+\.\w+):(?P<line>\d+)(?::(?P<column>\d+))?")

HELP_TEXT = """Meta-commands:
  ,load FILE        load a file
  ,compile FILE     compile a file
  ,expand CODE      expand a macro form one step
  ,expand-all CODE  expand a macro form fully
  ,switch IMPL      switch to (or start) a session
  ,reset            discard pending state and wait for a prompt
  ,quit             quit the current session
  ,history          show input history
  ,help             show this text"""


class ReplSessionsApp(App):
    """TUI for evaluating code in live interpreter sessions."""

    CSS = APP_CSS

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit"),
        Binding("ctrl+d", "toggle_panel", "Debug panel"),
        Binding("ctrl+r", "reset_session", "Reset"),
        Binding("ctrl+n", "next_session", "Next session"),
        Binding("escape", "focus_input", "Input", show=False),
    ]

    def __init__(self, config: Optional[Config] = None, identity: Optional[str] = None):
        super().__init__()
        self.config = config or Config()
        self.initial_identity = identity or self.config.default_implementation
        self._shutting_down = False

        self.context = Context("tui", identity=self.initial_identity)
        self.registry = SessionRegistry(self.config)
        self.registry.add_termination_listener(self._on_session_terminated)
        self.panel = DebugPanel()
        self.dispatcher = RetortDispatcher(
            self.config,
            self.registry,
            self.panel,
            focus_session=self._focus_session,
            enter_debugger=self._enter_debugger,
            jump_to_error=self._jump_to_error,
            show_status=self._show_status,
        )
        self.orchestrator = Orchestrator(
            self.registry,
            ReplEvaluator(self.registry),
            self.dispatcher,
            context=self.context,
            show_status=self._show_status,
        )

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            with Vertical(id="repl-container"):
                yield SessionBar("", id="session-bar")
                yield RichLog(id="transcript", wrap=True, markup=False)
                yield Input(placeholder="Scheme code, or ,help", id="repl-input")
            with Vertical(id="panel-container", classes="hidden"):
                yield Static("Debug", classes="panel-header")
                yield DebugPanelView(id="debug-panel")
        yield Footer()

    def on_mount(self):
        self.title = "REPL Sessions"
        self.query_one("#repl-input", Input).focus()
        self._update_session_bar()
        if self.initial_identity:
            self._start_session(self.initial_identity)
        else:
            self._log(Text("No implementation selected. Use ,switch IMPL (,help for more).", style="dim"))

    def on_unmount(self):
        self._shutting_down = True
        self.registry.shutdown()

    # -- thread-safe UI hooks --

    def _log(self, text: Text):
        self.query_one("#transcript", RichLog).write(text)

    def _show_status(self, message: str):
        self.call_from_thread(self.notify, truncate_status(message))

    def _focus_session(self, session: Session):
        self.registry.rebind(self.context, session.identity)
        self.context.session = session
        self.call_from_thread(self.action_focus_input)

    def _enter_debugger(self, session: Session, err: Err, hint: str):
        text = Text()
        text.append("Debugger: ", style="bold yellow")
        text.append(err.message or err.kind)
        if hint:
            text.append(f"\n{hint}", style="dim")
        self.call_from_thread(self._log, text)

    def _jump_to_error(self, err: Err):
        match = ERROR_LOCATION.search(err.output or err.message)
        if match is None:
            raise ValueError("No error location in output")
        self.call_from_thread(
            self.notify, f"{match.group('file')} line {match.group('line')}", title="First error"
        )

    def _on_session_terminated(self, session: Session):
        if self._shutting_down:
            return
        text = Text(f"{session.identity} session ended ({session.exit_reason or 'killed'})", style="yellow")
        self.call_from_thread(self._log, text)
        self.call_from_thread(self._update_session_bar)

    # -- display --

    def _update_session_bar(self):
        current = self.registry.current(self.context)
        self.query_one("#session-bar", SessionBar).show_sessions(self.registry.sessions(), current)
        if current and self.config.enable_autocomplete_on_start:
            self.query_one("#repl-input", Input).suggester = SuggestFromList(
                current.history, case_sensitive=True
            )

    def _refresh_panel(self):
        container = self.query_one("#panel-container")
        view = self.query_one("#debug-panel", DebugPanelView)
        view.show_panel(self.panel)
        if self.panel.visible:
            container.remove_class("hidden")
            if self.panel.focused:
                view.focus()

    # -- workers --

    @work(thread=True)
    def _start_session(self, identity: str):
        self.call_from_thread(self.notify, f"Starting {identity}...")
        try:
            session = self.registry.start(identity)
        except ReplSessionsError as e:
            logger.warning(f"Could not start {identity}: {e}")
            self.call_from_thread(self.notify, str(e), title="Startup failed", severity="error")
            return
        self.registry.rebind(self.context, identity)
        self.context.session = session
        self.call_from_thread(self._log, Text(f"{session.identity} ready (pid {session.pid})", style="green"))
        self.call_from_thread(self._update_session_bar)

    @work(thread=True)
    def _run_request(self, command: str, argument: str):
        orchestrator = self.orchestrator
        try:
            if command == "eval":
                retort = orchestrator.evaluate(argument)
            elif command == "load":
                retort = orchestrator.load_file(argument or None)
            elif command == "compile":
                retort = orchestrator.compile_file(argument or None)
            elif command == "expand":
                retort = orchestrator.macro_expand(argument)
            elif command == "expand-all":
                retort = orchestrator.macro_expand(argument, expand_all=True)
            else:
                return
        except ReplSessionsError as e:
            self.call_from_thread(self.notify, str(e), severity="error")
            return
        self.call_from_thread(self._log, build_retort_text(retort))
        self.call_from_thread(self._refresh_panel)
        self.call_from_thread(self._update_session_bar)

    @work(thread=True)
    def _reset_session(self):
        session = self.registry.current(self.context)
        if session is None:
            self.call_from_thread(self.notify, "No live session", severity="warning")
            return
        try:
            session.reset(self.config.handshake_timeout)
        except ReplSessionsError as e:
            self.call_from_thread(self.notify, f"Reset failed: {e}", severity="error")
            return
        self.call_from_thread(self.notify, f"{session.identity} reset")

    @work(thread=True)
    def _quit_session(self):
        session = self.registry.current(self.context)
        if session is None:
            return
        session.quit()
        self.registry.terminate(session)

    # -- input --

    @on(Input.Submitted, "#repl-input")
    def on_input_submitted(self, event: Input.Submitted):
        line = event.value
        event.input.value = ""
        if not line.strip():
            return

        session = self.registry.current(self.context)
        prompt = session.prompt if session else "> "
        self._log(build_input_text(prompt, line))

        if not line.startswith(","):
            self._run_request("eval", line)
            return

        command, _, argument = line[1:].partition(" ")
        argument = argument.strip()
        if command in ("load", "compile"):
            parts = shlex.split(argument) if argument else []
            self._run_request(command, parts[0] if parts else "")
        elif command in ("expand", "expand-all"):
            self._run_request(command, argument)
        elif command == "switch":
            self._switch_to(argument)
        elif command == "reset":
            self._reset_session()
        elif command == "quit":
            self._quit_session()
        elif command == "history":
            history = session.history if session else []
            self._log(Text("\n".join(history[-20:]) or "(no history)", style="dim"))
        elif command == "help":
            self._log(Text(HELP_TEXT, style="dim"))
        else:
            self.notify(f"Unknown command ,{command}", severity="warning")

    def _switch_to(self, identity: str):
        if not identity:
            self.notify("Usage: ,switch IMPL", severity="warning")
            return
        self.registry.rebind(self.context, identity)
        if self.registry.lookup(identity) is None:
            self._start_session(identity)
        self._update_session_bar()

    # -- actions --

    def action_focus_input(self):
        self.query_one("#repl-input", Input).focus()

    def action_toggle_panel(self):
        container = self.query_one("#panel-container")
        if container.has_class("hidden"):
            container.remove_class("hidden")
            self.query_one("#debug-panel", DebugPanelView).focus()
        else:
            container.add_class("hidden")
            self.panel.hide()
            self.action_focus_input()

    def action_reset_session(self):
        self._reset_session()

    def action_next_session(self):
        """Cycle the current context through active implementations."""
        identities = sorted(self.registry.active_identities())
        if not identities:
            return
        if self.context.identity in identities:
            index = (identities.index(self.context.identity) + 1) % len(identities)
        else:
            index = 0
        self.registry.rebind(self.context, identities[index])
        self._update_session_bar()


def truncate_status(message: str, max_len: int = 200) -> str:
    message = message.replace("\n", " ").strip()
    if len(message) <= max_len:
        return message
    return message[:max_len - 3] + "..."
