"""Driving requests from the user through a session and the dispatcher."""

import logging
from pathlib import Path
from typing import Callable, Optional

from .dispatcher import RetortDispatcher
from .evaluator import EvaluatorGateway
from .exceptions import NoFileError, NoSessionError
from .models import Request, RequestKind, Retort
from .registry import Context, SessionRegistry
from .session import Session

logger = logging.getLogger(__name__)


class Orchestrator:
    """Thin driver from user actions to retorts on the debug panel.

    Hooks, all optional:
      save_buffer(path)    persist an unsaved editor buffer before loading
      select_path()        ask the user for a file when none is given
      show_status(msg)     transient status message
    """

    def __init__(
        self,
        registry: SessionRegistry,
        gateway: EvaluatorGateway,
        dispatcher: RetortDispatcher,
        context: Optional[Context] = None,
        save_buffer: Optional[Callable[[Path], None]] = None,
        select_path: Optional[Callable[[], Optional[Path]]] = None,
        show_status: Optional[Callable[[str], None]] = None,
    ):
        self.registry = registry
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.context = context or Context("default")
        self.save_buffer = save_buffer
        self.select_path = select_path
        self.show_status = show_status

    def _status(self, message: str):
        if self.show_status:
            self.show_status(message)
        else:
            logger.info(message)

    def session(self, context: Optional[Context] = None) -> Session:
        context = context or self.context
        session = self.registry.current(context)
        if session is None:
            wanted = context.identity or self.registry.infer_identity() or "any implementation"
            raise NoSessionError(
                f"No live session for {wanted}",
                "Start one first, e.g. `repl-sessions repl guile'.",
            )
        return session

    # -- code --

    def _run_code(self, kind: RequestKind, code: str, context, expand_all=False) -> Retort:
        session = self.session(context)
        session.add_history(code)
        retort = self.gateway.send(session, Request(kind, code, expand_all))
        self.dispatcher.dispatch(retort, input_text=code, session=session)
        if retort.error is None and retort.result is not None:
            self._status(f"=> {retort.result}")
        return retort

    def evaluate(self, code: str, context: Optional[Context] = None) -> Retort:
        return self._run_code(RequestKind.EVALUATE, code, context)

    def compile(self, code: str, context: Optional[Context] = None) -> Retort:
        return self._run_code(RequestKind.COMPILE, code, context)

    def macro_expand(self, code: str, expand_all: bool = False, context: Optional[Context] = None) -> Retort:
        return self._run_code(RequestKind.MACRO_EXPAND, code, context, expand_all)

    # -- files --

    def _resolve_path(self, path) -> Path:
        if path is None and self.select_path:
            path = self.select_path()
        if path is None:
            raise NoFileError("No file given", "Pass the path of the file to send.")
        path = Path(path).expanduser().resolve()
        if not path.is_file():
            raise NoFileError(f"{path} not found", "Check the path and try again.")
        return path

    def compile_or_load(self, path, compile: bool, context: Optional[Context] = None) -> Retort:
        """Compile or load a file in the context's session."""
        path = self._resolve_path(path)
        if self.save_buffer:
            self.save_buffer(path)

        session = self.session(context)
        kind = RequestKind.COMPILE_FILE if compile else RequestKind.LOAD_FILE
        title = f"{'Compiling' if compile else 'Loading'} {path}"
        logger.info(title)

        retort = self.gateway.send(session, Request(kind, str(path)))
        self.dispatcher.dispatch(retort, input_text=title, session=session)
        if retort.error is None:
            self._status(retort.result or "Done")
        return retort

    def compile_file(self, path=None, context: Optional[Context] = None) -> Retort:
        return self.compile_or_load(path, True, context)

    def load_file(self, path=None, context: Optional[Context] = None) -> Retort:
        return self.compile_or_load(path, False, context)
