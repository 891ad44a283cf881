"""Requests sent to interpreter sessions and the retorts they produce."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

# Error kinds with a meaning of their own. Anything else is an evaluation
# error tagged by the interpreter.
DEBUGGER_ENTRY = "interactive-debugger"
TRANSPORT_ERROR = "transport-error"
INTERRUPTED = "interrupted"


class RequestKind(str, Enum):
    EVALUATE = "evaluate"
    COMPILE = "compile"
    COMPILE_FILE = "compile-file"
    LOAD_FILE = "load-file"
    MACRO_EXPAND = "macro-expand"


@dataclass(frozen=True)
class Request:
    """One unit of work for an interpreter session."""

    kind: RequestKind
    payload: str  # code text, or a file path for the *_FILE kinds
    expand_all: bool = False  # only meaningful for MACRO_EXPAND


@dataclass(frozen=True)
class Ok:
    """A successful evaluation."""

    result: Optional[str] = None
    output: str = ""

    @property
    def error(self) -> None:
        return None

    @property
    def is_debugger_entry(self) -> bool:
        return False


@dataclass(frozen=True)
class Err:
    """A failed evaluation, transport failure or debugger entry."""

    kind: str
    message: str = ""
    output: str = ""
    module: Optional[str] = None

    @property
    def error(self) -> "Err":
        return self

    @property
    def result(self) -> None:
        return None

    @property
    def is_debugger_entry(self) -> bool:
        return self.kind == DEBUGGER_ENTRY

    @property
    def is_transport_error(self) -> bool:
        return self.kind == TRANSPORT_ERROR


Retort = Union[Ok, Err]
