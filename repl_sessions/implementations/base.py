"""Base class for interpreter implementations."""

import re
import shutil
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from rich.text import Text

from ..models import DEBUGGER_ENTRY, Err, Ok, Request, RequestKind, Retort

if TYPE_CHECKING:
    from ..session import Session


def scheme_string(value: str) -> str:
    """Quote value as a Scheme string literal."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def split_value(text: str) -> tuple[Optional[str], str]:
    """Split REPL text into (value, output): the value is the last line."""
    lines = text.rstrip().split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    if not lines:
        return None, ""
    value = lines[-1].strip() or None
    return value, "\n".join(lines[:-1])


class Implementation(ABC):
    """Abstract base class for interpreter implementations.

    Each Scheme (Guile, Racket, CHICKEN, ...) implements this interface to
    say how its REPL is started, what its prompt looks like and how requests
    and responses map onto REPL text.
    """

    # Implementation identity
    name: str = ""  # unique identifier: "guile", "racket", etc.
    display_name: str = ""  # human-readable: "GNU Guile"
    color: str = ""  # for UI theming

    # Process
    binary: str = ""
    arguments: tuple = ()
    exit_command: str = "(exit)"

    # Prompt regex; a `module' group names the current module, if any.
    prompt_pattern: str = ""
    # Matched against the prompt that ended a response.
    debugger_prompt_pattern: Optional[str] = None
    # Matched (multiline) against response text; `kind' and `message' groups.
    error_pattern: Optional[str] = None

    def is_available(self) -> bool:
        """Check if this implementation's binary is on PATH."""
        return bool(self.binary) and shutil.which(self.binary) is not None

    def command(self, binary: Optional[str] = None, args=None) -> list[str]:
        return [binary or self.binary, *(self.arguments if args is None else args)]

    @abstractmethod
    def load_file_form(self, path: str) -> str:
        """REPL text that loads a source file."""
        ...

    @abstractmethod
    def compile_file_form(self, path: str) -> str:
        """REPL text that compiles a source file."""
        ...

    @abstractmethod
    def macro_expand_form(self, code: str, expand_all: bool) -> str:
        """REPL text that expands the macro form in code."""
        ...

    def compile_form(self, code: str) -> str:
        """REPL text that compiles and evaluates code.

        Default implementation evaluates it; most REPLs compile on the way.
        """
        return code

    def encode_request(self, request: Request) -> str:
        kind = request.kind
        if kind == RequestKind.EVALUATE:
            return request.payload
        if kind == RequestKind.COMPILE:
            return self.compile_form(request.payload)
        if kind == RequestKind.COMPILE_FILE:
            return self.compile_file_form(request.payload)
        if kind == RequestKind.LOAD_FILE:
            return self.load_file_form(request.payload)
        if kind == RequestKind.MACRO_EXPAND:
            return self.macro_expand_form(request.payload, request.expand_all)
        raise ValueError(f"Unknown request kind: {kind}")

    def module_from_prompt(self, prompt: str) -> Optional[str]:
        match = re.search(self.prompt_pattern, prompt)
        if match and "module" in match.groupdict():
            return match.group("module") or None
        return None

    def debugger_level(self, prompt: str) -> int:
        """Debugger nesting depth shown by prompt; 0 outside the debugger.

        Taken from the `level' group of debugger_prompt_pattern, or 1 when
        the pattern matches without one.
        """
        if not self.debugger_prompt_pattern or not prompt:
            return 0
        match = re.search(self.debugger_prompt_pattern, prompt)
        if match is None:
            return 0
        level = match.groupdict().get("level")
        return int(level) if level else 1

    def entered_debugger(self, prompt: str, previous_prompt: str = "") -> bool:
        """True when prompt is a deeper debugger level than previous_prompt."""
        return self.debugger_level(prompt) > self.debugger_level(previous_prompt)

    def debugger_message(self, text: str) -> str:
        lines = [line for line in text.strip().split("\n") if line.strip()]
        return lines[-1] if lines else ""

    def parse_value(self, text: str) -> tuple[Optional[str], str]:
        return split_value(text)

    def decode_response(self, text: str, prompt: str, previous_prompt: str = "") -> Retort:
        """Turn the text printed before prompt into a Retort.

        previous_prompt is the prompt the request was sent at; staying at
        the same debugger level is an ordinary answer.
        """
        module = self.module_from_prompt(prompt)
        text = text.strip("\n")

        if self.entered_debugger(prompt, previous_prompt):
            return Err(
                kind=DEBUGGER_ENTRY,
                message=self.debugger_message(text),
                output=text,
                module=module,
            )

        if self.error_pattern:
            match = re.search(self.error_pattern, text, re.MULTILINE)
            if match:
                groups = match.groupdict()
                return Err(
                    kind=groups.get("kind") or "error",
                    message=(groups.get("message") or "").strip(),
                    output=text,
                    module=module,
                )

        value, output = self.parse_value(text)
        return Ok(result=value, output=output)

    def format_error(self, module: Optional[str], kind: str, message: str, output: str) -> Text | None:
        """Render an error block for the debug panel.

        Default implementation declines, leaving the generic rendering.
        """
        return None

    def enter_debugger(self, session: "Session", err: Err) -> str:
        """Called when the interpreter drops into its debugger.

        Returns a hint for the user; default implementation has none.
        """
        return ""
