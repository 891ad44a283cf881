"""Racket implementation."""

from typing import Optional

from rich.text import Text

from . import register_implementation
from .base import Implementation, scheme_string

ERROR_PHRASES = (
    "contract violation",
    "undefined",
    "arity mismatch",
    "division by zero",
    "bad syntax",
    "unbound identifier",
    "expected",
    "cannot open",
    "cannot reference",
    "no such file",
    "read-syntax",
    "assertion violation",
)


@register_implementation
class RacketImplementation(Implementation):
    """Provider for `racket -i' sessions."""

    name = "racket"
    display_name = "Racket"
    color = "red"

    binary = "racket"
    arguments = ("-i", "-q")

    prompt_pattern = r"(?m)^(?P<module>[^\s>]*)> "
    error_pattern = (
        r"^(?P<kind>[^\s:]+): (?P<message>(?:"
        + "|".join(ERROR_PHRASES)
        + r").*)$"
    )

    def load_file_form(self, path: str) -> str:
        return f"(load {scheme_string(path)})"

    def compile_file_form(self, path: str) -> str:
        return f"((dynamic-require 'compiler/cm 'managed-compile-zo) {scheme_string(path)})"

    def macro_expand_form(self, code: str, expand_all: bool) -> str:
        expander = "expand" if expand_all else "expand-once"
        return f"(syntax->datum ({expander} '{code}))"

    def format_error(self, module: Optional[str], kind: str, message: str, output: str) -> Text | None:
        """Racket errors carry indented field lines and a context block."""
        text = Text()
        if module:
            text.append(f"[{module}] ", style="dim")
        text.append(f"{kind}: ", style="bold red")
        text.append(f"{message}\n")

        in_context = False
        for line in output.split("\n"):
            stripped = line.strip()
            if not stripped or stripped.startswith(f"{kind}: "):
                continue
            if stripped.startswith("context...:"):
                in_context = True
                text.append("context:\n", style="bold")
                continue
            if in_context:
                text.append(f"  {stripped}\n", style="dim")
            elif ":" in stripped:
                field, _, value = stripped.partition(":")
                text.append(f"  {field}:", style="cyan")
                text.append(f"{value}\n")
            else:
                text.append(f"  {stripped}\n")
        return text
