"""GNU Guile implementation."""

import re
from typing import Optional

from ..models import Err
from . import register_implementation
from .base import Implementation, scheme_string, split_value

VALUE_LINE = re.compile(r"^\$\d+ = (.*)$")
NEW_PROMPT_BANNER = "Entering a new prompt."


@register_implementation
class GuileImplementation(Implementation):
    """Guile's stock REPL, which nests a debugger prompt on every error."""

    name = "guile"
    display_name = "GNU Guile"
    color = "yellow"

    binary = "guile"
    arguments = ("-q", "--no-auto-compile")
    exit_command = ",quit"

    prompt_pattern = r"scheme@\((?P<module>[^)]*)\)(?: \[(?P<level>\d+)\])?> "
    debugger_prompt_pattern = r"\[(?P<level>\d+)\]> $"

    def load_file_form(self, path: str) -> str:
        return f"(load {scheme_string(path)})"

    def compile_file_form(self, path: str) -> str:
        return f"(compile-file {scheme_string(path)})"

    def macro_expand_form(self, code: str, expand_all: bool) -> str:
        # Guile's REPL only expands fully
        return f",expand {code}"

    def parse_value(self, text: str) -> tuple[Optional[str], str]:
        values = []
        output = []
        for line in text.split("\n"):
            match = VALUE_LINE.match(line)
            if match:
                values.append(match.group(1))
            else:
                output.append(line)
        if not values:
            # Only unspecified values, or plain REPL text (e.g. ,expand)
            if any(line.strip() for line in output):
                return split_value("\n".join(output))
            return None, ""
        return "\n".join(values), "\n".join(output).strip("\n")

    def debugger_message(self, text: str) -> str:
        text = text.split(NEW_PROMPT_BANNER)[0]
        return super().debugger_message(text)

    def enter_debugger(self, session, err: Err) -> str:
        return "Type ,bt for a backtrace or ,q to continue."
