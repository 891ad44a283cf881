"""Fallback for interpreters started with an explicit binary and prompt."""

from .base import Implementation, scheme_string


class GenericImplementation(Implementation):
    """An unregistered Scheme-like REPL.

    Not registered: resolve_implementation() builds one when the caller or
    the config supplies both the binary and the prompt.
    """

    def __init__(self, identity: str, binary: str, prompt_pattern: str):
        self.name = identity
        self.display_name = identity
        self.binary = binary
        self.prompt_pattern = prompt_pattern

    def load_file_form(self, path: str) -> str:
        return f"(load {scheme_string(path)})"

    def compile_file_form(self, path: str) -> str:
        return f"(load {scheme_string(path)})"

    def macro_expand_form(self, code: str, expand_all: bool) -> str:
        return f"(expand '{code})"
