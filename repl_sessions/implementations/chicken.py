"""CHICKEN Scheme implementation."""

from . import register_implementation
from .base import Implementation, scheme_string


@register_implementation
class ChickenImplementation(Implementation):
    name = "chicken"
    display_name = "CHICKEN Scheme"
    color = "green"

    binary = "csi"
    arguments = ("-q", "-i")

    prompt_pattern = r"#;(?P<level>\d+)> "
    error_pattern = r"^Error: (?:\((?P<kind>[^)]*)\) )?(?P<message>.*)$"

    def load_file_form(self, path: str) -> str:
        return f"(load {scheme_string(path)})"

    def compile_file_form(self, path: str) -> str:
        # csi has no in-process compile-file
        return f"(load-noisily {scheme_string(path)})"

    def macro_expand_form(self, code: str, expand_all: bool) -> str:
        return f"(expand '{code})"
