"""Shared fixtures: a fake implementation backed by tests/fixtures/fake_repl.py."""

import sys
import time
from pathlib import Path

import pytest

from repl_sessions.config import Config
from repl_sessions.implementations import register_implementation
from repl_sessions.implementations.base import Implementation, scheme_string
from repl_sessions.panel import DebugPanel
from repl_sessions.registry import SessionRegistry

FAKE_REPL = Path(__file__).parent / "fixtures" / "fake_repl.py"


@register_implementation
class FakeImplementation(Implementation):
    name = "fake"
    display_name = "Fake Scheme"
    color = "blue"

    binary = sys.executable
    arguments = ("-u", str(FAKE_REPL))

    prompt_pattern = r"fake@\((?P<module>[^)]*)\)(?: \[\d+\])?> "
    debugger_prompt_pattern = r"\[(?P<level>\d+)\]> $"
    error_pattern = r"^Error: \((?P<kind>[^)]*)\) (?P<message>.*)$"

    def load_file_form(self, path: str) -> str:
        return f"(load {scheme_string(path)})"

    def compile_file_form(self, path: str) -> str:
        return f"(compile-file {scheme_string(path)})"

    def macro_expand_form(self, code: str, expand_all: bool) -> str:
        return f"(expand {code})" if expand_all else f"(expand-once {code})"


@register_implementation
class OtherFakeImplementation(FakeImplementation):
    name = "fake-other"
    display_name = "Other Fake Scheme"


def _wait_until(predicate, timeout=5.0):
    """Poll predicate until it is true or timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def config(tmp_path):
    return Config(history_file_path=tmp_path / "history", handshake_timeout=10)


@pytest.fixture
def registry(config):
    registry = SessionRegistry(config)
    yield registry
    registry.shutdown()


@pytest.fixture(autouse=True)
def fresh_panel():
    """Each test gets its own debug panel singleton."""
    DebugPanel.discard()
    yield
    DebugPanel.discard()


@pytest.fixture
def fake_args():
    """Build arguments that run the fake REPL with extra flags."""
    def build(*flags):
        return ("-u", str(FAKE_REPL), *flags)
    return build
