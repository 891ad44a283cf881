"""Tests for the request orchestrator."""

import pytest

from repl_sessions.dispatcher import RetortDispatcher
from repl_sessions.evaluator import EvaluatorGateway, ReplEvaluator
from repl_sessions.exceptions import NoFileError, NoSessionError
from repl_sessions.models import Err, Ok, RequestKind
from repl_sessions.orchestrator import Orchestrator
from repl_sessions.panel import DebugPanel
from repl_sessions.registry import Context


class RecordingGateway(EvaluatorGateway):
    """Answers every request with a canned retort."""

    def __init__(self, retort=None):
        self.retort = retort or Ok()
        self.requests = []

    def send(self, session, request):
        self.requests.append((session, request))
        return self.retort


@pytest.fixture
def statuses():
    return []


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "hello.scm"
    path.write_text('(display "hello")\n')
    return path.resolve()


def make_orchestrator(registry, gateway, statuses, **hooks):
    return Orchestrator(
        registry,
        gateway,
        RetortDispatcher(registry.config, registry),
        show_status=statuses.append,
        **hooks,
    )


class TestCode:
    def test_evaluate_end_to_end(self, registry, statuses):
        session = registry.start("fake")
        orchestrator = make_orchestrator(registry, ReplEvaluator(registry), statuses)

        retort = orchestrator.evaluate("(+ 1 2)")

        assert retort == Ok(result="(+ 1 2)")
        assert statuses == ["=> (+ 1 2)"]
        assert session.history == ["(+ 1 2)"]
        assert "(+ 1 2)" in DebugPanel().contents

    def test_error_shows_panel(self, registry, statuses):
        registry.start("fake")
        orchestrator = make_orchestrator(registry, ReplEvaluator(registry), statuses)

        retort = orchestrator.evaluate("(error unbound-variable foo)")

        assert retort.kind == "unbound-variable"
        assert statuses == []
        assert DebugPanel().visible

    def test_compile_and_expand_requests(self, registry, statuses):
        session = registry.start("fake")
        gateway = RecordingGateway(Ok(result="done"))
        orchestrator = make_orchestrator(registry, gateway, statuses)

        orchestrator.compile("(define x 1)")
        orchestrator.macro_expand("(when a b)", expand_all=True)

        kinds = [(request.kind, request.expand_all) for _, request in gateway.requests]
        assert kinds == [(RequestKind.COMPILE, False), (RequestKind.MACRO_EXPAND, True)]
        assert all(s is session for s, _ in gateway.requests)

    def test_no_session(self, registry, statuses):
        orchestrator = make_orchestrator(registry, RecordingGateway(), statuses)
        with pytest.raises(NoSessionError):
            orchestrator.evaluate("(+ 1 2)")

    def test_context_picks_session(self, registry, statuses):
        registry.start("fake")
        other = registry.start("fake-other")
        gateway = RecordingGateway()
        orchestrator = make_orchestrator(registry, gateway, statuses)

        orchestrator.evaluate("(f)", context=Context("buffer", identity="fake-other"))
        assert gateway.requests[0][0] is other


class TestFiles:
    def test_load_file(self, registry, statuses, source_file):
        registry.start("fake")
        orchestrator = make_orchestrator(registry, ReplEvaluator(registry), statuses)

        retort = orchestrator.load_file(source_file)

        assert retort == Ok(result=f'; loaded "{source_file}"')
        assert statuses == [f'; loaded "{source_file}"']
        assert DebugPanel().contents.startswith(f"Loading {source_file}\n")

    def test_compile_file_title(self, registry, statuses, source_file):
        registry.start("fake")
        gateway = RecordingGateway(Ok())
        orchestrator = make_orchestrator(registry, gateway, statuses)

        orchestrator.compile_file(source_file)

        request = gateway.requests[0][1]
        assert request.kind == RequestKind.COMPILE_FILE
        assert request.payload == str(source_file)
        assert statuses == ["Done"]
        assert DebugPanel().contents.startswith(f"Compiling {source_file}")

    def test_failed_load_has_no_status(self, registry, statuses, source_file):
        registry.start("fake")
        orchestrator = make_orchestrator(registry, RecordingGateway(Err("read", "bad syntax")), statuses)

        orchestrator.load_file(source_file)

        assert statuses == []
        assert DebugPanel().visible

    def test_save_buffer_hook(self, registry, statuses, source_file):
        registry.start("fake")
        saved = []
        orchestrator = make_orchestrator(registry, RecordingGateway(), statuses, save_buffer=saved.append)

        orchestrator.load_file(source_file)
        assert saved == [source_file.resolve()]

    def test_select_path_hook(self, registry, statuses, source_file):
        registry.start("fake")
        gateway = RecordingGateway()
        orchestrator = make_orchestrator(registry, gateway, statuses, select_path=lambda: source_file)

        orchestrator.load_file()
        assert gateway.requests[0][1].payload == str(source_file.resolve())

    def test_no_path(self, registry, statuses):
        registry.start("fake")
        orchestrator = make_orchestrator(registry, RecordingGateway(), statuses)
        with pytest.raises(NoFileError):
            orchestrator.load_file()

    def test_missing_file(self, registry, statuses, tmp_path):
        registry.start("fake")
        orchestrator = make_orchestrator(registry, RecordingGateway(), statuses)
        with pytest.raises(NoFileError):
            orchestrator.compile_file(tmp_path / "missing.scm")

    def test_directory_is_not_a_file(self, registry, statuses, tmp_path):
        registry.start("fake")
        orchestrator = make_orchestrator(registry, RecordingGateway(), statuses)
        with pytest.raises(NoFileError):
            orchestrator.load_file(tmp_path)

    def test_no_session_for_file(self, registry, statuses, source_file):
        orchestrator = make_orchestrator(registry, RecordingGateway(), statuses)
        with pytest.raises(NoSessionError):
            orchestrator.load_file(source_file)
