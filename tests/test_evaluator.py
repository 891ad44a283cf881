"""Tests for the REPL-backed evaluator gateway."""

import threading

from repl_sessions.evaluator import ReplEvaluator
from repl_sessions.models import (
    DEBUGGER_ENTRY,
    INTERRUPTED,
    TRANSPORT_ERROR,
    Err,
    Ok,
    Request,
    RequestKind,
)


def evaluate(code):
    return Request(RequestKind.EVALUATE, code)


class TestReplEvaluator:
    def test_value(self, registry):
        session = registry.start("fake")
        retort = ReplEvaluator(registry).send(session, evaluate("(+ 1 2)"))
        assert retort == Ok(result="(+ 1 2)")

    def test_output_and_value(self, registry):
        session = registry.start("fake")
        retort = ReplEvaluator(registry).send(session, evaluate('(display "hi")'))
        assert retort == Ok(result="#<unspecified>", output="hi")

    def test_error(self, registry):
        session = registry.start("fake")
        retort = ReplEvaluator(registry).send(session, evaluate("(error wrong-type car-needs-a-pair)"))
        assert isinstance(retort, Err)
        assert retort.kind == "wrong-type"
        assert retort.message == "car-needs-a-pair"
        assert retort.module == "user"
        assert not retort.is_debugger_entry

    def test_debugger_entry(self, registry):
        session = registry.start("fake")
        evaluator = ReplEvaluator(registry)
        retort = evaluator.send(session, evaluate("(debug)"))
        assert retort.kind == DEBUGGER_ENTRY
        assert retort.message == "In procedure car: Wrong type argument"

        assert evaluator.send(session, evaluate(",q")) == Ok()
        assert evaluator.send(session, evaluate("(+ 1 2)")) == Ok(result="(+ 1 2)")

    def test_answers_while_in_debugger(self, registry):
        session = registry.start("fake")
        evaluator = ReplEvaluator(registry)
        assert evaluator.send(session, evaluate("(debug)")).kind == DEBUGGER_ENTRY

        assert evaluator.send(session, evaluate("(+ 1 2)")) == Ok(result="(+ 1 2)")
        assert session.prompt == "fake@(user) [1]> "

        nested = evaluator.send(session, evaluate("(debug)"))
        assert nested.kind == DEBUGGER_ENTRY
        assert session.prompt == "fake@(user) [2]> "

    def test_load_file(self, registry, tmp_path):
        session = registry.start("fake")
        path = str(tmp_path / "a.scm")
        retort = ReplEvaluator(registry).send(session, Request(RequestKind.LOAD_FILE, path))
        assert retort == Ok(result=f'; loaded "{path}"')

    def test_compile_file(self, registry, tmp_path):
        session = registry.start("fake")
        path = str(tmp_path / "a.scm")
        retort = ReplEvaluator(registry).send(session, Request(RequestKind.COMPILE_FILE, path))
        assert retort == Ok(result=f'; compiled "{path}"')

    def test_macro_expand(self, registry):
        session = registry.start("fake")
        evaluator = ReplEvaluator(registry)
        once = evaluator.send(session, Request(RequestKind.MACRO_EXPAND, "(when a b)"))
        full = evaluator.send(session, Request(RequestKind.MACRO_EXPAND, "(when a b)", expand_all=True))
        assert once == Ok(result="once:(when a b)")
        assert full == Ok(result="all:(when a b)")

    def test_transport_failure_terminates_session(self, registry):
        session = registry.start("fake")
        retort = ReplEvaluator(registry).send(session, evaluate("(crash)"))
        assert retort.kind == TRANSPORT_ERROR
        assert retort.is_transport_error
        assert registry.lookup("fake") is None
        assert session not in registry.sessions()

    def test_transport_failure_without_registry(self, registry):
        session = registry.start("fake")
        retort = ReplEvaluator().send(session, evaluate("(crash)"))
        assert retort.kind == TRANSPORT_ERROR
        assert not session.alive

    def test_dead_session(self, registry):
        session = registry.start("fake")
        session.kill()
        retort = ReplEvaluator(registry).send(session, evaluate("(+ 1 2)"))
        assert retort.kind == TRANSPORT_ERROR

    def test_reset_interrupts_request(self, registry, wait_until):
        session = registry.start("fake")
        evaluator = ReplEvaluator(registry)
        retorts = []

        thread = threading.Thread(
            target=lambda: retorts.append(evaluator.send(session, evaluate("(sleep 1)")))
        )
        thread.start()
        assert wait_until(lambda: session._request_lock.locked())
        session.reset(10)
        thread.join(5)

        assert [r.kind for r in retorts] == [INTERRUPTED]
        assert evaluator.send(session, evaluate("(+ 1 2)")) == Ok(result="(+ 1 2)")
