"""Tests for a single interpreter session against the fake REPL."""

import threading
import time

import pytest

from repl_sessions.exceptions import (
    NoPromptError,
    RequestInterrupted,
    StartupError,
    TransportError,
)
from repl_sessions.history import HistoryStore
from repl_sessions.implementations import get_implementation
from repl_sessions.models import Ok
from repl_sessions.session import Session, exit_reason


def make_session(args=None, history_store=None, history_max_size=500):
    implementation = get_implementation("fake")
    return Session(
        "fake",
        implementation,
        implementation.command(args=args),
        implementation.prompt_pattern,
        history_store=history_store,
        history_max_size=history_max_size,
    )


@pytest.fixture
def session():
    session = make_session()
    session.spawn()
    session.handshake(10)
    yield session
    session.kill()


class TestExitReason:
    def test_reasons(self):
        assert exit_reason(0) == "normal"
        assert exit_reason(-9) == "signal"
        assert exit_reason(3) == "error"


class TestHandshake:
    def test_banner_before_first_prompt(self):
        session = make_session()
        session.spawn()
        try:
            banner = session.handshake(10)
            assert banner == "Fake Scheme 1.0\n"
            assert session.prompt == "fake@(user)> "
            assert session.module == "user"
            assert session.alive
            assert session.started_time is not None
        finally:
            session.kill()

    def test_no_prompt_times_out(self, fake_args):
        session = make_session(fake_args("--silent"))
        session.spawn()
        try:
            start = time.monotonic()
            with pytest.raises(NoPromptError):
                session.handshake(0.5)
            elapsed = time.monotonic() - start
            assert 0.5 <= elapsed < 5
        finally:
            session.kill()

    def test_process_dies_before_prompt(self, fake_args):
        session = make_session(fake_args("--die"))
        session.spawn()
        with pytest.raises(StartupError) as exc_info:
            session.handshake(10)
        assert not isinstance(exc_info.value, NoPromptError)
        assert "boom" in exc_info.value.output

    def test_missing_binary(self):
        implementation = get_implementation("fake")
        session = Session(
            "fake",
            implementation,
            ["/nonexistent/bin/scheme"],
            implementation.prompt_pattern,
        )
        with pytest.raises(StartupError):
            session.spawn()
        assert not session.alive


class TestExchange:
    def test_echo(self, session):
        body, prompt, _ = session.exchange("(+ 1 2)")
        assert body == "(+ 1 2)\n"
        assert prompt == "fake@(user)> "

    def test_output_before_value(self, session):
        body, _, _ = session.exchange('(display "hi")')
        assert body == "hi\n#<unspecified>\n"

    def test_debugger_prompt(self, session):
        body, prompt, _ = session.exchange("(debug)")
        assert body == "In procedure car: Wrong type argument\n"
        assert prompt == "fake@(user) [1]> "
        assert session.module == "user"

        body, prompt, _ = session.exchange(",q")
        assert prompt == "fake@(user)> "

    def test_debugger_level_persists(self, session):
        implementation = session.implementation
        session.exchange("(debug)")

        body, prompt, sent_at = session.exchange("(+ 1 2)")
        assert prompt == sent_at == "fake@(user) [1]> "
        assert implementation.decode_response(body, prompt, sent_at) == Ok(result="(+ 1 2)")

        body, prompt, sent_at = session.exchange("(debug)")
        assert implementation.entered_debugger(prompt, sent_at)

    def test_requests_in_order(self, session):
        results = []
        for i in range(5):
            body, _, _ = session.exchange(f"(value {i})")
            results.append(body)
        assert results == [f"(value {i})\n" for i in range(5)]

    def test_exchange_after_exit(self, session, wait_until):
        session._write("(crash)")
        assert wait_until(lambda: not session.alive)
        with pytest.raises(TransportError):
            session.exchange("(+ 1 2)")

    def test_eof_mid_request(self, session):
        with pytest.raises(TransportError):
            session.exchange("(crash)")


class TestReset:
    def test_reset_interrupts_pending_request(self, session, wait_until):
        errors = []

        def slow_request():
            try:
                session.exchange("(sleep 1)")
            except RequestInterrupted as e:
                errors.append(e)

        thread = threading.Thread(target=slow_request)
        thread.start()
        assert wait_until(lambda: session._request_lock.locked())

        session.reset(10)
        thread.join(5)

        assert len(errors) == 1
        assert session.alive
        body, _, _ = session.exchange("(+ 1 2)")
        assert body == "(+ 1 2)\n"

    def test_reset_idle_session(self, session):
        session.reset(10)
        body, _, _ = session.exchange("(+ 1 2)")
        assert body == "(+ 1 2)\n"


class TestLifecycle:
    def test_quit_is_normal_exit(self, session, wait_until):
        reasons = []
        session.add_exit_callback(lambda s: reasons.append(s.exit_reason))
        session.quit()
        assert wait_until(lambda: reasons == ["normal"])
        assert not session.alive

    def test_kill_is_signal_exit(self, session, wait_until):
        reasons = []
        session.add_exit_callback(lambda s: reasons.append(s.exit_reason))
        session.kill()
        assert wait_until(lambda: reasons == ["signal"])

    def test_crash_is_error_exit(self, session, wait_until):
        session._write("(crash)")
        assert wait_until(lambda: session.exit_reason == "error")

    def test_callback_after_exit_runs_at_once(self, session, wait_until):
        session.kill()
        assert wait_until(lambda: session.exit_reason is not None)
        called = []
        session.add_exit_callback(called.append)
        assert called == [session]

    def test_failing_callback_does_not_stop_others(self, session, wait_until):
        called = []

        def broken(s):
            raise RuntimeError("listener bug")

        session.add_exit_callback(broken)
        session.add_exit_callback(called.append)
        session.kill()
        assert wait_until(lambda: called == [session])

    def test_mark_terminated(self, session):
        session.mark_terminated()
        assert not session.alive
        assert session.process.poll() is None


class TestHistory:
    def test_blank_and_repeats_ignored(self):
        session = make_session()
        for entry in ["(a)", "(a)", "   ", "(b)", "(a)", "(a)\n"]:
            session.add_history(entry)
        assert session.history == ["(a)", "(b)", "(a)"]

    def test_bounded(self):
        session = make_session(history_max_size=3)
        for i in range(5):
            session.add_history(f"(f {i})")
        assert session.history == ["(f 2)", "(f 3)", "(f 4)"]

    def test_save_and_load(self, tmp_path):
        store = HistoryStore(tmp_path / "history.fake")
        first = make_session(history_store=store)
        first.add_history("(define x 1)")
        first.add_history("(+ x 1)")
        first.save_history()

        second = make_session(history_store=store)
        second.load_history()
        assert second.history == ["(define x 1)", "(+ x 1)"]

    def test_without_store(self):
        session = make_session()
        session.add_history("(a)")
        session.save_history()
        session.load_history()
        assert session.history == ["(a)"]
