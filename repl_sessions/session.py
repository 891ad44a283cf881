"""A live connection to one interpreter subprocess."""

import codecs
import logging
import os
import queue
import re
import subprocess
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from .exceptions import NoPromptError, RequestInterrupted, StartupError, TransportError
from .history import HistoryStore
from .implementations.base import Implementation

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1  # seconds between prompt checks while waiting
PROMPT_LOOKBEHIND = 256  # chars rescanned so a prompt split across reads still matches
READ_SIZE = 4096
QUIT_GRACE_SECONDS = 2
SETTLE_SECONDS = 0.2

_INTERRUPT = object()


def exit_reason(returncode: int) -> str:
    if returncode == 0:
        return "normal"
    if returncode < 0:
        return "signal"
    return "error"


class Session:
    """One interpreter subprocess plus the state needed to talk to it.

    Output is read by a background thread into a queue; callers wait on the
    queue with a timeout until the prompt shows up. Only one request is in
    flight at a time.
    """

    def __init__(
        self,
        identity: str,
        implementation: Implementation,
        command: list[str],
        prompt_pattern: str,
        history_store: Optional[HistoryStore] = None,
        history_max_size: int = 500,
    ):
        self.identity = identity
        self.implementation = implementation
        self.command = list(command)
        self.prompt_re = re.compile(prompt_pattern)
        self.history_store = history_store
        self.history_max_size = history_max_size
        self.history: list[str] = []

        self.process: Optional[subprocess.Popen] = None
        self.started_time: Optional[datetime] = None
        self.exit_reason: Optional[str] = None
        self.prompt = ""
        self.module: Optional[str] = None

        self._chunks: queue.Queue = queue.Queue()
        self._buffer = ""
        self._unread = 0
        self._eof = False
        self._terminated = False
        self._request_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._exit_callbacks: list[Callable[["Session"], None]] = []

    def __repr__(self):
        state = "alive" if self.alive else (self.exit_reason or "dead")
        pid = self.process.pid if self.process else None
        return f"<Session {self.identity} pid={pid} {state}>"

    @property
    def alive(self) -> bool:
        return (
            self.process is not None
            and not self._terminated
            and self.process.poll() is None
        )

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    # -- process lifecycle --

    def spawn(self):
        """Start the subprocess and its reader and exit-watcher threads."""
        try:
            self.process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except OSError as e:
            raise StartupError(self.identity, f"Could not run {self.command[0]}: {e}")

        self.started_time = datetime.now()
        logger.info(f"Started {self.identity} (pid {self.process.pid}): {' '.join(self.command)}")

        threading.Thread(
            target=self._drain_stdout, name=f"{self.identity}-reader", daemon=True
        ).start()
        threading.Thread(
            target=self._watch_exit, name=f"{self.identity}-watcher", daemon=True
        ).start()

    def _drain_stdout(self):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        fd = self.process.stdout.fileno()
        try:
            while True:
                data = os.read(fd, READ_SIZE)
                if not data:
                    break
                self._chunks.put(decoder.decode(data))
        except (OSError, ValueError) as e:
            logger.debug(f"{self.identity} reader stopped: {e}")
        tail = decoder.decode(b"", final=True)
        if tail:
            self._chunks.put(tail)
        self._chunks.put(None)

    def _watch_exit(self):
        returncode = self.process.wait()
        with self._state_lock:
            self.exit_reason = exit_reason(returncode)
            callbacks = list(self._exit_callbacks)
        logger.info(f"{self.identity} (pid {self.process.pid}) exited: {self.exit_reason} ({returncode})")
        for callback in callbacks:
            self._run_exit_callback(callback)

    def _run_exit_callback(self, callback):
        try:
            callback(self)
        except Exception:
            logger.exception(f"Exit callback failed for {self!r}")

    def add_exit_callback(self, callback: Callable[["Session"], None]):
        """Call callback(session) once the process exits.

        Runs immediately if the process is already gone.
        """
        with self._state_lock:
            exited = self.exit_reason is not None
            if not exited:
                self._exit_callbacks.append(callback)
        if exited:
            self._run_exit_callback(callback)

    def mark_terminated(self):
        self._terminated = True

    def kill(self):
        if self.process is None or self.process.poll() is not None:
            return
        logger.info(f"Killing {self!r}")
        self.process.kill()
        self.process.wait()

    def quit(self):
        """Ask the interpreter to exit, killing it if it does not."""
        if self.process is None or self.process.poll() is not None:
            return
        try:
            self._write(self.implementation.exit_command)
            self.process.wait(timeout=QUIT_GRACE_SECONDS)
        except (TransportError, subprocess.TimeoutExpired):
            self.kill()

    # -- prompt handling --

    def _read_until_prompt(self, timeout: Optional[float] = None, interruptible: bool = False) -> str:
        """Return the text before the next prompt.

        With a timeout, raises NoPromptError once it is used up; without
        one, waits as long as the process keeps running.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            match = self.prompt_re.search(self._buffer, self._unread)
            if match:
                text = self._buffer[:match.start()]
                self.prompt = match.group(0)
                self.module = self.implementation.module_from_prompt(self.prompt)
                self._buffer = self._buffer[match.end():]
                self._unread = 0
                return text
            self._unread = max(0, len(self._buffer) - PROMPT_LOOKBEHIND)

            if self._eof:
                raise TransportError(f"{self.identity} process closed its output")

            wait = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise NoPromptError(
                        self.identity,
                        f"No prompt after {timeout}s",
                        output=self._buffer,
                    )
                wait = min(remaining, POLL_INTERVAL)

            try:
                chunk = self._chunks.get(timeout=wait)
            except queue.Empty:
                continue

            if chunk is None:
                self._eof = True
            elif chunk is _INTERRUPT:
                if interruptible:
                    raise RequestInterrupted(f"{self.identity} request discarded by reset")
            else:
                self._buffer += chunk

    def handshake(self, timeout: float):
        """Wait for the first prompt after spawning."""
        try:
            banner = self._read_until_prompt(timeout)
        except TransportError:
            raise StartupError(
                self.identity,
                "Process exited before showing a prompt",
                output=self._buffer,
            )
        logger.debug(f"{self.identity} handshake done, banner: {banner!r}")
        return banner

    def reset(self, timeout: float):
        """Discard pending input and output, then wait for a fresh prompt.

        An exchange blocked in another thread is abandoned with
        RequestInterrupted. The process keeps running.
        """
        self._chunks.put(_INTERRUPT)
        with self._request_lock:
            while True:
                try:
                    chunk = self._chunks.get_nowait()
                except queue.Empty:
                    break
                if chunk is None:
                    self._eof = True
            self._buffer = ""
            self._unread = 0
            self._write("")
            self._read_until_prompt(timeout)
            # swallow prompts still owed to abandoned requests
            while True:
                try:
                    self._read_until_prompt(SETTLE_SECONDS)
                except NoPromptError:
                    break
        logger.info(f"Reset {self!r}")

    # -- requests --

    def _write(self, text: str):
        data = (text.rstrip("\n") + "\n").encode("utf-8")
        try:
            self.process.stdin.write(data)
            self.process.stdin.flush()
        except (OSError, ValueError) as e:
            raise TransportError(f"Could not write to {self.identity}: {e}")

    def exchange(self, text: str) -> tuple[str, str, str]:
        """Send text and wait for the next prompt.

        Returns (text printed before the prompt, the prompt, the prompt the
        text was sent at).
        """
        with self._request_lock:
            if not self.alive:
                raise TransportError(f"{self.identity} session is not running")
            sent_at = self.prompt
            logger.debug(f"{self.identity} <- {text!r}")
            self._write(text)
            body = self._read_until_prompt(interruptible=True)
            logger.debug(f"{self.identity} -> {body!r} {self.prompt!r}")
            return body, self.prompt, sent_at

    # -- history --

    def add_history(self, entry: str):
        """Record an input, ignoring blanks and immediate repeats."""
        entry = entry.strip()
        if not entry or (self.history and self.history[-1] == entry):
            return
        self.history.append(entry)
        if len(self.history) > self.history_max_size:
            del self.history[:len(self.history) - self.history_max_size]

    def load_history(self):
        if self.history_store:
            self.history = self.history_store.load()

    def save_history(self):
        if self.history_store:
            self.history_store.save(self.history)
