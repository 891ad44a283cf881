"""Registry of live interpreter sessions, keyed by implementation identity."""

import logging
import threading
import weakref
from typing import Callable, Optional

from .config import Config
from .exceptions import StartupError
from .history import HistoryStore
from .implementations import resolve_implementation
from .session import Session

logger = logging.getLogger(__name__)


class Context:
    """Something that evaluates code against "its" session, e.g. an editor buffer.

    The cached session is cleared by the registry when that session
    terminates and re-resolved on the next SessionRegistry.current() call.
    """

    def __init__(self, name: str = "", identity: Optional[str] = None):
        self.name = name
        self.identity = identity
        self.session: Optional[Session] = None

    def __repr__(self):
        return f"<Context {self.name!r} identity={self.identity}>"


class SessionRegistry:
    """All live sessions, plus the contexts that cache one of them.

    For each identity, the most recently started live session is the one
    lookups return. The most recently started session overall is the
    fallback for contexts that name no identity.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self._sessions: list[Session] = []
        self._contexts: "weakref.WeakSet[Context]" = weakref.WeakSet()
        self._listeners: list[Callable[[Session], None]] = []
        self._fallback: Optional[Session] = None
        self._lock = threading.RLock()

    # -- start / terminate --

    def start(
        self,
        identity: str,
        binary: Optional[str] = None,
        args=None,
        prompt_pattern: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Session:
        """Spawn a session for identity and wait for its first prompt.

        Binary, args and prompt default to the configured override, then to
        the registered implementation.
        """
        implementation = resolve_implementation(identity, self.config, binary, args, prompt_pattern)
        if timeout is None:
            timeout = self.config.handshake_timeout

        session = Session(
            identity,
            implementation,
            implementation.command(),
            implementation.prompt_pattern,
            HistoryStore(self.config.history_path_for(identity), self.config.history_max_size),
            self.config.history_max_size,
        )
        session.spawn()
        try:
            session.handshake(timeout)
        except StartupError:
            session.mark_terminated()
            session.kill()
            raise

        session.load_history()
        with self._lock:
            self._sessions.append(session)
            self._fallback = session
        session.add_exit_callback(self._on_exit)
        logger.info(f"Registered {session!r} ({len(session.history)} history entries)")
        return session

    def _on_exit(self, session: Session):
        self.terminate(session)

    def terminate(self, session: Session):
        """Tear a session down: unregister it, save its history, clear caches.

        Safe to call more than once; runs automatically when the process exits.
        """
        with self._lock:
            if session not in self._sessions:
                return
            self._sessions.remove(session)
            session.mark_terminated()
            if self._fallback is session:
                self._fallback = self._sessions[-1] if self._sessions else None
            for context in self._contexts:
                if context.session is session:
                    context.session = None
            listeners = list(self._listeners)

        session.kill()
        session.save_history()
        logger.info(f"Terminated {session!r}")

        for listener in listeners:
            try:
                listener(session)
            except Exception:
                logger.exception(f"Termination listener failed for {session!r}")

    def shutdown(self):
        """Quit every session."""
        for session in self.sessions():
            session.quit()
            self.terminate(session)

    def add_termination_listener(self, listener: Callable[[Session], None]):
        with self._lock:
            self._listeners.append(listener)

    # -- lookups --

    def sessions(self) -> list[Session]:
        with self._lock:
            return list(self._sessions)

    def lookup(self, identity: str) -> Optional[Session]:
        with self._lock:
            for session in reversed(self._sessions):
                if session.identity == identity and session.alive:
                    return session
        return None

    def active_identities(self) -> set[str]:
        with self._lock:
            return {s.identity for s in self._sessions if s.alive}

    def infer_identity(self) -> Optional[str]:
        """The configured default implementation, or the only active one."""
        if self.config.default_implementation:
            return self.config.default_implementation
        active = self.active_identities()
        if len(active) == 1:
            return next(iter(active))
        return None

    def bind(self, context: Context):
        with self._lock:
            self._contexts.add(context)

    def release(self, context: Context):
        with self._lock:
            self._contexts.discard(context)
            context.session = None

    def rebind(self, context: Context, identity: Optional[str]):
        """Point context at another identity; the next current() re-resolves."""
        with self._lock:
            self._contexts.add(context)
            context.identity = identity
            context.session = None

    def current(self, context: Context) -> Optional[Session]:
        """The context's session, resolving and caching it when needed."""
        with self._lock:
            self.bind(context)
            cached = context.session
            if (
                cached is not None
                and cached.alive
                and cached in self._sessions
                and context.identity in (None, cached.identity)
            ):
                return cached

            session = None
            identity = context.identity or self.infer_identity()
            if identity:
                session = self.lookup(identity)
            if session is None and context.identity is None:
                fallback = self._fallback
                if fallback is not None and fallback.alive:
                    session = fallback

            context.session = session
            return session
