"""Sending requests to sessions and getting retorts back."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from .exceptions import RequestInterrupted, TransportError
from .models import INTERRUPTED, TRANSPORT_ERROR, Err, Request, Retort
from .session import Session

if TYPE_CHECKING:
    from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class EvaluatorGateway(ABC):
    """Abstract request/response exchange with a session.

    send() blocks until the session answers or the transport fails; a
    transport failure comes back as an Err retort, never as an exception.
    """

    @abstractmethod
    def send(self, session: Session, request: Request) -> Retort:
        ...


class ReplEvaluator(EvaluatorGateway):
    """Gateway that talks to the interpreter's own REPL, one prompt at a time."""

    def __init__(self, registry: Optional["SessionRegistry"] = None):
        self.registry = registry

    def send(self, session: Session, request: Request) -> Retort:
        implementation = session.implementation
        text = implementation.encode_request(request)
        logger.debug(f"{request.kind.value} -> {session!r}")

        try:
            body, prompt, sent_at = session.exchange(text)
        except RequestInterrupted as e:
            return Err(kind=INTERRUPTED, message=str(e), module=session.module)
        except TransportError as e:
            logger.warning(f"Transport failure on {session!r}: {e}")
            if self.registry is not None:
                self.registry.terminate(session)
            else:
                session.mark_terminated()
                session.kill()
            return Err(kind=TRANSPORT_ERROR, message=str(e))

        retort = implementation.decode_response(body, prompt, sent_at)
        logger.debug(f"{request.kind.value} <- {type(retort).__name__}")
        return retort
