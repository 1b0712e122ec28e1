"""
Per-connection MCP session lifecycle.

A connection without a session id negotiates a new session and keeps an
event stream open for as long as the client stays attached. A request that
names a session id is handled on its own and closes straight after.

    NEGOTIATING --activate()--> ACTIVE --close()--> CLOSED

Sessions are not kept in any registry; each one lives only as long as the
request that owns it.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL_SECONDS = 15.0


class SessionState(Enum):
    """Lifecycle states of a session."""
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionStateError(Exception):
    """Raised on an illegal session state transition."""


_TRANSITIONS = {
    SessionState.NEGOTIATING: {SessionState.ACTIVE, SessionState.CLOSED},
    SessionState.ACTIVE: {SessionState.CLOSED},
    SessionState.CLOSED: set(),
}


class Session:
    """
    One MCP session.

    Usage:
        session = Session.negotiate()
        session.activate()
        ...
        session.close()

        with Session.attach(session_id) as session:
            ...  # handle one request
    """

    def __init__(self, session_id: Optional[str] = None, state: SessionState = SessionState.NEGOTIATING):
        self.id = session_id or uuid.uuid4().hex
        self._state = state

    def __repr__(self) -> str:
        return f"Session(id='{self.id}', state={self._state.value})"

    @property
    def state(self) -> SessionState:
        return self._state

    @classmethod
    def negotiate(cls) -> "Session":
        """Start a new session in the negotiating state."""
        return cls()

    @classmethod
    def attach(cls, session_id: str) -> "Session":
        """Join an existing session for a single request; skips negotiation."""
        return cls(session_id=session_id, state=SessionState.ACTIVE)

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise SessionStateError(
                f"Cannot move session from {self._state.value} to {target.value}"
            )
        logger.debug(f"Session {self.id}: {self._state.value} -> {target.value}")
        self._state = target

    def activate(self) -> None:
        self._transition(SessionState.ACTIVE)

    def close(self) -> None:
        """Close the session; closing twice is a no-op."""
        if self._state is not SessionState.CLOSED:
            self._transition(SessionState.CLOSED)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    async def stream(
        self,
        endpoint: str,
        is_disconnected: Callable[[], Awaitable[bool]],
        keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
    ) -> AsyncIterator[str]:
        """
        Server-sent event stream for a negotiated session.

        Emits the ``endpoint`` event telling the client where to POST its
        requests, then keep-alive comments until the client goes away. The
        session is closed however the stream ends.
        """
        if self._state is SessionState.NEGOTIATING:
            self.activate()
        if self._state is not SessionState.ACTIVE:
            raise SessionStateError(f"Cannot stream a {self._state.value} session")

        try:
            yield f"event: endpoint\ndata: {endpoint}?sessionId={self.id}\n\n"
            while not await is_disconnected():
                await asyncio.sleep(keepalive_interval)
                yield ": keepalive\n\n"
        finally:
            self.close()
            logger.info(f"MCP session {self.id} closed")
