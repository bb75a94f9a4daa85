"""Ownership of the single transport session behind a client."""

from __future__ import annotations

import logging
from typing import Optional

from pollcurl.exceptions import TransportUnavailable
from pollcurl.transport.base import Transport

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates and releases one transport session.

    A session is created at most once and is never reused after
    :meth:`destroy`.

    Args:
        transport: The engine that allocates sessions.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._session_id: Optional[str] = None
        self._destroyed = False

    @property
    def session_id(self) -> Optional[str]:
        """The live session id, or ``None`` before creation and after destruction."""
        return self._session_id

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def create(self) -> str:
        """Ask the transport for a new session.

        Raises:
            TransportUnavailable: If the transport fails, returns no id, or
                this manager already destroyed its session.
        """
        if self._destroyed:
            raise TransportUnavailable("Session already destroyed; create a new client")
        if self._session_id is not None:
            return self._session_id
        try:
            session_id = self._transport.create_session()
        except Exception as exc:
            raise TransportUnavailable(f"Transport failed to create a session: {exc}") from exc
        if not session_id:
            raise TransportUnavailable("Transport returned an empty session id")
        self._session_id = str(session_id)
        logger.debug("Created transport session %s", self._session_id)
        return self._session_id

    def destroy(self) -> bool:
        """Release the session. Safe to call more than once.

        Returns:
            Whether the transport acknowledged releasing a live session.
        """
        if self._destroyed:
            return False
        self._destroyed = True
        session_id, self._session_id = self._session_id, None
        if session_id is None:
            return False
        try:
            released = bool(self._transport.destroy_session(session_id))
        except Exception:
            logger.warning("Transport failed to destroy session %s", session_id, exc_info=True)
            return False
        logger.debug("Destroyed transport session %s (released=%s)", session_id, released)
        return released
