"""Caller-initiated cancellation.

Cancellation is local first: the record flips to ``Cancelled`` immediately so
callers and the next poll tick see it, and only then is the transport asked
to stop the transfer. The transport may keep reporting ``Sending`` or
``Receiving`` for a tick before it confirms; the local state wins.
"""

from __future__ import annotations

import logging

from pollcurl.client.dispatcher import CANCELLED_MESSAGE
from pollcurl.client.session import SessionManager
from pollcurl.client.states import is_terminal
from pollcurl.client.store import RequestStore
from pollcurl.exceptions import UnknownRequest
from pollcurl.models import RequestState
from pollcurl.transport.base import Transport

logger = logging.getLogger(__name__)


class CancellationController:
    """Cancels requests tracked by a :class:`RequestStore`."""

    def __init__(self, store: RequestStore, transport: Transport, sessions: SessionManager) -> None:
        self._store = store
        self._transport = transport
        self._sessions = sessions

    def cancel(self, request_id: str) -> bool:
        """Cancel *request_id*.

        Returns:
            Whether the transport accepted the cancellation. Unknown and
            already-finished ids return ``False`` without raising.
        """
        record = self._store.get(request_id)
        if record is None:
            logger.info("%s", UnknownRequest(f"Cannot cancel unknown request: {request_id}"))
            return False
        if is_terminal(record.state):
            logger.debug("Request %s already finished as %s", request_id, record.state.value)
            return False

        record.state = RequestState.CANCELLED
        record.error = CANCELLED_MESSAGE
        logger.debug("Request %s cancelled locally", request_id)

        session_id = self._sessions.session_id
        if session_id is None:
            return False
        try:
            return bool(self._transport.cancel_request(session_id, request_id))
        except Exception:
            logger.warning("Transport failed to cancel request %s", request_id, exc_info=True)
            return False
