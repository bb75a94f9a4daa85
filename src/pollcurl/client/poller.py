"""The recurring poll tick that drives every outstanding request.

One tick queries the transport for each record in the store, applies the
state machine, turns cumulative bodies into chunks, and finally delivers
callbacks and removes finished records. Observation and delivery are two
separate phases: all records are brought up to date first, then the
collected events are dispatched in order. A callback that destroys the
client or removes a record stops the remaining events for that record from
firing.

The tick runs on an :mod:`asyncio` event loop via ``call_later`` and never
spawns threads. :meth:`PollLoop.tick` can also be called directly, which is
how tests and manually driven hosts use it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from pollcurl.client.dispatcher import CallbackDispatcher
from pollcurl.client.session import SessionManager
from pollcurl.client.states import apply_status, check_deadline, is_terminal
from pollcurl.client.store import RequestStore
from pollcurl.client.stream import diff
from pollcurl.models import RequestRecord, RequestState, StatusReport
from pollcurl.transport.base import Transport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 100

_CHUNK = "chunk"
_TERMINAL = "terminal"


class PollLoop:
    """Polls the transport for every record in a :class:`RequestStore`.

    Args:
        store: The client's request table.
        transport: The engine to query.
        sessions: Supplies the session id; polling stops once it is gone.
        dispatcher: Delivers callbacks.
        interval_ms: Milliseconds between scheduled ticks.
        clock: Monotonic clock used for deadline checks.
    """

    def __init__(
        self,
        store: RequestStore,
        transport: Transport,
        sessions: SessionManager,
        dispatcher: CallbackDispatcher,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._transport = transport
        self._sessions = sessions
        self._dispatcher = dispatcher
        self._interval = interval_ms / 1000.0
        self._clock = clock
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.Handle] = None
        self._closed = False

    @property
    def running(self) -> bool:
        """Whether a tick is scheduled on an event loop."""
        return self._handle is not None

    @property
    def interval(self) -> float:
        return self._interval

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Schedule ticks on *loop* (default: the running loop), first one immediately.

        Raises:
            RuntimeError: If no loop is given and none is running.
        """
        if self._closed or self.running:
            return
        self._loop = loop or asyncio.get_running_loop()
        self._handle = self._loop.call_soon(self._scheduled_tick)
        logger.debug("Poll loop started (interval %.3fs)", self._interval)

    def stop(self) -> None:
        """Cancel the next scheduled tick. Manual :meth:`tick` calls still work."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.debug("Poll loop stopped")

    def close(self) -> None:
        """Stop for good; later ticks are no-ops."""
        self.stop()
        self._closed = True

    def _scheduled_tick(self) -> None:
        self._handle = None
        if self._closed:
            return
        try:
            self.tick()
        except Exception:
            logger.exception("Poll tick failed")
        if not self._closed and self._loop is not None and not self._loop.is_closed():
            self._handle = self._loop.call_later(self._interval, self._scheduled_tick)

    # ------------------------------------------------------------------ #
    # One tick
    # ------------------------------------------------------------------ #

    def tick(self) -> int:
        """Run one poll pass over every outstanding request.

        Returns:
            The number of records examined.
        """
        if self._closed:
            return 0
        session_id = self._sessions.session_id
        if session_id is None:
            return 0

        now = self._clock()
        events: list[tuple[str, RequestRecord, Any]] = []
        examined = 0

        def _observe(record: RequestRecord) -> None:
            nonlocal examined
            examined += 1
            if not is_terminal(record.state):
                report = self._query(session_id, record)
                apply_status(record, report)
                if report.body is not None:
                    self._absorb_body(record, report.body, events)
                check_deadline(record, now)
            if is_terminal(record.state):
                events.append((_TERMINAL, record, None))

        self._store.for_each_mutable(_observe)

        for kind, record, payload in events:
            if self._closed or self._store.get(record.id) is not record:
                continue
            if kind == _CHUNK:
                self._dispatcher.deliver_chunk(record, payload)
            else:
                self._finish(session_id, record)
        return examined

    def _query(self, session_id: str, record: RequestRecord) -> StatusReport:
        """Ask the transport about *record*; a failing query becomes an ``Error`` report."""
        try:
            raw = self._transport.get_status(session_id, record.id)
            if isinstance(raw, StatusReport):
                return raw
            return StatusReport.model_validate(raw or {})
        except Exception as exc:
            logger.warning("Status query for request %s failed: %s", record.id, exc)
            return StatusReport(
                completed=True,
                state=RequestState.ERROR.value,
                error=f"Status query failed: {exc}",
            )

    def _absorb_body(
        self,
        record: RequestRecord,
        body: str,
        events: list[tuple[str, RequestRecord, Any]],
    ) -> None:
        suffix = diff(record.last_body_length, body)
        if not suffix:
            return
        record.last_body = body
        record.last_body_length = len(body)
        if record.on_chunk is not None:
            events.append((_CHUNK, record, suffix))

    def _finish(self, session_id: str, record: RequestRecord) -> None:
        """Discharge a terminal record's callback, then release and remove it."""
        final_state = record.state
        if final_state is RequestState.ACKNOWLEDGED:
            # Result already consumed elsewhere; nothing left to deliver.
            record.callbacks_discharged = True
        else:
            self._dispatcher.deliver_terminal(record)
            record.state = RequestState.ACKNOWLEDGED
            self._acknowledge(session_id, record.id)

        self._store.remove(record.id)
        logger.debug(
            "Request %s finished as %s after %.3fs%s",
            record.id,
            final_state.value,
            self._clock() - record.submitted_at,
            "" if record.has_callbacks else " (no callbacks)",
        )

    def _acknowledge(self, session_id: str, request_id: str) -> None:
        ack = getattr(self._transport, "acknowledge_request", None)
        if ack is None or self._sessions.session_id != session_id:
            return
        try:
            ack(session_id, request_id)
        except Exception:
            logger.debug("Transport failed to acknowledge request %s", request_id, exc_info=True)
