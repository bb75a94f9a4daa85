"""Built-in transport engine backed by :mod:`httpx`.

Requests run on a bounded :class:`~concurrent.futures.ThreadPoolExecutor`
owned by the engine. Each worker writes progress into a per-session table;
:meth:`HttpxTransport.get_status` answers from that table without blocking
on I/O.

Streaming requests publish a cumulative body as text arrives. For
``text/event-stream`` responses the body accumulates the ``data:`` payload
of every parsed event, one per line.

The engine also does its own housekeeping on status queries:

* a request stuck in ``Sending``/``Receiving`` without progress for
  ``stall_timeout`` seconds is reported as ``Timeout``;
* acknowledging a request that is still in flight stops its worker;
* every ``cleanup_interval`` seconds, acknowledged entries are dropped,
  terminal entries nobody polled for ``idle_timeout`` seconds are dropped,
  and in-flight entries nobody polled for that long are marked ``Idle``.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

import httpx

from pollcurl.exceptions import TransportError
from pollcurl.models import (
    ClientSettings,
    FileBody,
    JsonBody,
    RawBody,
    RequestDescriptor,
    RequestState,
    StatusReport,
)
from pollcurl.transport.sse import parse_event, split_events

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
"""Seconds applied when a descriptor carries no timeout."""

_TERMINAL = frozenset(
    {
        RequestState.COMPLETE,
        RequestState.ERROR,
        RequestState.TIMEOUT,
        RequestState.CANCELLED,
        RequestState.ACKNOWLEDGED,
    }
)


@dataclass
class _Entry:
    """Engine-side state of one request."""

    request_id: str
    created_at: float
    state: RequestState = RequestState.INIT
    status: Optional[int] = None
    headers: Optional[dict[str, str]] = None
    body: Optional[str] = None
    error: Optional[str] = None
    last_polled: float = 0.0
    updated_at: float = 0.0
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def snapshot(self) -> StatusReport:
        return StatusReport(
            completed=self.state in _TERMINAL,
            state=self.state.value,
            status=self.status,
            body=self.body,
            headers=dict(self.headers) if self.headers is not None else None,
            error=self.error,
        )


class _Session:
    def __init__(self, now: float) -> None:
        self.entries: dict[str, _Entry] = {}
        self.lock = threading.Lock()
        self.last_cleanup = now


class HttpxTransport:
    """Poll-based HTTP engine running requests on worker threads.

    Args:
        max_workers: Size of the worker pool shared by all sessions.
        stall_timeout: Seconds without progress before an in-flight request
            is reported as ``Timeout``.
        idle_timeout: Seconds without a status query before an entry is
            considered idle.
        cleanup_interval: Minimum seconds between housekeeping passes.
        user_agent: Sent when a request has no ``User-Agent`` header.
        http_transport: Optional :class:`httpx.BaseTransport` used by every
            request (tests pass an :class:`httpx.MockTransport`).
        clock: Wall-clock source in seconds.

    Example::

        engine = HttpxTransport()
        sid = engine.create_session()
        engine.request(sid, "req-1", RequestDescriptor(url="https://example.com"))
        engine.get_status(sid, "req-1").state   # "Sending", later "Complete"
    """

    def __init__(
        self,
        *,
        max_workers: int = 4,
        stall_timeout: float = 30.0,
        idle_timeout: float = 3600.0,
        cleanup_interval: float = 300.0,
        user_agent: Optional[str] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._stall_timeout = stall_timeout
        self._idle_timeout = idle_timeout
        self._cleanup_interval = cleanup_interval
        self._user_agent = user_agent
        self._http_transport = http_transport
        self._clock = clock
        self._sessions: dict[str, _Session] = {}
        self._sessions_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="pollcurl-worker"
        )
        self._closed = False

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> HttpxTransport:
        return cls(
            max_workers=settings.max_workers,
            stall_timeout=settings.stall_timeout,
            idle_timeout=settings.idle_timeout,
            cleanup_interval=settings.cleanup_interval,
            user_agent=settings.user_agent,
        )

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    def create_session(self) -> str:
        if self._closed:
            raise TransportError("Transport is closed")
        session_id = str(uuid.uuid4())
        with self._sessions_lock:
            self._sessions[session_id] = _Session(self._clock())
        return session_id

    def destroy_session(self, session_id: str) -> bool:
        with self._sessions_lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        with session.lock:
            for entry in session.entries.values():
                entry.cancel_event.set()
            session.entries.clear()
        return True

    @property
    def session_count(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request(
        self,
        session_id: str,
        request_id: str,
        descriptor: Union[RequestDescriptor, Mapping[str, Any]],
    ) -> str:
        """Start *request_id* in the background and return immediately.

        Raises:
            TransportError: If the session does not exist or the id is
                still in flight.
        """
        session = self._session(session_id)
        if not isinstance(descriptor, RequestDescriptor):
            descriptor = RequestDescriptor.model_validate(descriptor)

        now = self._clock()
        with session.lock:
            existing = session.entries.get(request_id)
            if existing is not None and existing.state not in _TERMINAL and existing.state is not RequestState.IDLE:
                raise TransportError(
                    f"Request '{request_id}' is already in progress with state: {existing.state.value}",
                    request_id,
                )
            if existing is not None:
                existing.cancel_event.set()
            entry = _Entry(request_id=request_id, created_at=now, last_polled=now, updated_at=now)
            session.entries[request_id] = entry

        self._executor.submit(self._execute, session, entry, descriptor)
        return request_id

    def get_status(self, session_id: str, request_id: str) -> StatusReport:
        session = self._session(session_id)
        now = self._clock()
        self._maybe_cleanup(session, now)

        with session.lock:
            entry = session.entries.get(request_id)
            if entry is None:
                return StatusReport(
                    completed=True,
                    state=RequestState.ERROR.value,
                    error=f"Request '{request_id}' not found",
                )
            entry.last_polled = now
            if (
                entry.state in (RequestState.SENDING, RequestState.RECEIVING)
                and now - entry.updated_at > self._stall_timeout
            ):
                entry.state = RequestState.TIMEOUT
                entry.error = "Request timed out"
                entry.updated_at = now
                entry.cancel_event.set()
            return entry.snapshot()

    def cancel_request(self, session_id: str, request_id: str) -> bool:
        with self._sessions_lock:
            session = self._sessions.get(session_id)
        if session is None:
            return False
        with session.lock:
            entry = session.entries.get(request_id)
            if entry is None or entry.state in _TERMINAL:
                return False
            entry.cancel_event.set()
            entry.state = RequestState.CANCELLED
            entry.error = "Request was cancelled"
            entry.updated_at = self._clock()
        return True

    def acknowledge_request(self, session_id: str, request_id: str) -> bool:
        """Mark a request as consumed so housekeeping can drop it.

        The client acknowledges every request it has finished with, including
        ones it timed out locally while the engine still had them in flight.
        Those are stopped as well: the worker gives up at its next chunk and
        the pool slot is freed.
        """
        with self._sessions_lock:
            session = self._sessions.get(session_id)
        if session is None:
            return False
        with session.lock:
            entry = session.entries.get(request_id)
            if entry is None or entry.state is RequestState.ACKNOWLEDGED:
                return False
            if entry.state not in _TERMINAL:
                entry.cancel_event.set()
            entry.state = RequestState.ACKNOWLEDGED
            entry.updated_at = self._clock()
        return True

    def close(self) -> None:
        """Cancel everything in flight and stop the worker pool."""
        if self._closed:
            return
        self._closed = True
        with self._sessions_lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            self.destroy_session(session_id)
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------ #
    # Worker side
    # ------------------------------------------------------------------ #

    def _execute(self, session: _Session, entry: _Entry, descriptor: RequestDescriptor) -> None:
        try:
            self._run(session, entry, descriptor)
        except httpx.TimeoutException as exc:
            self._finish(session, entry, RequestState.TIMEOUT, f"Request timed out: {exc}")
        except Exception as exc:
            logger.debug("Request %s failed: %s", entry.request_id, exc)
            self._finish(session, entry, RequestState.ERROR, str(exc) or type(exc).__name__)

    def _run(self, session: _Session, entry: _Entry, d: RequestDescriptor) -> None:
        if not self._update(session, entry, state=RequestState.SENDING):
            return

        kwargs = self._request_kwargs(d)
        with self._client_for(d) as client:
            with client.stream(d.method, d.url, **kwargs) as response:
                if not self._update(
                    session,
                    entry,
                    state=RequestState.RECEIVING,
                    status=response.status_code,
                    headers=dict(response.headers),
                    body="",
                ):
                    return

                content_type = response.headers.get("content-type", "")
                if d.stream and "text/event-stream" in content_type:
                    finished = self._pump_events(session, entry, response)
                elif d.stream:
                    finished = self._pump_text(session, entry, response)
                else:
                    finished = self._read_all(session, entry, response)

        if finished:
            self._finish(session, entry, RequestState.COMPLETE, None)

    def _pump_text(self, session: _Session, entry: _Entry, response: httpx.Response) -> bool:
        for text in response.iter_text():
            if entry.cancel_event.is_set() or not self._append(session, entry, text):
                return False
        return True

    def _pump_events(self, session: _Session, entry: _Entry, response: httpx.Response) -> bool:
        buffer = ""
        for text in response.iter_text():
            if entry.cancel_event.is_set():
                return False
            blocks, buffer = split_events(buffer + text)
            for block in blocks:
                event = parse_event(block)
                if event is not None and not self._append(session, entry, event[1] + "\n"):
                    return False
        event = parse_event(buffer) if buffer.strip() else None
        if event is not None:
            return self._append(session, entry, event[1] + "\n")
        return True

    def _read_all(self, session: _Session, entry: _Entry, response: httpx.Response) -> bool:
        parts: list[str] = []
        for text in response.iter_text():
            if entry.cancel_event.is_set() or not self._update(session, entry):
                return False
            parts.append(text)
        return self._update(session, entry, body="".join(parts))

    def _update(self, session: _Session, entry: _Entry, **changes: Any) -> bool:
        """Apply *changes* to a live entry; ``False`` once it is terminal."""
        with session.lock:
            if entry.state in _TERMINAL:
                return False
            for name, value in changes.items():
                setattr(entry, name, value)
            entry.updated_at = self._clock()
        return True

    def _append(self, session: _Session, entry: _Entry, text: str) -> bool:
        with session.lock:
            if entry.state in _TERMINAL:
                return False
            entry.body = (entry.body or "") + text
            entry.updated_at = self._clock()
        return True

    def _finish(self, session: _Session, entry: _Entry, state: RequestState, error: Optional[str]) -> None:
        with session.lock:
            if entry.state in _TERMINAL:
                return
            entry.state = state
            entry.error = error
            entry.updated_at = self._clock()

    def _client_for(self, d: RequestDescriptor) -> httpx.Client:
        return httpx.Client(
            timeout=d.timeout if d.timeout is not None else DEFAULT_TIMEOUT,
            verify=not d.insecure,
            follow_redirects=d.follow_redirects,
            proxy=d.proxy,
            transport=self._http_transport,
        )

    def _request_kwargs(self, d: RequestDescriptor) -> dict[str, Any]:
        headers = dict(d.headers)
        if self._user_agent and not any(k.lower() == "user-agent" for k in headers):
            headers["User-Agent"] = self._user_agent

        kwargs: dict[str, Any] = {"headers": headers}
        if d.query:
            kwargs["params"] = d.query
        if d.auth is not None:
            kwargs["auth"] = (d.auth.username, d.auth.password)

        if d.form is not None:
            kwargs["data"] = d.form
        elif isinstance(d.body, JsonBody):
            kwargs["json"] = d.body.json_
        elif isinstance(d.body, FileBody):
            kwargs["content"] = Path(d.body.path).read_bytes()
        elif isinstance(d.body, RawBody):
            kwargs["content"] = d.body.raw
        return kwargs

    # ------------------------------------------------------------------ #
    # Housekeeping
    # ------------------------------------------------------------------ #

    def _session(self, session_id: str) -> _Session:
        with self._sessions_lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise TransportError(f"Session not found: {session_id}")
        return session

    def _maybe_cleanup(self, session: _Session, now: float) -> None:
        with session.lock:
            if now - session.last_cleanup <= self._cleanup_interval:
                return
            session.last_cleanup = now
            for request_id, entry in list(session.entries.items()):
                idle = now - entry.last_polled > self._idle_timeout
                if entry.state is RequestState.ACKNOWLEDGED or (idle and entry.state in _TERMINAL):
                    del session.entries[request_id]
                elif idle and entry.state is not RequestState.IDLE:
                    entry.state = RequestState.IDLE
                    entry.updated_at = now
