"""Callback-driven HTTP client over a poll-based transport.

:class:`PollingClient` is the facade callers use. It validates request
options, assigns request ids, records each request in a
:class:`~pollcurl.client.store.RequestStore`, hands the request to the
transport, and lets a :class:`~pollcurl.client.poller.PollLoop` turn status
snapshots into ``on_chunk``/``on_complete``/``on_error`` calls.

Example::

    async def main() -> None:
        async with PollingClient() as client:
            done = asyncio.get_running_loop().create_future()
            client.get(
                "https://example.com",
                on_complete=done.set_result,
                on_error=done.set_exception,
            )
            response = await done
            print(response.status, response.body)
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import secrets
import time
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from pollcurl.client.cancel import CancellationController
from pollcurl.client.dispatcher import CallbackDispatcher
from pollcurl.client.poller import PollLoop
from pollcurl.client.session import SessionManager
from pollcurl.client.store import RequestStore
from pollcurl.exceptions import ClientDestroyed, InvalidOptionsError
from pollcurl.models import ClientSettings, RequestOptions, RequestRecord, RequestState
from pollcurl.transport.base import Transport, load_transport

logger = logging.getLogger(__name__)

OptionsArg = Union[RequestOptions, Mapping[str, Any], None]


class PollingClient:
    """Manages many concurrent requests against one transport session.

    Args:
        transport: Engine to use. When ``None`` the engine named by
            ``settings.transport`` is loaded and owned (closed on
            :meth:`destroy`).
        settings: Client tunables; defaults to :class:`ClientSettings`.
        notify: Receives a message for every callback failure.
        clock: Monotonic clock used for request deadlines.
        autostart: Start the poll tick on the running event loop (or
            *loop*). Without a loop the client stays in manual mode and
            :meth:`poll_requests` must be called by the host.
        loop: Event loop to schedule ticks on.

    Raises:
        TransportUnavailable: If the engine cannot be loaded or refuses to
            create a session.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settings: Optional[ClientSettings] = None,
        *,
        notify: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        autostart: bool = True,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._owns_transport = transport is None
        self._transport: Transport = transport or load_transport(
            self._settings.transport, self._settings
        )
        self._clock = clock

        self._sessions = SessionManager(self._transport)
        try:
            self._sessions.create()
        except Exception:
            self._close_transport()
            raise

        self._store = RequestStore()
        self._dispatcher = CallbackDispatcher(notify=notify)
        self._poller = PollLoop(
            self._store,
            self._transport,
            self._sessions,
            self._dispatcher,
            interval_ms=self._settings.poll_interval_ms,
            clock=clock,
        )
        self._canceller = CancellationController(self._store, self._transport, self._sessions)
        self._destroyed = False

        if autostart:
            self.start_polling(loop)

    # ------------------------------------------------------------------ #
    # Context managers
    # ------------------------------------------------------------------ #

    def __enter__(self) -> PollingClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.destroy()

    async def __aenter__(self) -> PollingClient:
        self.start_polling()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.destroy()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def session_id(self) -> Optional[str]:
        return self._sessions.session_id

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def store(self) -> RequestStore:
        return self._store

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def polling(self) -> bool:
        """Whether the poll tick is scheduled on an event loop."""
        return self._poller.running

    @property
    def pending(self) -> int:
        """Number of requests still tracked."""
        return len(self._store)

    def get_state(self, request_id: str) -> Optional[RequestState]:
        """Return the current local state of *request_id*, or ``None`` once it is gone."""
        record = self._store.get(request_id)
        return record.state if record is not None else None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request(self, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a request and return its id immediately.

        Options may be given as a :class:`RequestOptions`, a mapping, keyword
        arguments, or a mix (keywords win).

        Raises:
            ClientDestroyed: After :meth:`destroy`.
            InvalidOptionsError: If the options fail validation.
        """
        if self._destroyed:
            raise ClientDestroyed("Client has been destroyed; create a new one")

        opts = self._build_options(options, kwargs)
        if "timeout" not in opts.model_fields_set:
            opts = opts.model_copy(update={"timeout": self._settings.default_timeout})

        request_id = self._new_request_id(opts.url)
        now = self._clock()
        record = RequestRecord(
            id=request_id,
            on_complete=opts.on_complete,
            on_error=opts.on_error,
            on_chunk=opts.on_chunk,
            timeout_deadline=now + opts.timeout if opts.timeout is not None else None,
            method=opts.method,
            url=opts.url,
            submitted_at=now,
        )

        session_id = self._sessions.session_id
        if session_id is None:
            raise ClientDestroyed("Transport session is gone; create a new client")
        self._store.insert(request_id, record)
        try:
            self._transport.request(session_id, request_id, opts.descriptor())
        except Exception as exc:
            # Delivered through on_error on the next tick.
            logger.warning("Transport rejected request %s: %s", request_id, exc)
            record.state = RequestState.ERROR
            record.error = f"Transport rejected request: {exc}"
        else:
            logger.debug("Submitted %s %s as %s", opts.method, opts.url, request_id)
        return request_id

    def get(self, url: str, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a GET request. See :meth:`request`."""
        return self.request(options, **{**kwargs, "url": url, "method": "GET"})

    def post(self, url: str, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a POST request. See :meth:`request`."""
        return self.request(options, **{**kwargs, "url": url, "method": "POST"})

    def put(self, url: str, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a PUT request. See :meth:`request`."""
        return self.request(options, **{**kwargs, "url": url, "method": "PUT"})

    def delete(self, url: str, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a DELETE request. See :meth:`request`."""
        return self.request(options, **{**kwargs, "url": url, "method": "DELETE"})

    def head(self, url: str, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a HEAD request. See :meth:`request`."""
        return self.request(options, **{**kwargs, "url": url, "method": "HEAD"})

    def patch(self, url: str, options: OptionsArg = None, **kwargs: Any) -> str:
        """Submit a PATCH request. See :meth:`request`."""
        return self.request(options, **{**kwargs, "url": url, "method": "PATCH"})

    def cancel(self, request_id: str) -> bool:
        """Cancel *request_id*; see :class:`~pollcurl.client.cancel.CancellationController`."""
        if self._destroyed:
            return False
        return self._canceller.cancel(request_id)

    # ------------------------------------------------------------------ #
    # Polling
    # ------------------------------------------------------------------ #

    def poll_requests(self) -> int:
        """Run one poll tick now. Returns the number of requests examined."""
        return self._poller.tick()

    def start_polling(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """Schedule the poll tick on *loop* or the running loop.

        Returns:
            ``False`` when no loop is available (manual mode).
        """
        if self._destroyed:
            return False
        try:
            self._poller.start(loop)
        except RuntimeError:
            logger.debug("No running event loop; poll_requests() must be driven manually")
            return False
        return True

    def stop_polling(self) -> None:
        self._poller.stop()

    # ------------------------------------------------------------------ #
    # Teardown
    # ------------------------------------------------------------------ #

    def destroy(self) -> None:
        """Stop polling, drop every request, and release the session.

        No callback fires after this returns. Idempotent.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._poller.close()
        self._dispatcher.cancel_pending()
        dropped = len(self._store)
        self._store.clear()
        self._sessions.destroy()
        if self._owns_transport:
            self._close_transport()
        logger.debug("Client destroyed (%d request(s) dropped)", dropped)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_options(self, options: OptionsArg, overrides: dict[str, Any]) -> RequestOptions:
        if isinstance(options, RequestOptions) and not overrides:
            return options
        if isinstance(options, RequestOptions):
            data = {name: getattr(options, name) for name in options.model_fields_set}
        else:
            data = dict(options or {})
        data.update(overrides)
        try:
            return RequestOptions.model_validate(data)
        except ValidationError as exc:
            raise InvalidOptionsError(f"Invalid request options: {exc}") from exc

    @staticmethod
    def _new_request_id(url: str) -> str:
        """Fingerprint of URL, timestamp, and randomness."""
        seed = f"{url}|{time.time_ns()}|{secrets.token_hex(8)}"
        return hashlib.sha256(seed.encode("utf-8")).hexdigest()

    def _close_transport(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception:
            logger.warning("Transport close failed", exc_info=True)
