"""Isolated invocation of user callbacks.

A callback that raises never reaches the poll loop and never marks its
request as failed. The failure is logged and handed to an optional
``notify`` collaborator (the CLI routes it to stderr).

Coroutine callbacks are scheduled as fire-and-forget tasks on the running
event loop. Plain callbacks run inline on the poll tick, so a callback that
blocks stalls delivery for every other request until it returns.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from pollcurl.exceptions import (
    CallbackFailure,
    RequestCancelled,
    RequestFailed,
    RequestTimeout,
    TransportError,
)
from pollcurl.models import RequestRecord, RequestState

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Request was cancelled"


class CallbackDispatcher:
    """Invokes request callbacks with per-invocation failure isolation.

    Args:
        notify: Optional side channel receiving a one-line message for every
            callback failure.
    """

    def __init__(self, notify: Optional[Callable[[str], None]] = None) -> None:
        self._notify = notify
        self._tasks: set[asyncio.Future[Any]] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def invoke(
        self,
        callback: Callable[..., Any],
        *args: Any,
        name: str = "callback",
        request_id: str = "",
    ) -> bool:
        """Call *callback* with *args*, containing any failure.

        Returns:
            ``False`` if the callback raised synchronously, ``True`` otherwise.
        """
        try:
            result = callback(*args)
        except Exception as exc:
            self._report(name, request_id, exc)
            return False
        if inspect.isawaitable(result):
            self._schedule(result, name, request_id)
        return True

    def deliver_chunk(self, record: RequestRecord, suffix: str) -> bool:
        if record.on_chunk is None:
            return False
        return self.invoke(record.on_chunk, suffix, name="on_chunk", request_id=record.id)

    def deliver_terminal(self, record: RequestRecord) -> bool:
        """Fire the callback matching *record*'s terminal state, at most once.

        ``on_complete`` receives a :class:`~pollcurl.models.Response`;
        ``on_error`` receives a :class:`~pollcurl.exceptions.RequestFailed`
        subclass. Either way the record's obligations are discharged, even
        when no callback is registered or the callback raises.

        Returns:
            ``True`` if a callback was invoked by this call.
        """
        if record.callbacks_discharged:
            return False
        record.callbacks_discharged = True

        if record.state is RequestState.COMPLETE:
            if record.on_complete is None:
                return False
            self.invoke(
                record.on_complete,
                record.to_response(),
                name="on_complete",
                request_id=record.id,
            )
            return True

        error = build_error(record)
        if error is None or record.on_error is None:
            return False
        self.invoke(record.on_error, error, name="on_error", request_id=record.id)
        return True

    def cancel_pending(self) -> None:
        """Cancel every scheduled coroutine callback that has not finished."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _schedule(self, awaitable: Any, name: str, request_id: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._report(name, request_id, RuntimeError("no running event loop for coroutine callback"))
            return

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(fut: asyncio.Future[Any]) -> None:
            self._tasks.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                self._report(name, request_id, exc)

        task.add_done_callback(_done)

    def _report(self, name: str, request_id: str, exc: BaseException) -> None:
        failure = CallbackFailure(
            f"Error in {name} for request {request_id}: {exc}",
            callback_name=name,
            request_id=request_id,
        )
        logger.error("%s", failure, exc_info=(type(exc), exc, exc.__traceback__))
        if self._notify is None:
            return
        try:
            self._notify(str(failure))
        except Exception:
            logger.exception("Callback failure notification handler raised")


def build_error(record: RequestRecord) -> Optional[RequestFailed]:
    """Return the error object ``on_error`` receives for *record*'s state."""
    if record.state is RequestState.ERROR:
        return TransportError(record.error or "Request failed", record.id, record.status)
    if record.state is RequestState.TIMEOUT:
        return RequestTimeout(record.error or "Request timed out", record.id, record.status)
    if record.state is RequestState.CANCELLED:
        return RequestCancelled(record.error or CANCELLED_MESSAGE, record.id, record.status)
    return None
