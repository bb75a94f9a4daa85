"""Exception hierarchy for pollcurl.

All exceptions inherit from :class:`PollcurlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`pollcurl.exit_codes`.
The CLI entry point in :func:`pollcurl.app.main` catches ``PollcurlError``
and exits with the matching code.

Two families live here. Errors *raised* to the caller signal misuse or an
unusable engine (:class:`TransportUnavailable`, :class:`ClientDestroyed`,
:class:`InvalidOptionsError`, ...). Errors *delivered* through a request's
``on_error`` callback describe how a single request ended
(:class:`RequestFailed` and its subclasses); they are never thrown into the
poll loop.

Subclass hierarchy::

    PollcurlError (exit 1)
    +-- InvalidOptionsError   (exit 2)
    +-- ConfigError           (exit 1)
    +-- TransportUnavailable  (exit 11)
    +-- ClientDestroyed       (exit 1)
    +-- DuplicateId           (exit 1)
    +-- UnknownRequest        (exit 1)
    +-- CallbackFailure       (exit 1)
    +-- HTTPStatusError       (exit 1, or 5 for 5xx)
    +-- RequestFailed         (exit 6)
        +-- TransportError    (exit 6)
        +-- RequestTimeout    (exit 8)
        +-- RequestCancelled  (exit 9)
"""

from __future__ import annotations

from typing import Optional

from pollcurl.exit_codes import (
    EXIT_CANCELLED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SERVER_ERROR,
    EXIT_TIMEOUT,
    EXIT_TRANSPORT_ERROR,
    EXIT_TRANSPORT_UNAVAILABLE,
)


class PollcurlError(Exception):
    """Base exception for all pollcurl errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidOptionsError(PollcurlError):
    """Raised when request options fail validation."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(PollcurlError):
    """Raised for configuration problems (invalid JSON, bad values, bad env vars)."""

    exit_code = EXIT_GENERIC_FAILURE


class TransportUnavailable(PollcurlError):
    """Raised when the transport engine is missing or fails to initialise.

    Fatal to client construction: :func:`pollcurl.client.create` surfaces it
    immediately.
    """

    exit_code = EXIT_TRANSPORT_UNAVAILABLE


class ClientDestroyed(PollcurlError):
    """Raised when a request is submitted to a client after :meth:`destroy`."""


class DuplicateId(PollcurlError):
    """Raised when a request id is already live in a store."""


class UnknownRequest(PollcurlError):
    """Raised (or logged) when an operation names a request id the client does not track."""


class CallbackFailure(PollcurlError):
    """Wraps an exception raised by a user callback.

    Never propagated into the poll loop; the dispatcher logs it and hands it
    to the notification collaborator.
    """

    def __init__(self, message: str, callback_name: str = "", request_id: str = ""):
        super().__init__(message)
        self.callback_name = callback_name
        self.request_id = request_id


class RequestFailed(PollcurlError):
    """Base class for the errors handed to a request's ``on_error`` callback.

    Attributes:
        request_id: Identifier of the request that failed.
        state: The terminal lifecycle state (``"Error"``, ``"Timeout"``,
            ``"Cancelled"``).
        status: HTTP status from the last status snapshot, if any.
    """

    exit_code = EXIT_TRANSPORT_ERROR
    state: str = "Error"

    def __init__(self, message: str, request_id: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.request_id = request_id
        self.status = status


class TransportError(RequestFailed):
    """The transport reported a failure for the request."""

    state = "Error"


class RequestTimeout(RequestFailed):
    """The request exceeded its deadline before reaching a terminal state."""

    exit_code = EXIT_TIMEOUT
    state = "Timeout"


class RequestCancelled(RequestFailed):
    """The request was cancelled by the caller."""

    exit_code = EXIT_CANCELLED
    state = "Cancelled"


class HTTPStatusError(PollcurlError):
    """Raised by the CLI's ``--fail`` mode when the response status is 4xx or 5xx."""

    def __init__(self, message: str, status: int):
        super().__init__(
            message, exit_code=EXIT_SERVER_ERROR if status >= 500 else EXIT_GENERIC_FAILURE
        )
        self.status = status
