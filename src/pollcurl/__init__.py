"""pollcurl -- a callback-driven HTTP client over a poll-based transport.

Requests are handed to a non-blocking transport engine that runs them in
the background. A recurring poll tick asks the engine for status snapshots
and turns them into ``on_chunk``, ``on_complete``, and ``on_error``
callbacks, so a single-threaded host can keep many requests in flight.

Typical use::

    import pollcurl

    client = pollcurl.create()
    client.post(
        "https://httpbin.org/post",
        body={"hello": "world"},
        on_complete=lambda resp: print(resp.status, resp.json()),
        on_error=lambda exc: print("failed:", exc),
    )

The ``pollcurl`` console script exposes the same client on the command line.

Modules:
    app: Typer application and CLI entry point.
    client: The polling client, its poll loop, and the process-wide client.
    transport: The transport contract and the built-in httpx engine.
    models: Pydantic models shared across the entire package.
    config: XDG-aware settings management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from pollcurl.client import (  # noqa: E402
    PollingClient,
    cancel,
    create,
    delete,
    destroy,
    get,
    get_client,
    head,
    patch,
    poll_requests,
    post,
    put,
    request,
)
from pollcurl.models import ClientSettings, RequestOptions, RequestState, Response  # noqa: E402

__all__ = [
    "ClientSettings",
    "PollingClient",
    "RequestOptions",
    "RequestState",
    "Response",
    "__version__",
    "cancel",
    "create",
    "delete",
    "destroy",
    "get",
    "get_client",
    "head",
    "patch",
    "poll_requests",
    "post",
    "put",
    "request",
]
