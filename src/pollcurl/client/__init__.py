"""Polling HTTP client for pollcurl.

Multiplexes many in-flight requests onto one poll tick against a
non-blocking transport and exposes a callback API:

* :mod:`~pollcurl.client.polling_client` -- the :class:`PollingClient` facade.
* :mod:`~pollcurl.client.session` -- transport session ownership.
* :mod:`~pollcurl.client.store` -- the table of outstanding requests.
* :mod:`~pollcurl.client.states` -- the lifecycle state machine.
* :mod:`~pollcurl.client.stream` -- chunk extraction from cumulative bodies.
* :mod:`~pollcurl.client.poller` -- the recurring poll tick.
* :mod:`~pollcurl.client.dispatcher` -- isolated callback invocation.
* :mod:`~pollcurl.client.cancel` -- caller-initiated cancellation.
* :mod:`~pollcurl.client.registry` -- the process-wide client.

Example::

    from pollcurl import client

    request_id = client.get(
        "https://example.com",
        headers={"User-Agent": "docs"},
        on_complete=lambda resp: print(resp.status),
    )
    client.poll_requests()   # or let the event-loop tick do it
"""

from pollcurl.client.polling_client import PollingClient
from pollcurl.client.registry import (
    ClientContext,
    cancel,
    create,
    delete,
    destroy,
    get,
    get_client,
    get_context,
    head,
    patch,
    poll_requests,
    post,
    put,
    request,
    reset_client,
    set_client,
)

__all__ = [
    "ClientContext",
    "PollingClient",
    "cancel",
    "create",
    "delete",
    "destroy",
    "get",
    "get_client",
    "get_context",
    "head",
    "patch",
    "poll_requests",
    "post",
    "put",
    "request",
    "reset_client",
    "set_client",
]
