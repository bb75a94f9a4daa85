"""Transport engines for pollcurl.

:mod:`pollcurl.transport.base` defines the poll-based contract the client
consumes and resolves engines by name. :mod:`pollcurl.transport.httpx_engine`
provides the built-in engine, which runs requests on its own worker pool and
answers status queries from an in-memory table.
"""

from pollcurl.transport.base import (
    BUILTIN_TRANSPORT,
    ENTRY_POINT_GROUP,
    Transport,
    load_transport,
)

__all__ = ["BUILTIN_TRANSPORT", "ENTRY_POINT_GROUP", "Transport", "load_transport"]
