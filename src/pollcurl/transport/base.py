"""The contract between the polling client and a transport engine.

A transport owns sessions and executes requests on its own. The client only
ever talks to it through the non-blocking calls below; no futures or
promises cross the boundary.

Engines are resolved by name with :func:`load_transport`: ``"httpx"`` is
built in, and third-party packages can register their own under the
``pollcurl.transports`` entry-point group::

    [project.entry-points."pollcurl.transports"]
    my-engine = "my_package.engine:MyTransport"

A registered class is instantiated with ``from_settings(settings)`` when it
provides that classmethod, otherwise with no arguments.
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any, Mapping, Optional, Protocol, Union, runtime_checkable

from pollcurl.exceptions import TransportUnavailable
from pollcurl.models import ClientSettings, RequestDescriptor, StatusReport

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "pollcurl.transports"
"""The entry-point group name used for transport discovery."""

BUILTIN_TRANSPORT = "httpx"


@runtime_checkable
class Transport(Protocol):
    """Operations the client needs from an engine.

    Engines may additionally offer ``acknowledge_request(session_id,
    request_id) -> bool`` (release a delivered result) and ``close()``
    (release engine-wide resources); the client calls them when present.
    """

    def create_session(self) -> str: ...

    def destroy_session(self, session_id: str) -> bool: ...

    def request(
        self, session_id: str, request_id: str, descriptor: RequestDescriptor
    ) -> str: ...

    def get_status(
        self, session_id: str, request_id: str
    ) -> Union[StatusReport, Mapping[str, Any]]: ...

    def cancel_request(self, session_id: str, request_id: str) -> bool: ...


def load_transport(name: str = BUILTIN_TRANSPORT, settings: Optional[ClientSettings] = None) -> Transport:
    """Instantiate the transport engine called *name*.

    Args:
        name: ``"httpx"`` or the name of an entry point in the
            ``pollcurl.transports`` group.
        settings: Passed to the engine's ``from_settings`` when it has one.

    Returns:
        A ready transport.

    Raises:
        TransportUnavailable: If the engine is unknown, cannot be imported,
            fails to initialise, or does not implement :class:`Transport`.
    """
    settings = settings or ClientSettings()

    try:
        if name == BUILTIN_TRANSPORT:
            from pollcurl.transport.httpx_engine import HttpxTransport

            transport_cls: Any = HttpxTransport
        else:
            transport_cls = _find_entry_point(name).load()

        if hasattr(transport_cls, "from_settings"):
            transport = transport_cls.from_settings(settings)
        else:
            transport = transport_cls()
    except TransportUnavailable:
        raise
    except Exception as exc:
        raise TransportUnavailable(f"Failed to load transport '{name}': {exc}") from exc

    if not isinstance(transport, Transport):
        raise TransportUnavailable(
            f"Transport '{name}' does not implement the transport interface"
        )
    logger.debug("Loaded transport '%s' (%s)", name, type(transport).__name__)
    return transport


def _find_entry_point(name: str) -> importlib.metadata.EntryPoint:
    for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
        if ep.name == name:
            return ep
    raise TransportUnavailable(
        f"Unknown transport '{name}' (no '{ENTRY_POINT_GROUP}' entry point with that name)"
    )
