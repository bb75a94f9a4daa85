"""Process-scoped client with init-on-first-use and explicit teardown.

A host application usually wants one client for its whole lifetime. A
:class:`ClientContext` owns that client: :meth:`ClientContext.get_client`
builds it lazily from the resolved settings, :meth:`ClientContext.reset`
destroys it. The module-level helpers delegate to a default context so
callers do not need to pass one around, mirroring how the CLI's output
manager is installed globally.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from pollcurl.client.polling_client import OptionsArg, PollingClient


class ClientContext:
    """Owns at most one :class:`PollingClient` at a time.

    Args:
        factory: Builds the client on first use. Defaults to a client
            configured from :func:`~pollcurl.config.resolve_settings`.
    """

    def __init__(self, factory: Optional[Callable[[], PollingClient]] = None) -> None:
        self._factory = factory or _default_factory
        self._client: Optional[PollingClient] = None

    @property
    def has_client(self) -> bool:
        return self._client is not None and not self._client.destroyed

    def get_client(self) -> PollingClient:
        """Return the live client, constructing it if needed."""
        if self._client is None or self._client.destroyed:
            self._client = self._factory()
        return self._client

    def set_client(self, client: PollingClient) -> None:
        """Install *client*, destroying any different client held before."""
        if self._client is not None and self._client is not client:
            self._client.destroy()
        self._client = client

    def reset(self) -> None:
        """Destroy the held client, if any. The next :meth:`get_client` builds a new one."""
        if self._client is not None:
            self._client.destroy()
        self._client = None


def _default_factory() -> PollingClient:
    from pollcurl.config import resolve_settings

    return PollingClient(settings=resolve_settings())


_context = ClientContext()


def create(**kwargs: Any) -> PollingClient:
    """Build a new, independent :class:`PollingClient`."""
    return PollingClient(**kwargs)


def get_context() -> ClientContext:
    return _context


def get_client() -> PollingClient:
    """Return the process-wide client, constructing it on first use."""
    return _context.get_client()


def set_client(client: PollingClient) -> None:
    """Install *client* as the process-wide client."""
    _context.set_client(client)


def reset_client() -> None:
    """Destroy the process-wide client.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    _context.reset()


def destroy() -> None:
    """Destroy the process-wide client; alias of :func:`reset_client`."""
    _context.reset()


# ------------------------------------------------------------------ #
# Convenience functions that use the process-wide client
# ------------------------------------------------------------------ #


def request(options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().request(options, **kwargs)


def get(url: str, options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().get(url, options, **kwargs)


def post(url: str, options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().post(url, options, **kwargs)


def put(url: str, options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().put(url, options, **kwargs)


def delete(url: str, options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().delete(url, options, **kwargs)


def head(url: str, options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().head(url, options, **kwargs)


def patch(url: str, options: OptionsArg = None, **kwargs: Any) -> str:
    return get_client().patch(url, options, **kwargs)


def cancel(request_id: str) -> bool:
    return get_client().cancel(request_id)


def poll_requests() -> int:
    return get_client().poll_requests()
