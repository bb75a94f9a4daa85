"""Tests for transport resolution."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from pollcurl.exceptions import TransportUnavailable
from pollcurl.models import ClientSettings
from pollcurl.transport import ENTRY_POINT_GROUP, Transport, load_transport
from pollcurl.transport.httpx_engine import HttpxTransport


class _Configurable:
    def __init__(self, settings: ClientSettings) -> None:
        self.settings = settings

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "_Configurable":
        return cls(settings)

    def create_session(self) -> str:
        return "s"

    def destroy_session(self, session_id: str) -> bool:
        return True

    def request(self, session_id, request_id, descriptor) -> str:
        return request_id

    def get_status(self, session_id, request_id):
        return {}

    def cancel_request(self, session_id, request_id) -> bool:
        return True


def _entry_point(name: str, target) -> MagicMock:
    ep = MagicMock()
    ep.name = name
    ep.load.return_value = target
    return ep


class TestLoadTransport:
    def test_builtin(self) -> None:
        engine = load_transport("httpx", ClientSettings(max_workers=2))
        try:
            assert isinstance(engine, HttpxTransport)
            assert isinstance(engine, Transport)
        finally:
            engine.close()

    def test_fake_satisfies_protocol(self, transport) -> None:
        assert isinstance(transport, Transport)

    def test_entry_point_with_from_settings(self) -> None:
        settings = ClientSettings(poll_interval_ms=7)
        with patch(
            "pollcurl.transport.base.importlib.metadata.entry_points",
            return_value=[_entry_point("custom", _Configurable)],
        ) as eps:
            engine = load_transport("custom", settings)
        eps.assert_called_once_with(group=ENTRY_POINT_GROUP)
        assert engine.settings is settings

    def test_unknown_name(self) -> None:
        with patch("pollcurl.transport.base.importlib.metadata.entry_points", return_value=[]):
            with pytest.raises(TransportUnavailable, match="Unknown transport 'nope'"):
                load_transport("nope")

    def test_load_failure_wrapped(self) -> None:
        ep = MagicMock()
        ep.name = "broken"
        ep.load.side_effect = ImportError("missing module")
        with patch("pollcurl.transport.base.importlib.metadata.entry_points", return_value=[ep]):
            with pytest.raises(TransportUnavailable, match="missing module"):
                load_transport("broken")

    def test_rejects_non_transport(self) -> None:
        with patch(
            "pollcurl.transport.base.importlib.metadata.entry_points",
            return_value=[_entry_point("odd", object)],
        ):
            with pytest.raises(TransportUnavailable, match="does not implement"):
                load_transport("odd")
