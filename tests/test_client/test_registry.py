"""Tests for the process-wide client and module-level helpers."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

import pollcurl
from pollcurl import client as client_module
from pollcurl.client import ClientContext, PollingClient
from pollcurl.models import ClientSettings

URL = "https://api.example.com/"


@pytest.fixture
def installed(transport, clock):
    c = PollingClient(transport, clock=clock, autostart=False)
    client_module.set_client(c)
    return c


class TestClientContext:
    def test_lazy_construction(self, transport) -> None:
        factory = MagicMock(side_effect=lambda: PollingClient(transport, autostart=False))
        ctx = ClientContext(factory)
        assert not ctx.has_client
        first = ctx.get_client()
        assert ctx.get_client() is first
        factory.assert_called_once()
        ctx.reset()

    def test_rebuilds_after_destroy(self, transport) -> None:
        ctx = ClientContext(lambda: PollingClient(transport, autostart=False))
        first = ctx.get_client()
        first.destroy()
        assert not ctx.has_client
        second = ctx.get_client()
        assert second is not first
        ctx.reset()

    def test_set_client_destroys_previous(self, transport) -> None:
        ctx = ClientContext()
        old = PollingClient(transport, autostart=False)
        new = PollingClient(transport, autostart=False)
        ctx.set_client(old)
        ctx.set_client(new)
        assert old.destroyed
        assert not new.destroyed
        ctx.reset()
        assert new.destroyed

    def test_default_factory_uses_resolved_settings(self, isolated_config, monkeypatch) -> None:
        monkeypatch.setenv("POLLCURL_POLL_INTERVAL_MS", "250")
        ctx = ClientContext()
        c = ctx.get_client()
        try:
            assert c.settings.poll_interval_ms == 250
            assert c.polling is False
        finally:
            ctx.reset()


class TestModuleHelpers:
    def test_get_client_returns_installed(self, installed) -> None:
        assert client_module.get_client() is installed

    def test_verbs_delegate(self, installed, transport) -> None:
        for verb in ("get", "post", "put", "delete", "head", "patch"):
            getattr(pollcurl, verb)(URL)
            assert transport.last_request[2].method == verb.upper()

    def test_request_cancel_and_poll(self, installed, transport) -> None:
        on_error = MagicMock()
        rid = pollcurl.request({"url": URL}, on_error=on_error)
        assert pollcurl.cancel(rid) is True
        assert pollcurl.poll_requests() == 1
        on_error.assert_called_once()

    def test_destroy_tears_down_singleton(self, installed) -> None:
        pollcurl.destroy()
        assert installed.destroyed
        assert not client_module.get_context().has_client

    def test_create_returns_independent_client(self, installed, transport) -> None:
        other = pollcurl.create(transport=transport, autostart=False, settings=ClientSettings())
        try:
            assert other is not installed
            assert other.session_id != installed.session_id
        finally:
            other.destroy()
