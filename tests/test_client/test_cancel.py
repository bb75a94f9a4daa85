"""Tests for the cancellation controller."""

from __future__ import annotations

import logging

from pollcurl.client.cancel import CancellationController
from pollcurl.client.dispatcher import CANCELLED_MESSAGE
from pollcurl.client.session import SessionManager
from pollcurl.client.store import RequestStore
from pollcurl.models import RequestRecord, RequestState


def _controller(transport):
    store = RequestStore()
    sessions = SessionManager(transport)
    sessions.create()
    return store, sessions, CancellationController(store, transport, sessions)


class TestCancel:
    def test_sets_state_before_forwarding(self, transport, monkeypatch) -> None:
        store, _, controller = _controller(transport)
        record = RequestRecord(id="a", state=RequestState.RECEIVING)
        store.insert("a", record)
        seen = []

        def cancel_request(session_id: str, request_id: str) -> bool:
            seen.append(record.state)
            return True

        monkeypatch.setattr(transport, "cancel_request", cancel_request)
        assert controller.cancel("a") is True
        assert seen == [RequestState.CANCELLED]
        assert record.error == CANCELLED_MESSAGE

    def test_unknown_id_is_logged(self, transport, caplog) -> None:
        _, _, controller = _controller(transport)
        with caplog.at_level(logging.INFO, logger="pollcurl.client.cancel"):
            assert controller.cancel("ghost") is False
        assert "unknown request" in caplog.text

    def test_terminal_record_untouched(self, transport) -> None:
        store, _, controller = _controller(transport)
        store.insert("a", RequestRecord(id="a", state=RequestState.COMPLETE))
        assert controller.cancel("a") is False
        assert store.get("a").state is RequestState.COMPLETE

    def test_transport_exception_returns_false(self, transport, monkeypatch) -> None:
        store, _, controller = _controller(transport)
        store.insert("a", RequestRecord(id="a"))

        def boom(session_id: str, request_id: str) -> bool:
            raise RuntimeError("engine gone")

        monkeypatch.setattr(transport, "cancel_request", boom)
        assert controller.cancel("a") is False
        assert store.get("a").state is RequestState.CANCELLED

    def test_without_session_stays_local(self, transport) -> None:
        store, sessions, controller = _controller(transport)
        store.insert("a", RequestRecord(id="a"))
        sessions.destroy()
        assert controller.cancel("a") is False
        assert transport.cancelled == []
