"""Tests for the poll loop's scheduling and tick mechanics."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from pollcurl.client.dispatcher import CallbackDispatcher
from pollcurl.client.poller import DEFAULT_INTERVAL_MS, PollLoop
from pollcurl.client.session import SessionManager
from pollcurl.client.store import RequestStore
from pollcurl.models import RequestRecord, RequestState


def _loop_parts(transport, clock=None, interval_ms: int = DEFAULT_INTERVAL_MS):
    store = RequestStore()
    sessions = SessionManager(transport)
    sessions.create()
    kwargs = {"clock": clock} if clock is not None else {}
    poller = PollLoop(store, transport, sessions, CallbackDispatcher(), interval_ms=interval_ms, **kwargs)
    return store, sessions, poller


class TestTick:
    def test_empty_store(self, transport) -> None:
        _, _, poller = _loop_parts(transport)
        assert poller.tick() == 0

    def test_no_session_means_no_work(self, transport) -> None:
        store, sessions, poller = _loop_parts(transport)
        store.insert("r", RequestRecord(id="r"))
        sessions.destroy()
        assert poller.tick() == 0
        assert transport.status_calls == []

    def test_closed_loop_does_nothing(self, transport) -> None:
        store, _, poller = _loop_parts(transport)
        store.insert("r", RequestRecord(id="r"))
        poller.close()
        assert poller.tick() == 0

    def test_queries_each_non_terminal_record(self, transport) -> None:
        store, _, poller = _loop_parts(transport)
        store.insert("a", RequestRecord(id="a"))
        store.insert("b", RequestRecord(id="b", state=RequestState.CANCELLED))
        poller.tick()
        assert transport.status_calls == ["a"]
        assert "b" not in store

    def test_finish_logs_elapsed_time(self, transport, clock, caplog) -> None:
        store, _, poller = _loop_parts(transport, clock=clock)
        store.insert("a", RequestRecord(id="a", submitted_at=clock.now))
        transport.script("a", {"completed": True, "state": "Complete", "status": 200})
        clock.advance(2.5)
        with caplog.at_level("DEBUG", logger="pollcurl.client.poller"):
            poller.tick()
        assert "Request a finished as Complete after 2.500s (no callbacks)" in caplog.text

    def test_accepts_mapping_reports(self, transport) -> None:
        store, _, poller = _loop_parts(transport)
        record = RequestRecord(id="a")
        store.insert("a", record)
        transport.script("a", {"state": "Receiving", "status": 200, "body": "x", "extra": "ignored"})
        poller.tick()
        assert record.state is RequestState.RECEIVING
        assert record.last_body == "x"

    def test_chunk_callback_removing_record_stops_delivery(self, transport) -> None:
        store, _, poller = _loop_parts(transport)
        on_complete = MagicMock()
        record = RequestRecord(id="a", on_chunk=lambda s: store.remove("a"), on_complete=on_complete)
        store.insert("a", record)
        transport.script("a", {"completed": True, "state": "Complete", "body": "all"})
        poller.tick()
        on_complete.assert_not_called()


class TestScheduling:
    def test_start_without_loop_raises(self, transport) -> None:
        _, _, poller = _loop_parts(transport)
        with pytest.raises(RuntimeError):
            poller.start()
        assert not poller.running

    def test_interval_in_seconds(self, transport) -> None:
        _, _, poller = _loop_parts(transport, interval_ms=250)
        assert poller.interval == 0.25

    def test_ticks_repeat_until_stopped(self, transport) -> None:
        async def main() -> int:
            store, _, poller = _loop_parts(transport, interval_ms=1)
            store.insert("a", RequestRecord(id="a"))
            poller.start()
            await asyncio.sleep(0.05)
            poller.stop()
            count = len(transport.status_calls)
            await asyncio.sleep(0.02)
            assert len(transport.status_calls) == count
            return count

        assert asyncio.run(main()) >= 2

    def test_failing_tick_is_rescheduled(self, transport, monkeypatch) -> None:
        calls = []

        async def main() -> None:
            _, _, poller = _loop_parts(transport, interval_ms=1)

            def broken_tick() -> int:
                calls.append(1)
                raise RuntimeError("tick exploded")

            monkeypatch.setattr(poller, "tick", broken_tick)
            poller.start()
            await asyncio.sleep(0.03)
            poller.close()

        asyncio.run(main())
        assert len(calls) >= 2

    def test_start_is_idempotent(self, transport) -> None:
        async def main() -> None:
            _, _, poller = _loop_parts(transport)
            poller.start()
            handle = poller._handle
            poller.start()
            assert poller._handle is handle
            poller.close()
            assert not poller.running

        asyncio.run(main())
