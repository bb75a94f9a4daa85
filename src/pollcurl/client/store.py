"""In-memory table of outstanding requests, keyed by request id.

The owning client is the only writer. Every mutating operation takes the
same re-entrant lock, so the store also stays consistent when a host drives
it from more than one thread; callbacks running inside
:meth:`RequestStore.for_each_mutable` may call back into the store from the
same thread.
"""

from __future__ import annotations

from threading import RLock
from typing import Callable, Iterator, Optional

from pollcurl.exceptions import DuplicateId
from pollcurl.models import RequestRecord


class RequestStore:
    """Mapping from request id to :class:`~pollcurl.models.RequestRecord`.

    Only live ids are checked for duplicates. Removed ids are forgotten, so
    the store stays bounded for long-lived clients; the client never hands
    out the same id twice.
    """

    def __init__(self) -> None:
        self._records: dict[str, RequestRecord] = {}
        self._lock = RLock()

    def insert(self, request_id: str, record: RequestRecord) -> None:
        """Add *record* under *request_id*.

        Raises:
            DuplicateId: If the id is already live.
        """
        with self._lock:
            if request_id in self._records:
                raise DuplicateId(f"Request id already used: {request_id}")
            self._records[request_id] = record

    def get(self, request_id: str) -> Optional[RequestRecord]:
        with self._lock:
            return self._records.get(request_id)

    def remove(self, request_id: str) -> None:
        """Delete the entry for *request_id*; no-op if absent."""
        with self._lock:
            self._records.pop(request_id, None)

    def for_each_mutable(self, fn: Callable[[RequestRecord], None]) -> None:
        """Call *fn* on every live record.

        Iterates over a snapshot, so *fn* may insert or remove entries.
        Records removed by an earlier call in the same pass are skipped.
        Iteration order is unspecified.
        """
        with self._lock:
            for request_id, record in list(self._records.items()):
                if self._records.get(request_id) is record:
                    fn(record)

    def clear(self) -> None:
        """Drop every live record."""
        with self._lock:
            self._records.clear()

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def __contains__(self, request_id: object) -> bool:
        with self._lock:
            return request_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())
