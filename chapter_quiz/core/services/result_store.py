"""Result store collaborator with a storage-level uniqueness constraint and a change stream."""

from __future__ import annotations

from dataclasses import replace
import logging
import queue
from threading import Lock
from typing import Iterator, Protocol

from chapter_quiz.constants.quiz_constants import RESULTS_TABLE
from chapter_quiz.core.errors import DuplicateResultError
from chapter_quiz.core.models import ChangeEvent, ChangeKind, Result

logger = logging.getLogger(__name__)


class ResultStore(Protocol):
    def find_by_identity(self, phone: str, chapter_id: str) -> Result | None: ...

    def insert(self, result: Result) -> Result: ...

    def query_by_chapter(self, chapter_id: str) -> list[Result]: ...

    def query_all(self) -> list[Result]: ...

    def subscribe_changes(self, table: str) -> "ChangeSubscription": ...


class ChangeSubscription:
    """Queue-backed stream of change events for one table."""

    def __init__(self, table: str, on_close=None) -> None:
        self.table = table
        self._queue: queue.SimpleQueue[ChangeEvent | None] = queue.SimpleQueue()
        self._closed = False
        self._on_close = on_close

    def publish(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._queue.put(event)

    def drain(self) -> list[ChangeEvent]:
        """Return every queued event without blocking."""
        events: list[ChangeEvent] = []
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return events
            if event is not None:
                events.append(event)

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Block for the next event; None on timeout or after close."""
        if self._closed and self._queue.empty():
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        if self._on_close is not None:
            self._on_close(self)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[ChangeEvent]:
        while True:
            event = self._queue.get()
            if event is None:
                return
            yield event


class InMemoryResultStore:
    """Thread-safe result table keyed by id, unique on (phone, chapter)."""

    def __init__(self, enforce_unique: bool = True) -> None:
        self._rows: dict[int, Result] = {}
        self._next_id: int = 1
        self._enforce_unique = enforce_unique
        self._subscriptions: list[ChangeSubscription] = []
        self._lock = Lock()

    def find_by_identity(self, phone: str, chapter_id: str) -> Result | None:
        with self._lock:
            return self._find_locked(phone, chapter_id)

    def insert(self, result: Result) -> Result:
        with self._lock:
            if self._enforce_unique and self._find_locked(result.phone, result.chapter_id):
                raise DuplicateResultError(
                    f"Result for {result.phone} in chapter {result.chapter_id!r} already exists."
                )
            stored = replace(result, id=self._next_id)
            self._rows[stored.id] = stored
            self._next_id += 1
            subscribers = list(self._subscriptions)
        logger.info("Stored result %s for %s in chapter %s", stored.id, stored.phone, stored.chapter_id)
        self._publish(subscribers, ChangeEvent(table=RESULTS_TABLE, kind=ChangeKind.INSERT, new=stored))
        return stored

    def delete(self, result_id: int) -> Result | None:
        with self._lock:
            removed = self._rows.pop(result_id, None)
            subscribers = list(self._subscriptions)
        if removed is not None:
            self._publish(subscribers, ChangeEvent(table=RESULTS_TABLE, kind=ChangeKind.DELETE, old=removed))
        return removed

    def query_by_chapter(self, chapter_id: str) -> list[Result]:
        with self._lock:
            return [row for row in self._rows.values() if row.chapter_id == chapter_id]

    def query_all(self) -> list[Result]:
        with self._lock:
            return list(self._rows.values())

    def subscribe_changes(self, table: str = RESULTS_TABLE) -> ChangeSubscription:
        if table != RESULTS_TABLE:
            raise ValueError(f"Unknown table {table!r}.")
        subscription = ChangeSubscription(table, on_close=self._unsubscribe)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ChangeSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _find_locked(self, phone: str, chapter_id: str) -> Result | None:
        return next(
            (row for row in self._rows.values() if row.phone == phone and row.chapter_id == chapter_id),
            None,
        )

    @staticmethod
    def _publish(subscribers: list[ChangeSubscription], event: ChangeEvent) -> None:
        for subscription in subscribers:
            subscription.publish(event)
