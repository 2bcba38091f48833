"""Background thread that drives timers and auto-advance for live sessions."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Callable

from chapter_quiz.constants.quiz_constants import TICKER_POLL_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SessionTicker:
    """Calls ``pump`` on a fixed interval until stopped."""

    def __init__(self, pump: Callable[[], None], interval_seconds: float = TICKER_POLL_INTERVAL_SECONDS) -> None:
        if interval_seconds <= 0:
            raise ValueError("Ticker interval must be positive.")
        self._pump = pump
        self._interval = interval_seconds
        self._stop_event = Event()
        self._thread: Thread | None = None

    def start(self) -> Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = Thread(target=self._run, name="SessionTicker", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._pump()
            except Exception:
                logger.exception("Session pump failed")
