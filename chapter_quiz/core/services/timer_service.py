"""Session deadline countdown with a single-fire expiry signal."""

from __future__ import annotations

from dataclasses import dataclass
import math

from chapter_quiz.constants.quiz_constants import TIMER_TICK_SECONDS


@dataclass(slots=True, frozen=True)
class TimerTick:
    remaining_seconds: int


@dataclass(slots=True, frozen=True)
class TimerExpired:
    elapsed_seconds: int


TimerEvent = TimerTick | TimerExpired


class TimerService:
    """Counts down from the configured duration, one step per elapsed second.

    ``tick`` performs one decrement. ``advance`` converts monotonic clock
    readings into whole-second ticks so a late poll catches up instead of
    drifting. The expiry event is emitted once; later ticks are no-ops. A
    disabled timer (preview sessions) never counts down and never expires.
    """

    def __init__(self, duration_minutes: float, enabled: bool = True) -> None:
        if not math.isfinite(duration_minutes) or duration_minutes <= 0:
            raise ValueError("Timer duration must be positive.")
        self._total_seconds = max(1, int(round(duration_minutes * 60)))
        self._remaining_seconds = self._total_seconds
        self._enabled = enabled
        self._running = False
        self._expiry_fired = False
        self._last_tick_at: float | None = None

    def start(self, now: float) -> None:
        if not self._enabled:
            return
        self._running = True
        self._last_tick_at = now

    def stop(self) -> None:
        self._running = False

    def tick(self) -> list[TimerEvent]:
        if not self._running or self._expiry_fired:
            return []
        self._remaining_seconds = max(0, self._remaining_seconds - TIMER_TICK_SECONDS)
        if self._remaining_seconds > 0:
            return [TimerTick(self._remaining_seconds)]
        self._expiry_fired = True
        self._running = False
        return [TimerTick(0), TimerExpired(self.elapsed_seconds)]

    def advance(self, now: float) -> list[TimerEvent]:
        if not self._running or self._last_tick_at is None:
            return []
        events: list[TimerEvent] = []
        while self._running and now - self._last_tick_at >= TIMER_TICK_SECONDS:
            self._last_tick_at += TIMER_TICK_SECONDS
            events.extend(self.tick())
        return events

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def running(self) -> bool:
        return self._running

    @property
    def has_expired(self) -> bool:
        return self._expiry_fired

    @property
    def total_seconds(self) -> int:
        return self._total_seconds

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def elapsed_seconds(self) -> int:
        return self._total_seconds - self._remaining_seconds

    @property
    def remaining_fraction(self) -> float:
        return self._remaining_seconds / self._total_seconds

    def format_remaining(self) -> str:
        minutes, seconds = divmod(self._remaining_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"
