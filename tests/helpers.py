"""Shared fakes for the test suites."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

from chapter_quiz.core.errors import WriteFailure
from chapter_quiz.core.models import BilingualText, Language, Question, Result
from chapter_quiz.core.services.question_bank import InMemoryQuestionBank
from chapter_quiz.core.services.result_store import InMemoryResultStore

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FakeUtcClock:
    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class InlineExecutor(Executor):
    """Runs submitted work immediately on the caller's thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # noqa: BLE001 - the future carries it
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until ``run_pending`` is called; models an in-flight write."""

    def __init__(self) -> None:
        self.pending: list[tuple] = []

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as exc:  # noqa: BLE001
                future.set_exception(exc)


class FlakyResultStore(InMemoryResultStore):
    """Result store whose next ``failures`` inserts raise WriteFailure."""

    def __init__(self, failures: int = 0) -> None:
        super().__init__()
        self.failures = failures
        self.insert_attempts = 0

    def insert(self, result: Result) -> Result:
        self.insert_attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise WriteFailure("network unavailable")
        return super().insert(result)


def make_question(number: int, chapter_id: str = "C1", correct: int = 0) -> Question:
    options = tuple(
        BilingualText(en=f"Q{number} option {letter}", ta=f"கே{number} விடை {letter}")
        for letter in "ABCD"
    )
    return Question(
        id=0,
        chapter_id=chapter_id,
        prompt=BilingualText(en=f"Question {number}?", ta=f"கேள்வி {number}?"),
        options=options,
        correct_answer=options[correct],
    )


def make_bank(chapter_id: str = "C1", count: int = 3) -> InMemoryQuestionBank:
    """Bank whose questions all have option 0 as the correct answer."""
    bank = InMemoryQuestionBank()
    bank.load_chapter(chapter_id, [make_question(n, chapter_id) for n in range(1, count + 1)])
    return bank


def make_result(
    name: str,
    score: int,
    time_taken: int | None = None,
    phone: str | None = None,
    chapter_id: str = "C1",
    minutes_after: int = 0,
    total: int = 10,
) -> Result:
    return Result(
        name=name,
        phone=phone or f"8{sum(map(ord, name)) % 10**9:09d}",
        place="Madurai",
        language=Language.ENGLISH,
        chapter_id=chapter_id,
        score=score,
        total=total,
        time_taken=time_taken,
        created_at=BASE_TIME + timedelta(minutes=minutes_after),
    )


def intake(phone: str = "9000000000", chapter_id: str = "C1", **overrides) -> dict:
    raw = {
        "name": "Kavya",
        "phone": phone,
        "place": "Salem",
        "language": "en",
        "chapter_id": chapter_id,
        "duration_minutes": 1,
        "seed": 7,
    }
    raw.update(overrides)
    return raw
