"""Domain models for the chapter quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Language(str, Enum):
    """Language variants stored for every question."""

    ENGLISH = "en"
    TAMIL = "ta"


@dataclass(slots=True, frozen=True)
class BilingualText:
    """Text stored once per supported language."""

    en: str
    ta: str

    def for_language(self, language: Language) -> str:
        return self.ta if language is Language.TAMIL else self.en


@dataclass(slots=True, frozen=True)
class Participant:
    """Registered quiz taker. The phone number identifies them within a chapter."""

    name: str
    phone: str
    place: str
    language: Language = Language.ENGLISH


@dataclass(slots=True, frozen=True)
class Question:
    """Multiple-choice question with four bilingual options."""

    id: int
    chapter_id: str
    prompt: BilingualText
    options: tuple[BilingualText, ...]
    correct_answer: BilingualText

    def option_texts(self, language: Language) -> list[str]:
        return [option.for_language(language) for option in self.options]

    def is_correct(self, option_index: int, language: Language) -> bool:
        chosen = self.options[option_index].for_language(language)
        return chosen == self.correct_answer.for_language(language)


@dataclass(slots=True, frozen=True)
class Result:
    """One participant's finished outcome for one chapter."""

    name: str
    phone: str
    place: str
    language: Language
    chapter_id: str
    score: int
    total: int
    created_at: datetime
    time_taken: int | None = None  # seconds; None when the timer was not running
    id: int | None = None

    def __post_init__(self) -> None:
        if self.total < 0 or not 0 <= self.score <= self.total:
            raise ValueError(f"Score {self.score} is outside 0..{self.total}.")


@dataclass(slots=True, frozen=True)
class AnswerRecord:
    """A single locked-in answer, kept for the review view."""

    question_id: int
    position: int
    selected_index: int
    selected_text: str
    is_correct: bool
    answered_at: datetime


@dataclass(slots=True, frozen=True)
class SessionParams:
    """Entry bundle handed to the session engine."""

    participant: Participant
    chapter_id: str
    duration_minutes: float
    preview: bool = False
    seed: int | None = None


class SessionState(Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    TERMINATED = "terminated"


class TerminalState(Enum):
    SUBMITTED = "submitted"
    ALREADY_ATTEMPTED = "already_attempted"
    LOAD_ERROR = "load_error"


class SubmitTrigger(Enum):
    MANUAL = "manual"
    TIMER_EXPIRED = "timer_expired"
    NAVIGATION = "navigation"


@dataclass(slots=True, frozen=True)
class SessionOutcome:
    """Exit bundle emitted once a session reaches a terminal state."""

    terminal_state: TerminalState
    participant: Participant
    chapter_id: str
    score: int = 0
    total: int = 0
    time_taken: int | None = None
    trigger: SubmitTrigger | None = None
    preview: bool = False
    answers: tuple[AnswerRecord, ...] = field(default_factory=tuple)


class ChangeKind(Enum):
    INSERT = "INSERT"
    DELETE = "DELETE"


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    """Notification published by a result store after a row changes."""

    table: str
    kind: ChangeKind
    new: Result | None = None
    old: Result | None = None

    @property
    def chapter_id(self) -> str | None:
        row = self.new or self.old
        return row.chapter_id if row is not None else None
