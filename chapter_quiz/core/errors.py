"""Exception taxonomy for the quiz session engine and its collaborators."""

from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for every error raised by the quiz engine."""


class ValidationError(QuizEngineError):
    """Raised when participant intake fields are missing or malformed."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DuplicateAttemptError(QuizEngineError):
    """Raised when a participant already has a result for the chapter."""

    def __init__(self, phone: str, chapter_id: str) -> None:
        super().__init__(f"Chapter {chapter_id!r} already attempted by {phone}.")
        self.phone = phone
        self.chapter_id = chapter_id


class EmptyQuestionSetError(QuizEngineError):
    """Raised when a chapter has no usable questions and a session cannot start."""

    def __init__(self, chapter_id: str) -> None:
        super().__init__(f"Chapter {chapter_id!r} has no questions.")
        self.chapter_id = chapter_id


class QuestionNotFoundError(QuizEngineError):
    """Raised by a question bank when a chapter has no questions."""


class WriteFailure(QuizEngineError):
    """Raised when a result write does not reach the store."""


class DuplicateResultError(QuizEngineError):
    """Raised by a result store when (phone, chapter) already has a row."""


class SessionNotFoundError(QuizEngineError):
    """Raised when a session id is unknown to the manager."""


class QuestionImportError(QuizEngineError):
    """Raised when a chapter file cannot be parsed."""
