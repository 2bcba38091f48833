"""Helpers for reviewing a finished session's answers."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from chapter_quiz.core.models import AnswerRecord


class ReviewFilter(str, Enum):
    ALL = "all"
    CORRECT = "correct"
    INCORRECT = "incorrect"


def filter_answers(answers: Iterable[AnswerRecord], review_filter: ReviewFilter) -> list[AnswerRecord]:
    answers = sorted(answers, key=lambda answer: answer.answered_at)
    if review_filter is ReviewFilter.CORRECT:
        return [answer for answer in answers if answer.is_correct]
    if review_filter is ReviewFilter.INCORRECT:
        return [answer for answer in answers if not answer.is_correct]
    return answers


def answering_time_seconds(answers: Iterable[AnswerRecord]) -> int:
    """Seconds between the first and last locked-in answer."""
    timestamps = sorted(answer.answered_at for answer in answers)
    if len(timestamps) < 2:
        return 0
    return round((timestamps[-1] - timestamps[0]).total_seconds())
