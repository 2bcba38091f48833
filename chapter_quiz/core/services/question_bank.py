"""Question bank collaborator: read-only chapter lookups for the session engine."""

from __future__ import annotations

from threading import Lock
from typing import Iterable, Protocol

from chapter_quiz.constants.quiz_constants import OPTION_COUNT
from chapter_quiz.core.errors import QuestionNotFoundError
from chapter_quiz.core.models import BilingualText, Language, Question


class QuestionBank(Protocol):
    def fetch_by_chapter(self, chapter_id: str) -> list[Question]: ...


class InMemoryQuestionBank:
    """Holds validated questions grouped by chapter, in their stored order."""

    def __init__(self) -> None:
        self._chapters: dict[str, list[Question]] = {}
        self._question_counter: int = 0
        self._lock = Lock()

    def load_chapter(self, chapter_id: str, questions: Iterable[Question]) -> list[Question]:
        """Replace a chapter's questions. Ids are reassigned in load order."""
        chapter_id = chapter_id.strip()
        if not chapter_id:
            raise ValueError("Chapter id must not be empty.")
        with self._lock:
            prepared = [self._prepare_question(chapter_id, q) for q in questions]
            if not prepared:
                raise ValueError("Chapter must contain at least one question.")
            self._chapters[chapter_id] = prepared
            return list(prepared)

    def fetch_by_chapter(self, chapter_id: str) -> list[Question]:
        with self._lock:
            questions = self._chapters.get(chapter_id)
            if not questions:
                raise QuestionNotFoundError(f"No questions stored for chapter {chapter_id!r}.")
            return list(questions)

    def chapters(self) -> list[str]:
        with self._lock:
            return sorted(self._chapters)

    def question_count(self, chapter_id: str) -> int:
        with self._lock:
            return len(self._chapters.get(chapter_id, []))

    def _prepare_question(self, chapter_id: str, question: Question) -> Question:
        prompt = self._clean_text(question.prompt, "Question text")
        if len(question.options) != OPTION_COUNT:
            raise ValueError(f"Each question must have exactly {OPTION_COUNT} options.")
        options = tuple(self._clean_text(option, "Option text") for option in question.options)
        correct = self._clean_text(question.correct_answer, "Correct answer")
        for language in Language:
            texts = [option.for_language(language) for option in options]
            if correct.for_language(language) not in texts:
                raise ValueError(
                    f"Correct answer must match one of the options ({language.value})."
                )
        return Question(
            id=self._next_question_id(),
            chapter_id=chapter_id,
            prompt=prompt,
            options=options,
            correct_answer=correct,
        )

    def _next_question_id(self) -> int:
        self._question_counter += 1
        return self._question_counter

    @staticmethod
    def _clean_text(text: BilingualText, label: str) -> BilingualText:
        cleaned = BilingualText(en=text.en.strip(), ta=text.ta.strip())
        if not cleaned.en or not cleaned.ta:
            raise ValueError(f"{label} must not be empty in either language.")
        return cleaned
