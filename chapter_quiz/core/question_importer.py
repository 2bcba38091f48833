"""Loading chapters of bilingual questions from plain-text files.

One file holds one chapter; the file name without its suffix is the chapter
id. Question blocks are separated by blank lines or '---':

    Q_EN: What is the capital of India?
    Q_TA: இந்தியாவின் தலைநகரம் எது?
    A_EN: Mumbai
    A_TA: மும்பை
    B_EN: New Delhi
    B_TA: புது தில்லி
    C_EN: Chennai
    C_TA: சென்னை
    D_EN: Kolkata
    D_TA: கொல்கத்தா
    CORRECT: B

Lines that follow a Q_/option marker without a marker of their own continue
that field. CORRECT names the option whose text is the correct answer in
both languages.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from chapter_quiz.constants.quiz_constants import OPTION_LETTERS
from chapter_quiz.constants.storage_constants import QUESTION_FILE_SUFFIX
from chapter_quiz.core.errors import QuestionImportError
from chapter_quiz.core.models import BilingualText, Question
from chapter_quiz.core.services.question_bank import InMemoryQuestionBank

logger = logging.getLogger(__name__)

_LANGUAGE_SUFFIXES = ("EN", "TA")
_FIELD_NAMES = tuple(f"{name}_{suffix}" for name in ("Q", *OPTION_LETTERS) for suffix in _LANGUAGE_SUFFIXES)


@dataclass(slots=True)
class ImportedChapter:
    """Container for a chapter id and its parsed questions."""

    chapter_id: str
    source_path: Path
    questions: list[Question]


def load_chapter_from_file(file_path: Path) -> ImportedChapter:
    text = file_path.read_text(encoding="utf-8")
    chapter_id = file_path.stem.strip()
    questions = parse_chapter_text(text, chapter_id)
    if not questions:
        raise QuestionImportError(f"Chapter file {file_path.name} did not contain any questions.")
    return ImportedChapter(chapter_id=chapter_id, source_path=file_path, questions=questions)


def load_question_bank(directory: Path, bank: InMemoryQuestionBank | None = None) -> InMemoryQuestionBank:
    """Load every chapter file in a directory into a question bank."""
    bank = bank or InMemoryQuestionBank()
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning("Question directory %s does not exist; bank is empty", directory)
        return bank
    for file_path in sorted(directory.glob(f"*{QUESTION_FILE_SUFFIX}")):
        imported = load_chapter_from_file(file_path)
        try:
            bank.load_chapter(imported.chapter_id, imported.questions)
        except ValueError as exc:
            raise QuestionImportError(f"{file_path.name}: {exc}") from exc
        logger.info("Loaded chapter %s with %d questions", imported.chapter_id, len(imported.questions))
    return bank


def parse_chapter_text(text: str, chapter_id: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block))
    return [_parse_block(block, chapter_id) for block in blocks]


def _parse_block(block: str, chapter_id: str) -> Question:
    fields: dict[str, list[str]] = {}
    correct_letter: str | None = None
    current_field: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        marker, _, value = line.partition(":")
        marker = marker.strip().upper()

        if marker == "CORRECT":
            correct_letter = value.strip().upper()
            current_field = None
        elif marker in _FIELD_NAMES:
            fields[marker] = [value.strip()]
            current_field = marker
        elif current_field is not None:
            fields[current_field].append(line)
        else:
            raise QuestionImportError(f"Encountered text outside of a known section: '{line}'.")

    missing = [name for name in _FIELD_NAMES if not _joined(fields, name)]
    if missing:
        raise QuestionImportError(f"Question block is missing {', '.join(missing)}.")
    if correct_letter not in OPTION_LETTERS:
        raise QuestionImportError("CORRECT must be one of A, B, C, or D.")

    options = tuple(
        BilingualText(en=_joined(fields, f"{letter}_EN"), ta=_joined(fields, f"{letter}_TA"))
        for letter in OPTION_LETTERS
    )
    return Question(
        id=0,  # reassigned by the question bank on load
        chapter_id=chapter_id,
        prompt=BilingualText(en=_joined(fields, "Q_EN"), ta=_joined(fields, "Q_TA")),
        options=options,
        correct_answer=options[OPTION_LETTERS.index(correct_letter)],
    )


def _joined(fields: dict[str, list[str]], name: str) -> str:
    return "\n".join(fields.get(name, [])).strip()
