"""Application entry point for the ChapterQuiz service."""

from __future__ import annotations

from pathlib import Path

from chapter_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from chapter_quiz.constants.storage_constants import DEVICE_STAGE_DIR, QUESTIONS_DIR
from chapter_quiz.core.question_importer import load_question_bank
from chapter_quiz.core.quiz_manager import QuizManager
from chapter_quiz.core.services.local_stage import FileStage
from chapter_quiz.core.services.result_store import InMemoryResultStore
from chapter_quiz.core.services.session_ticker import SessionTicker
from chapter_quiz.server.api_server import start_api_server
from chapter_quiz.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, load chapters, reconcile staged results and serve the API."""
    logger = configure_logging()
    logger.info("Starting ChapterQuiz service…")

    project_root = Path(__file__).resolve().parent
    question_bank = load_question_bank(project_root / QUESTIONS_DIR)
    logger.info("Chapters available: %s", ", ".join(question_bank.chapters()) or "none")

    quiz_manager = QuizManager(
        question_bank=question_bank,
        result_store=InMemoryResultStore(),
        local_stage=FileStage(project_root / DEVICE_STAGE_DIR),
    )
    quiz_manager.reconcile_pending()

    ticker = SessionTicker(quiz_manager.pump_sessions)
    ticker.start()
    server_thread = start_api_server(quiz_manager=quiz_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("API available at http://%s:%d/", DEFAULT_HOST, DEFAULT_PORT)
    try:
        server_thread.join()
    finally:
        ticker.stop()
        quiz_manager.shutdown()


if __name__ == "__main__":
    main()
