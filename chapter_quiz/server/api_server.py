"""FastAPI server exposing quiz sessions and chapter leaderboards."""

from __future__ import annotations

from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel
import uvicorn

from chapter_quiz.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from chapter_quiz.constants.messages import ALREADY_ATTEMPTED, NO_QUESTIONS, localized
from chapter_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from chapter_quiz.constants.quiz_constants import LIVE_LEADERBOARD_SIZE, RESULT_TOP_SIZE, SCORES_PAGE_SIZE
from chapter_quiz.core.answer_review import ReviewFilter
from chapter_quiz.core.errors import (
    EmptyQuestionSetError,
    QuestionNotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from chapter_quiz.core.models import AnswerRecord, Result, SessionOutcome, TerminalState
from chapter_quiz.core.participant_validation import normalize_language
from chapter_quiz.core.prompt_renderer import renderer
from chapter_quiz.core.quiz_manager import QuizManager
from chapter_quiz.core.services.navigation_guard import NavigationKind, NavigationVerdict
from chapter_quiz.core.services.quiz_session import SessionSnapshot
from chapter_quiz.core.services.ranking import (
    RankedResult,
    format_time_taken,
    page_count,
    paginate,
)


class StartSessionPayload(BaseModel):
    """Payload schema for the participant intake form."""

    name: str | None = None
    phone: str | None = None
    place: str | None = None
    language: str | None = None
    chapter_id: str | None = None
    duration_minutes: float | None = None
    preview: bool = False
    seed: int | None = None


class AnswerPayload(BaseModel):
    """Payload schema for a selected option."""

    option_index: int


class NavigationPayload(BaseModel):
    """Payload schema for an intercepted navigation event."""

    kind: NavigationKind


def _serialize_outcome(outcome: SessionOutcome | None) -> dict[str, object] | None:
    if outcome is None:
        return None
    return {
        "terminal_state": outcome.terminal_state.value,
        "chapter_id": outcome.chapter_id,
        "name": outcome.participant.name,
        "phone": outcome.participant.phone,
        "place": outcome.participant.place,
        "score": outcome.score,
        "total": outcome.total,
        "time_taken": outcome.time_taken,
        "trigger": outcome.trigger.value if outcome.trigger else None,
        "preview": outcome.preview,
        "message": _outcome_message(outcome),
    }


def _outcome_message(outcome: SessionOutcome) -> str | None:
    if outcome.terminal_state is TerminalState.ALREADY_ATTEMPTED:
        return localized(ALREADY_ATTEMPTED, outcome.participant.language.value)
    return None


def _serialize_verdict(verdict: NavigationVerdict | None) -> dict[str, object] | None:
    if verdict is None:
        return None
    return {
        "kind": verdict.kind.value,
        "action": verdict.action.value,
        "prevent_default": verdict.prevent_default,
        "restore_history": verdict.restore_history,
        "message": verdict.message,
    }


def _serialize_snapshot(session_id: str, snapshot: SessionSnapshot) -> dict[str, object]:
    question = None
    if snapshot.question is not None:
        question = {
            "position": snapshot.question.position,
            "question_id": snapshot.question.question_id,
            "prompt_html": renderer.render_prompt(snapshot.question.prompt, snapshot.question.language),
            "options": snapshot.question.options,
            "options_html": renderer.render_options(snapshot.question.options),
            "locked": snapshot.question.locked,
            "selected_index": snapshot.question.selected_index,
            "selected_correct": snapshot.question.selected_correct,
        }
    return {
        "session_id": session_id,
        "state": snapshot.state.value,
        "terminal_state": snapshot.terminal_state.value if snapshot.terminal_state else None,
        "chapter_id": snapshot.chapter_id,
        "preview": snapshot.preview,
        "position": snapshot.position,
        "total": snapshot.total,
        "score": snapshot.score,
        "question": question,
        "remaining_seconds": snapshot.remaining_seconds,
        "remaining_fraction": snapshot.remaining_fraction,
        "remaining_text": snapshot.remaining_text,
        "can_submit": snapshot.can_submit,
        "last_navigation": _serialize_verdict(snapshot.last_navigation),
        "outcome": _serialize_outcome(snapshot.outcome),
    }


def _serialize_answer(answer: AnswerRecord) -> dict[str, object]:
    return {
        "question_id": answer.question_id,
        "position": answer.position,
        "selected_index": answer.selected_index,
        "selected_text": answer.selected_text,
        "is_correct": answer.is_correct,
        "answered_at": answer.answered_at.isoformat(),
    }


def _serialize_result(result: Result) -> dict[str, object]:
    return {
        "id": result.id,
        "name": result.name,
        "phone": result.phone,
        "place": result.place,
        "language": result.language.value,
        "chapter_id": result.chapter_id,
        "score": result.score,
        "total": result.total,
        "time_taken": result.time_taken,
        "time_taken_text": format_time_taken(result.time_taken),
        "created_at": result.created_at.isoformat(),
    }


def _serialize_ranked(entry: RankedResult) -> dict[str, object]:
    return {"rank": entry.rank, "is_duplicate": entry.is_duplicate, **_serialize_result(entry.result)}


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(quiz_manager: QuizManager) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""

    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT)
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.post("/sessions", status_code=201)
    def start_session(
        payload: StartSessionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            session_id, snapshot = manager.start_session(payload.model_dump())
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail={"field": exc.field, "message": str(exc)}) from exc
        except EmptyQuestionSetError as exc:
            language = normalize_language(payload.language).value
            raise HTTPException(status_code=404, detail=localized(NO_QUESTIONS, language)) from exc
        return _serialize_snapshot(session_id, snapshot)

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            snapshot = manager.get_snapshot(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _serialize_snapshot(session_id, snapshot)

    @app.post("/sessions/{session_id}/answer")
    def answer(
        session_id: str,
        payload: AnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.select_option(session_id, payload.option_index)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _serialize_snapshot(session_id, snapshot)

    @app.post("/sessions/{session_id}/submit")
    def submit(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            snapshot = manager.submit(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _serialize_snapshot(session_id, snapshot)

    @app.post("/sessions/{session_id}/navigation")
    def navigation(
        session_id: str,
        payload: NavigationPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            verdict, snapshot = manager.report_navigation(session_id, payload.kind)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"verdict": _serialize_verdict(verdict), "session": _serialize_snapshot(session_id, snapshot)}

    @app.get("/sessions/{session_id}/review")
    def review(
        session_id: str,
        review_filter: ReviewFilter = Query(ReviewFilter.ALL, alias="filter"),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            answers, answering_time = manager.review_answers(session_id, review_filter)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {
            "answers": [_serialize_answer(answer) for answer in answers],
            "answering_time_seconds": answering_time,
        }

    @app.delete("/sessions/{session_id}", status_code=204)
    def discard_session(session_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> None:
        try:
            manager.discard_session(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/chapters")
    def list_chapters(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return {"chapters": manager.get_chapters()}

    @app.get("/chapters/{chapter_id}/leaderboard")
    def leaderboard(
        chapter_id: str,
        limit: int = Query(LIVE_LEADERBOARD_SIZE, ge=1),
        page: int | None = Query(None, ge=1),
        page_size: int = Query(SCORES_PAGE_SIZE, ge=1),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        try:
            standings = manager.get_standings(chapter_id)
        except QuestionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        if page is None:
            entries = standings[:limit]
        else:
            entries = paginate(standings, page, page_size)
        return {
            "chapter_id": chapter_id,
            "podium": [_serialize_ranked(entry) for entry in manager.get_podium(chapter_id)],
            "entries": [_serialize_ranked(entry) for entry in entries],
            "total_entries": len(standings),
            "page_count": page_count(len(standings), page_size),
        }

    @app.get("/chapters/{chapter_id}/standing/{phone}")
    def standing(chapter_id: str, phone: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        try:
            entry = manager.get_standing(chapter_id, phone)
        except QuestionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        if entry is None:
            raise HTTPException(status_code=404, detail=f"No result for {phone} in chapter {chapter_id!r}.")
        perfect = entry.result.score == entry.result.total
        top = manager.get_top_results(chapter_id, RESULT_TOP_SIZE)
        return {
            **_serialize_ranked(entry),
            "perfect_score": perfect,
            "top": [_serialize_ranked(ranked) for ranked in top],
        }

    @app.get("/results/stats")
    def statistics(
        chapter_id: str | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        stats = manager.get_statistics(chapter_id)
        return {
            "participant_count": stats.participant_count,
            "unique_participants": stats.unique_participants,
            "average_score": stats.average_score,
            "highest_score": stats.highest_score,
            "fastest_time": stats.fastest_time,
            "fastest_time_text": format_time_taken(stats.fastest_time),
            "submitted_today": stats.submitted_today,
            "top_chapter": stats.top_chapter,
            "chapter_averages": [
                {
                    "chapter_id": entry.chapter_id,
                    "participants": entry.participants,
                    "average_score": entry.average_score,
                }
                for entry in stats.chapter_averages
            ],
        }

    @app.get("/results/duplicates")
    def duplicates(
        chapter_id: str | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        phones, rows = manager.get_duplicate_phones(chapter_id)
        return {
            "phones": sorted(phones),
            "results": [_serialize_result(result) for result in rows],
        }

    return app


def start_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""

    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
