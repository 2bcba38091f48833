"""Business logic facade shared by the API server and the session ticker."""

from __future__ import annotations

from collections import OrderedDict
from concurrent.futures import Executor
from datetime import datetime, timezone
import logging
from threading import Lock
import time
from typing import Any, Callable, Mapping
from uuid import uuid4

from chapter_quiz.core.answer_review import ReviewFilter, answering_time_seconds, filter_answers
from chapter_quiz.constants.quiz_constants import FINISHED_SESSION_LIMIT
from chapter_quiz.core.errors import QuestionNotFoundError, SessionNotFoundError
from chapter_quiz.core.models import AnswerRecord, Result, SessionState
from chapter_quiz.core.participant_validation import validate_participant
from chapter_quiz.core.services.attempt_guard import AttemptGuard
from chapter_quiz.core.services.live_leaderboard import LiveLeaderboard
from chapter_quiz.core.services.local_stage import LocalStage
from chapter_quiz.core.services.navigation_guard import NavigationKind, NavigationVerdict
from chapter_quiz.core.services.question_bank import InMemoryQuestionBank
from chapter_quiz.core.services.quiz_session import QuizSession, SessionSnapshot
from chapter_quiz.core.services.ranking import (
    RankedResult,
    ResultStats,
    duplicate_phones,
    find_standing,
    podium,
    summarize,
    top_n,
)
from chapter_quiz.core.services.recovery_stage import RecoveryStage, ReplayOutcome
from chapter_quiz.core.services.result_store import ResultStore
from chapter_quiz.core.services.submission_writer import ResultWriter

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade over the session engine, the collaborators and the leaderboards."""

    def __init__(
        self,
        question_bank: InMemoryQuestionBank,
        result_store: ResultStore,
        local_stage: LocalStage,
        executor: Executor | None = None,
        clock: Callable[[], float] = time.monotonic,
        utc_now: Callable[[], datetime] | None = None,
        finished_session_limit: int = FINISHED_SESSION_LIMIT,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._utc_now = utc_now or (lambda: datetime.now(timezone.utc))

        # Services
        self._question_bank = question_bank
        self._result_store = result_store
        self._recovery_stage = RecoveryStage(local_stage, result_store)
        self._attempt_guard = AttemptGuard(result_store, local_stage)
        self._writer = ResultWriter(result_store, self._recovery_stage, executor)

        self._sessions: dict[str, QuizSession] = {}
        self._finished_sessions: OrderedDict[str, None] = OrderedDict()
        self._finished_session_limit = finished_session_limit
        self._leaderboards: dict[str, LiveLeaderboard] = {}

    # --- Startup / shutdown ---

    def reconcile_pending(self) -> dict[tuple[str, str], ReplayOutcome]:
        """Replay every staged result left behind by a previous run."""
        with self._lock:
            outcomes = self._recovery_stage.replay_all()
        if outcomes:
            logger.info("Reconciled %d staged result(s)", len(outcomes))
        return outcomes

    def shutdown(self) -> None:
        with self._lock:
            for leaderboard in self._leaderboards.values():
                leaderboard.close()
            self._leaderboards.clear()
        self._writer.shutdown()

    # --- Session delegation ---

    def start_session(self, raw_params: Mapping[str, Any]) -> tuple[str, SessionSnapshot]:
        """Validate intake fields, create a session and bootstrap it.

        ValidationError and EmptyQuestionSetError propagate to the caller.
        """
        params = validate_participant(raw_params)
        session = QuizSession(
            params,
            question_bank=self._question_bank,
            attempt_guard=self._attempt_guard,
            recovery_stage=self._recovery_stage,
            result_writer=self._writer,
            clock=self._clock,
            utc_now=self._utc_now,
        )
        session_id = uuid4().hex
        with self._lock:
            session.bootstrap()
            self._sessions[session_id] = session
            self._track_finished(session_id, session)
            return session_id, session.snapshot()

    def get_snapshot(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            session = self._get_session(session_id)
            session.pump()
            self._track_finished(session_id, session)
            return session.snapshot()

    def select_option(self, session_id: str, option_index: int) -> SessionSnapshot:
        with self._lock:
            session = self._get_session(session_id)
            session.pump()
            session.select_option(option_index)
            self._track_finished(session_id, session)
            return session.snapshot()

    def submit(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            session = self._get_session(session_id)
            session.pump()
            session.submit()
            self._track_finished(session_id, session)
            return session.snapshot()

    def report_navigation(self, session_id: str, kind: NavigationKind) -> tuple[NavigationVerdict, SessionSnapshot]:
        with self._lock:
            session = self._get_session(session_id)
            session.pump()
            verdict = session.report_navigation(kind)
            self._track_finished(session_id, session)
            return verdict, session.snapshot()

    def review_answers(
        self,
        session_id: str,
        review_filter: ReviewFilter = ReviewFilter.ALL,
    ) -> tuple[list[AnswerRecord], int]:
        """Return filtered answers of a finished session and the total answering time."""
        with self._lock:
            session = self._get_session(session_id)
            outcome = session.outcome
            if outcome is None:
                raise RuntimeError("Answers can be reviewed only after the session has ended.")
            answers = list(outcome.answers)
        return filter_answers(answers, review_filter), answering_time_seconds(answers)

    def discard_session(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(f"Unknown session {session_id!r}.")
            self._finished_sessions.pop(session_id, None)

    def pump_sessions(self) -> None:
        """Advance timers and auto-advance for every active session."""
        with self._lock:
            now = self._clock()
            for session_id, session in list(self._sessions.items()):
                if session.state is SessionState.ACTIVE:
                    session.pump(now)
                    self._track_finished(session_id, session)

    def get_active_session_count(self) -> int:
        with self._lock:
            return sum(1 for session in self._sessions.values() if session.state is SessionState.ACTIVE)

    # --- Ranking delegation ---

    def get_chapters(self) -> list[str]:
        return self._question_bank.chapters()

    def get_standings(self, chapter_id: str) -> list[RankedResult]:
        with self._lock:
            return self._leaderboard_for(chapter_id).standings()

    def get_standing(self, chapter_id: str, phone: str) -> RankedResult | None:
        with self._lock:
            results = self._leaderboard_for(chapter_id).results()
        return find_standing(results, phone)

    def get_podium(self, chapter_id: str) -> list[RankedResult]:
        with self._lock:
            results = self._leaderboard_for(chapter_id).results()
        return podium(results)

    def get_top_results(self, chapter_id: str, limit: int) -> list[RankedResult]:
        with self._lock:
            results = self._leaderboard_for(chapter_id).results()
        return top_n(results, limit)

    def get_statistics(self, chapter_id: str | None = None) -> ResultStats:
        results = self._results_for(chapter_id)
        return summarize(results, today=self._utc_now().date())

    def get_duplicate_phones(self, chapter_id: str | None = None) -> tuple[set[str], list[Result]]:
        results = self._results_for(chapter_id)
        phones = duplicate_phones(results)
        return phones, [result for result in results if result.phone.strip() in phones]

    # --- Internals ---

    def _results_for(self, chapter_id: str | None) -> list[Result]:
        if chapter_id is None:
            return self._result_store.query_all()
        if chapter_id not in self._question_bank.chapters():
            return self._result_store.query_by_chapter(chapter_id)
        with self._lock:
            return self._leaderboard_for(chapter_id).results()

    def _get_session(self, session_id: str) -> QuizSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Unknown session {session_id!r}.")
        return session

    def _leaderboard_for(self, chapter_id: str) -> LiveLeaderboard:
        leaderboard = self._leaderboards.get(chapter_id)
        if leaderboard is None:
            if chapter_id not in self._question_bank.chapters():
                raise QuestionNotFoundError(f"Unknown chapter {chapter_id!r}.")
            leaderboard = LiveLeaderboard(self._result_store, chapter_id)
            self._leaderboards[chapter_id] = leaderboard
        return leaderboard

    def _track_finished(self, session_id: str, session: QuizSession) -> None:
        """Keep only the most recently finished sessions for review."""
        if session.state is not SessionState.TERMINATED or session_id in self._finished_sessions:
            return
        self._finished_sessions[session_id] = None
        while len(self._finished_sessions) > self._finished_session_limit:
            evicted, _ = self._finished_sessions.popitem(last=False)
            self._sessions.pop(evicted, None)
            logger.debug("Evicted finished session %s", evicted)
