"""State machine that runs one participant through a timed chapter quiz.

Every input (option selection, manual submit, timer ticks, navigation
attempts, auto-advance) is turned into a message on the session inbox and
handled one at a time, so handlers never interleave on session state.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import random
import time
from typing import Callable

from chapter_quiz.constants.quiz_constants import AUTO_ADVANCE_DELAY_SECONDS, OPTION_COUNT
from chapter_quiz.core.errors import DuplicateAttemptError, EmptyQuestionSetError, QuestionNotFoundError
from chapter_quiz.core.models import (
    AnswerRecord,
    Language,
    Question,
    Result,
    SessionOutcome,
    SessionParams,
    SessionState,
    SubmitTrigger,
    TerminalState,
)
from chapter_quiz.core.services.attempt_guard import AttemptGuard
from chapter_quiz.core.services.navigation_guard import (
    NavigationAction,
    NavigationGuard,
    NavigationKind,
    NavigationVerdict,
)
from chapter_quiz.core.services.question_bank import QuestionBank
from chapter_quiz.core.services.recovery_stage import RecoveryStage
from chapter_quiz.core.services.submission_writer import ResultWriter
from chapter_quiz.core.services.timer_service import TimerExpired, TimerService, TimerTick

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SelectOption:
    option_index: int


@dataclass(slots=True, frozen=True)
class SubmitRequested:
    pass


@dataclass(slots=True, frozen=True)
class NavigationAttempt:
    kind: NavigationKind


@dataclass(slots=True, frozen=True)
class AdvanceDue:
    position: int


SessionEvent = SelectOption | SubmitRequested | NavigationAttempt | AdvanceDue | TimerTick | TimerExpired


@dataclass(slots=True, frozen=True)
class QuestionView:
    """The current question in the participant's language."""

    position: int
    question_id: int
    prompt: str
    options: list[str]
    locked: bool
    selected_index: int | None
    selected_correct: bool | None
    language: Language = Language.ENGLISH


@dataclass(slots=True, frozen=True)
class SessionSnapshot:
    """Read-only view of a session for presentation layers."""

    state: SessionState
    terminal_state: TerminalState | None
    chapter_id: str
    preview: bool
    position: int
    total: int
    score: int
    question: QuestionView | None
    remaining_seconds: int | None
    remaining_fraction: float | None
    remaining_text: str | None
    can_submit: bool
    last_navigation: NavigationVerdict | None
    outcome: SessionOutcome | None


class QuizSession:
    """Drives one session from Loading to a terminal state."""

    def __init__(
        self,
        params: SessionParams,
        question_bank: QuestionBank,
        attempt_guard: AttemptGuard,
        recovery_stage: RecoveryStage,
        result_writer: ResultWriter,
        clock: Callable[[], float] = time.monotonic,
        utc_now: Callable[[], datetime] | None = None,
    ) -> None:
        self._params = params
        self._question_bank = question_bank
        self._attempt_guard = attempt_guard
        self._recovery_stage = recovery_stage
        self._result_writer = result_writer
        self._clock = clock
        self._utc_now = utc_now or (lambda: datetime.now(timezone.utc))

        self._state = SessionState.LOADING
        self._terminal_state: TerminalState | None = None
        self._outcome: SessionOutcome | None = None

        self._questions: list[Question] = []
        self._position: int = 0
        self._score: int = 0
        self._locked: list[bool] = []
        self._selected: list[int | None] = []
        self._answers: list[AnswerRecord] = []
        self._advance_due_at: float | None = None
        self._started_at: float | None = None
        self._submit_dispatched: bool = False
        self._last_navigation: NavigationVerdict | None = None

        self._inbox: deque[SessionEvent] = deque()
        self._draining: bool = False

        # Drawn once so the question order can be reproduced from session state.
        self._seed = params.seed if params.seed is not None else random.SystemRandom().randrange(2**32)
        self._timer = TimerService(params.duration_minutes, enabled=not params.preview)
        self._navigation = NavigationGuard(params.participant.language, enabled=not params.preview)

    # --- Lifecycle ---

    def bootstrap(self) -> SessionState:
        """Reconcile staged results, gate entry, load questions and go Active.

        Raises EmptyQuestionSetError when the chapter has no questions. A
        denied attempt is not raised; it ends in AlreadyAttempted.
        """
        if self._state is not SessionState.LOADING:
            raise RuntimeError("Session has already been bootstrapped.")

        participant = self._params.participant
        chapter_id = self._params.chapter_id

        if not self._params.preview:
            self._recovery_stage.replay(participant.phone, chapter_id)
            try:
                self._attempt_guard.ensure_allowed(participant.phone, chapter_id)
            except DuplicateAttemptError:
                self._terminate(TerminalState.ALREADY_ATTEMPTED)
                return self._state

        try:
            questions = self._question_bank.fetch_by_chapter(chapter_id)
        except QuestionNotFoundError as exc:
            self._terminate(TerminalState.LOAD_ERROR)
            raise EmptyQuestionSetError(chapter_id) from exc
        if not questions:
            self._terminate(TerminalState.LOAD_ERROR)
            raise EmptyQuestionSetError(chapter_id)

        order = list(range(len(questions)))
        random.Random(self._seed).shuffle(order)
        self._questions = [questions[index] for index in order]
        self._locked = [False] * len(self._questions)
        self._selected = [None] * len(self._questions)

        self._state = SessionState.ACTIVE
        self._started_at = self._clock()
        self._timer.start(self._started_at)
        logger.info(
            "Session active for %s in chapter %s (%d questions, preview=%s)",
            participant.phone,
            chapter_id,
            len(self._questions),
            self._params.preview,
        )
        return self._state

    # --- Inputs ---

    def select_option(self, option_index: int) -> None:
        if not 0 <= option_index < OPTION_COUNT:
            raise ValueError(f"Option index must be between 0 and {OPTION_COUNT - 1}.")
        self._post(SelectOption(option_index))

    def submit(self) -> bool:
        """Request a manual submit. Returns True when the session ended as Submitted."""
        self._post(SubmitRequested())
        return self._terminal_state is TerminalState.SUBMITTED

    def report_navigation(self, kind: NavigationKind) -> NavigationVerdict:
        self._last_navigation = None
        self._post(NavigationAttempt(kind))
        verdict = self._last_navigation
        if verdict is None:
            return NavigationVerdict(kind, NavigationAction.IGNORE, False, False)
        return verdict

    def tick(self) -> None:
        """Apply exactly one timer step regardless of the clock."""
        if self._state is SessionState.ACTIVE:
            self._inbox.extend(self._timer.tick())
            self._drain()

    def pump(self, now: float | None = None) -> None:
        """Feed elapsed time into the timer and fire a due auto-advance."""
        if self._state is not SessionState.ACTIVE:
            return
        now = self._clock() if now is None else now
        self._inbox.extend(self._timer.advance(now))
        if self._advance_due_at is not None and now >= self._advance_due_at:
            self._advance_due_at = None
            self._inbox.append(AdvanceDue(self._position))
        self._drain()

    # --- Event handling ---

    def _post(self, event: SessionEvent) -> None:
        self._inbox.append(event)
        self._drain()

    def _drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        try:
            while self._inbox:
                self._handle(self._inbox.popleft())
        finally:
            self._draining = False

    def _handle(self, event: SessionEvent) -> None:
        if self._state is not SessionState.ACTIVE:
            logger.debug("Ignoring %s in state %s", type(event).__name__, self._state.value)
            return

        if isinstance(event, SelectOption):
            self._handle_selection(event.option_index)
        elif isinstance(event, AdvanceDue):
            self._handle_advance(event.position)
        elif isinstance(event, SubmitRequested):
            if self.can_submit:
                self._begin_submit(SubmitTrigger.MANUAL)
            else:
                logger.info("Manual submit ignored: last question not answered yet")
        elif isinstance(event, TimerExpired):
            self._begin_submit(SubmitTrigger.TIMER_EXPIRED)
        elif isinstance(event, NavigationAttempt):
            verdict = self._navigation.intercept(event.kind)
            self._last_navigation = verdict
            if verdict.action is NavigationAction.FORCE_SUBMIT:
                self._begin_submit(SubmitTrigger.NAVIGATION)

    def _handle_selection(self, option_index: int) -> None:
        position = self._position
        if self._locked[position]:
            logger.debug("Question %d already answered; selection ignored", position)
            return

        question = self._questions[position]
        language = self._params.participant.language
        is_correct = question.is_correct(option_index, language)
        self._locked[position] = True
        self._selected[position] = option_index
        if is_correct:
            self._score += 1
        self._answers.append(
            AnswerRecord(
                question_id=question.id,
                position=position,
                selected_index=option_index,
                selected_text=question.options[option_index].for_language(language),
                is_correct=is_correct,
                answered_at=self._utc_now(),
            )
        )

        if position < len(self._questions) - 1:
            self._advance_due_at = self._clock() + AUTO_ADVANCE_DELAY_SECONDS

    def _handle_advance(self, position: int) -> None:
        if position != self._position or not self._locked[position]:
            return
        if position < len(self._questions) - 1:
            self._position += 1

    def _begin_submit(self, trigger: SubmitTrigger) -> None:
        if self._submit_dispatched:
            logger.debug("Submit trigger %s ignored: already submitted", trigger.value)
            return
        self._submit_dispatched = True
        self._state = SessionState.SUBMITTING
        self._timer.stop()
        self._navigation.disarm()
        self._advance_due_at = None

        participant = self._params.participant
        time_taken = self._time_taken()
        outcome = SessionOutcome(
            terminal_state=TerminalState.SUBMITTED,
            participant=participant,
            chapter_id=self._params.chapter_id,
            score=self._score,
            total=len(self._questions),
            time_taken=time_taken,
            trigger=trigger,
            preview=self._params.preview,
            answers=tuple(self._answers),
        )
        logger.info(
            "Submitting %s for %s in chapter %s: %d/%d",
            trigger.value,
            participant.phone,
            self._params.chapter_id,
            self._score,
            len(self._questions),
        )

        if not self._params.preview:
            result = Result(
                name=participant.name,
                phone=participant.phone,
                place=participant.place,
                language=participant.language,
                chapter_id=self._params.chapter_id,
                score=self._score,
                total=len(self._questions),
                time_taken=time_taken,
                created_at=self._utc_now(),
            )
            self._persist(result)

        self._terminate(TerminalState.SUBMITTED, outcome)

    def _persist(self, result: Result) -> None:
        try:
            self._recovery_stage.stage(result)
            self._attempt_guard.record_attempt(result.phone, result.chapter_id)
        except OSError:
            logger.exception("Could not stage result for %s in %s", result.phone, result.chapter_id)
        try:
            self._result_writer.dispatch(result)
        except RuntimeError:
            logger.exception("Result writer unavailable; result stays staged for replay")

    def _time_taken(self) -> int | None:
        if self._timer.enabled:
            return self._timer.elapsed_seconds
        if self._started_at is None:
            return None
        return int(round(self._clock() - self._started_at))

    def _terminate(self, terminal_state: TerminalState, outcome: SessionOutcome | None = None) -> None:
        self._timer.stop()
        self._navigation.disarm()
        self._inbox.clear()
        self._state = SessionState.TERMINATED
        self._terminal_state = terminal_state
        self._outcome = outcome or SessionOutcome(
            terminal_state=terminal_state,
            participant=self._params.participant,
            chapter_id=self._params.chapter_id,
            preview=self._params.preview,
        )
        logger.info(
            "Session for %s in chapter %s terminated: %s",
            self._params.participant.phone,
            self._params.chapter_id,
            terminal_state.value,
        )

    # --- Queries ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def terminal_state(self) -> TerminalState | None:
        return self._terminal_state

    @property
    def outcome(self) -> SessionOutcome | None:
        return self._outcome

    @property
    def params(self) -> SessionParams:
        return self._params

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def score(self) -> int:
        return self._score

    @property
    def position(self) -> int:
        return self._position

    @property
    def total(self) -> int:
        return len(self._questions)

    @property
    def question_order(self) -> list[int]:
        return [question.id for question in self._questions]

    @property
    def timer(self) -> TimerService:
        return self._timer

    @property
    def can_submit(self) -> bool:
        if self._state is not SessionState.ACTIVE or not self._questions:
            return False
        last = len(self._questions) - 1
        return self._position == last and self._locked[last]

    def current_question(self) -> QuestionView | None:
        if self._state is not SessionState.ACTIVE or not self._questions:
            return None
        question = self._questions[self._position]
        selected = self._selected[self._position]
        language = self._params.participant.language
        return QuestionView(
            position=self._position,
            question_id=question.id,
            prompt=question.prompt.for_language(language),
            options=question.option_texts(language),
            locked=self._locked[self._position],
            selected_index=selected,
            selected_correct=question.is_correct(selected, language) if selected is not None else None,
            language=language,
        )

    def snapshot(self) -> SessionSnapshot:
        timer_visible = self._timer.enabled and self._state is SessionState.ACTIVE
        return SessionSnapshot(
            state=self._state,
            terminal_state=self._terminal_state,
            chapter_id=self._params.chapter_id,
            preview=self._params.preview,
            position=self._position,
            total=len(self._questions),
            score=self._score,
            question=self.current_question(),
            remaining_seconds=self._timer.remaining_seconds if timer_visible else None,
            remaining_fraction=self._timer.remaining_fraction if timer_visible else None,
            remaining_text=self._timer.format_remaining() if timer_visible else None,
            can_submit=self.can_submit,
            last_navigation=self._last_navigation,
            outcome=self._outcome,
        )
