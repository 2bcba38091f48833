import tempfile
import unittest
from pathlib import Path

from chapter_quiz.core.errors import EmptyQuestionSetError
from chapter_quiz.core.models import SessionState, SubmitTrigger, TerminalState
from chapter_quiz.core.participant_validation import validate_participant
from chapter_quiz.core.services.attempt_guard import AttemptGuard
from chapter_quiz.core.services.local_stage import FileStage, InMemoryStage
from chapter_quiz.core.services.navigation_guard import NavigationAction, NavigationKind
from chapter_quiz.core.services.question_bank import InMemoryQuestionBank
from chapter_quiz.core.services.quiz_session import QuizSession
from chapter_quiz.core.services.recovery_stage import RecoveryStage
from chapter_quiz.core.services.result_store import InMemoryResultStore
from chapter_quiz.core.services.submission_writer import ResultWriter
from tests.helpers import (
    DeferredExecutor,
    FakeClock,
    FakeUtcClock,
    FlakyResultStore,
    InlineExecutor,
    intake,
    make_bank,
    make_result,
)


class Device:
    """One participant device: its stage plus the shared store and bank."""

    def __init__(self, store=None, stage=None, bank=None, executor=None) -> None:
        self.store = store if store is not None else InMemoryResultStore()
        self.stage = stage if stage is not None else InMemoryStage()
        self.bank = bank if bank is not None else make_bank()
        self.executor = executor if executor is not None else InlineExecutor()
        self.clock = FakeClock()
        self.recovery = RecoveryStage(self.stage, self.store)
        self.guard = AttemptGuard(self.store, self.stage)
        self.writer = ResultWriter(self.store, self.recovery, self.executor)

    def session(self, **overrides) -> QuizSession:
        return QuizSession(
            validate_participant(intake(**overrides)),
            question_bank=self.bank,
            attempt_guard=self.guard,
            recovery_stage=self.recovery,
            result_writer=self.writer,
            clock=self.clock,
            utc_now=FakeUtcClock(),
        )

    def answer_all(self, session: QuizSession, option_index: int = 0) -> None:
        for _ in range(session.total):
            session.select_option(option_index)
            self.clock.advance(1.0)
            session.pump()


class SessionLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.device = Device()

    def test_bootstrap_shuffles_and_goes_active(self) -> None:
        session = self.device.session()

        self.assertIs(session.state, SessionState.LOADING)
        self.assertIs(session.bootstrap(), SessionState.ACTIVE)
        self.assertEqual(session.total, 3)
        self.assertEqual(sorted(session.question_order), [1, 2, 3])
        self.assertTrue(session.timer.running)

    def test_same_seed_gives_same_order(self) -> None:
        first = Device(bank=self.device.bank).session(seed=42)
        second = Device(bank=self.device.bank).session(seed=42)
        first.bootstrap()
        second.bootstrap()

        self.assertEqual(first.question_order, second.question_order)
        self.assertEqual(first.seed, 42)

    def test_answer_locks_and_auto_advances_after_delay(self) -> None:
        session = self.device.session()
        session.bootstrap()

        session.select_option(0)
        view = session.current_question()
        self.assertTrue(view.locked)
        self.assertTrue(view.selected_correct)
        self.assertEqual(session.score, 1)

        self.device.clock.advance(0.5)
        session.pump()
        self.assertEqual(session.position, 0)

        self.device.clock.advance(0.5)
        session.pump()
        self.assertEqual(session.position, 1)
        self.assertFalse(session.current_question().locked)

    def test_selection_is_permanent(self) -> None:
        session = self.device.session()
        session.bootstrap()

        session.select_option(2)
        session.select_option(0)

        self.assertEqual(session.current_question().selected_index, 2)
        self.assertEqual(session.score, 0)
        self.assertEqual(len(session.snapshot().question.options), 4)

    def test_out_of_range_option_is_rejected(self) -> None:
        session = self.device.session()
        session.bootstrap()

        with self.assertRaises(ValueError):
            session.select_option(4)

    def test_manual_submit_requires_last_answer(self) -> None:
        session = self.device.session()
        session.bootstrap()

        self.assertFalse(session.submit())
        self.assertIs(session.state, SessionState.ACTIVE)

        self.device.answer_all(session)
        self.assertTrue(session.can_submit)
        self.assertTrue(session.submit())

        outcome = session.outcome
        self.assertIs(outcome.terminal_state, TerminalState.SUBMITTED)
        self.assertIs(outcome.trigger, SubmitTrigger.MANUAL)
        self.assertEqual((outcome.score, outcome.total), (3, 3))
        self.assertEqual(len(outcome.answers), 3)

        stored = self.device.store.query_all()
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].score, 3)
        self.assertEqual(stored[0].time_taken, 3)

    def test_tamil_session_shows_tamil_text(self) -> None:
        session = self.device.session(language="ta")
        session.bootstrap()

        view = session.current_question()
        self.assertTrue(view.prompt.startswith("கேள்வி"))
        session.select_option(0)
        self.assertTrue(session.current_question().selected_correct)

    def test_empty_chapter_cannot_start(self) -> None:
        session = Device(bank=InMemoryQuestionBank()).session()

        with self.assertRaises(EmptyQuestionSetError):
            session.bootstrap()
        self.assertIs(session.terminal_state, TerminalState.LOAD_ERROR)


class SubmissionTests(unittest.TestCase):
    def test_timer_expiry_submits_unanswered_session_once(self) -> None:
        device = Device()
        session = device.session(duration_minutes=1)
        session.bootstrap()

        for _ in range(60):
            session.tick()
        session.tick()

        outcome = session.outcome
        self.assertIs(outcome.trigger, SubmitTrigger.TIMER_EXPIRED)
        self.assertEqual(outcome.score, 0)
        self.assertEqual(outcome.time_taken, 60)
        stored = device.store.query_all()
        self.assertEqual(len(stored), 1)
        self.assertEqual((stored[0].score, stored[0].total), (0, 3))

    def test_timer_expiry_through_pump(self) -> None:
        device = Device()
        session = device.session(duration_minutes=1)
        session.bootstrap()

        device.clock.advance(75)
        session.pump()

        self.assertIs(session.terminal_state, TerminalState.SUBMITTED)
        self.assertEqual(session.outcome.time_taken, 60)

    def test_competing_triggers_write_exactly_once(self) -> None:
        device = Device()
        session = device.session()
        session.bootstrap()
        device.answer_all(session)

        session.submit()
        session.submit()
        session.tick()
        verdict = session.report_navigation(NavigationKind.UNLOAD)

        self.assertIs(verdict.action, NavigationAction.IGNORE)
        self.assertEqual(device.executor.submitted, 1)
        self.assertEqual(len(device.store.query_all()), 1)

    def test_navigation_warns_then_forces_submit(self) -> None:
        device = Device()
        session = device.session()
        session.bootstrap()
        session.select_option(0)

        warning = session.report_navigation(NavigationKind.VISIBILITY_HIDDEN)
        self.assertIs(warning.action, NavigationAction.WARN)
        self.assertIs(session.state, SessionState.ACTIVE)

        forced = session.report_navigation(NavigationKind.HISTORY)
        self.assertIs(forced.action, NavigationAction.FORCE_SUBMIT)
        self.assertIs(session.outcome.trigger, SubmitTrigger.NAVIGATION)
        self.assertEqual(device.store.query_all()[0].score, 1)

    def test_write_failure_still_ends_submitted_and_stays_staged(self) -> None:
        device = Device(store=FlakyResultStore(failures=1))
        session = device.session()
        session.bootstrap()
        device.answer_all(session)
        session.submit()

        self.assertIs(session.terminal_state, TerminalState.SUBMITTED)
        self.assertEqual(device.store.query_all(), [])
        self.assertTrue(device.recovery.has_pending("9000000000", "C1"))

        retry = device.session()
        retry.bootstrap()
        self.assertIs(retry.terminal_state, TerminalState.ALREADY_ATTEMPTED)
        self.assertEqual(len(device.store.query_all()), 1)
        self.assertFalse(device.recovery.has_pending("9000000000", "C1"))


class AttemptGuardSessionTests(unittest.TestCase):
    def test_second_attempt_same_device_is_denied(self) -> None:
        device = Device()
        first = device.session()
        first.bootstrap()
        device.answer_all(first)
        first.submit()

        second = device.session()
        second.bootstrap()

        self.assertIs(second.terminal_state, TerminalState.ALREADY_ATTEMPTED)
        self.assertIsNone(second.current_question())
        self.assertEqual(len(device.store.query_all()), 1)

    def test_second_attempt_other_device_is_denied_by_store(self) -> None:
        store = InMemoryResultStore()
        first_device = Device(store=store)
        first = first_device.session()
        first.bootstrap()
        first_device.answer_all(first)
        first.submit()

        other = Device(store=store, bank=first_device.bank).session()
        other.bootstrap()

        self.assertIs(other.terminal_state, TerminalState.ALREADY_ATTEMPTED)

    def test_other_chapter_is_still_allowed(self) -> None:
        device = Device()
        device.bank.load_chapter("C2", device.bank.fetch_by_chapter("C1"))
        first = device.session()
        first.bootstrap()
        device.answer_all(first)
        first.submit()

        second = device.session(chapter_id="C2")

        self.assertIs(second.bootstrap(), SessionState.ACTIVE)


class RecoveryAcrossReloadTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.stage_dir = Path(self._tmp.name) / "device"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_reload_mid_write_leaves_exactly_one_row(self) -> None:
        store = InMemoryResultStore()
        executor = DeferredExecutor()
        before = Device(store=store, stage=FileStage(self.stage_dir), executor=executor)
        session = before.session()
        session.bootstrap()
        before.answer_all(session)
        session.submit()
        self.assertEqual(store.query_all(), [])

        after = Device(store=store, stage=FileStage(self.stage_dir), bank=before.bank)
        reloaded = after.session()
        reloaded.bootstrap()

        self.assertIs(reloaded.terminal_state, TerminalState.ALREADY_ATTEMPTED)
        self.assertEqual(len(store.query_all()), 1)

        executor.run_pending()

        self.assertEqual(len(store.query_all()), 1)
        self.assertFalse(after.recovery.has_pending("9000000000", "C1"))

    def test_marker_for_one_chapter_does_not_deny_a_lookalike(self) -> None:
        bank = InMemoryQuestionBank()
        questions = make_bank().fetch_by_chapter("C1")
        bank.load_chapter("Chapter 1", questions)
        bank.load_chapter("Chapter_1", questions)
        device = Device(stage=FileStage(self.stage_dir), bank=bank)
        first = device.session(chapter_id="Chapter 1")
        first.bootstrap()
        device.answer_all(first)
        first.submit()

        reopened = Device(store=device.store, stage=FileStage(self.stage_dir), bank=bank)

        self.assertIs(reopened.session(chapter_id="Chapter_1").bootstrap(), SessionState.ACTIVE)
        again = reopened.session(chapter_id="Chapter 1")
        again.bootstrap()
        self.assertIs(again.terminal_state, TerminalState.ALREADY_ATTEMPTED)


class PreviewTests(unittest.TestCase):
    def test_preview_touches_neither_store_nor_stage(self) -> None:
        device = Device()
        device.store.insert(make_result("Kavya", 3, 100, phone="9000000000", total=3))
        session = device.session(preview=True)

        self.assertIs(session.bootstrap(), SessionState.ACTIVE)
        self.assertFalse(session.timer.running)
        self.assertIsNone(session.snapshot().remaining_seconds)
        self.assertIs(
            session.report_navigation(NavigationKind.UNLOAD).action,
            NavigationAction.IGNORE,
        )

        device.answer_all(session)
        session.submit()

        self.assertTrue(session.outcome.preview)
        self.assertEqual(session.outcome.score, 3)
        self.assertEqual(len(device.store.query_all()), 1)
        self.assertEqual(device.stage.keys(), [])
        self.assertEqual(device.executor.submitted, 0)


if __name__ == "__main__":
    unittest.main()
