import threading
import time
import unittest

from chapter_quiz.core.quiz_manager import QuizManager
from chapter_quiz.core.services.local_stage import InMemoryStage
from chapter_quiz.core.services.result_store import InMemoryResultStore
from chapter_quiz.core.services.session_ticker import SessionTicker
from tests.helpers import FakeClock, InlineExecutor, intake, make_bank


class SessionTickerTests(unittest.TestCase):
    def test_pumps_until_stopped_and_survives_errors(self) -> None:
        calls = []
        reached = threading.Event()

        def pump() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first pump fails")
            if len(calls) >= 3:
                reached.set()

        ticker = SessionTicker(pump, interval_seconds=0.01)
        ticker.start()
        self.assertTrue(reached.wait(timeout=5))
        ticker.stop(timeout=5)

        self.assertFalse(ticker.is_running())
        count = len(calls)
        time.sleep(0.05)
        self.assertEqual(len(calls), count)

    def test_rejects_non_positive_interval(self) -> None:
        with self.assertRaises(ValueError):
            SessionTicker(lambda: None, interval_seconds=0)


class PumpSessionsTests(unittest.TestCase):
    def test_manager_pump_expires_active_sessions(self) -> None:
        clock = FakeClock()
        store = InMemoryResultStore()
        manager = QuizManager(make_bank(), store, InMemoryStage(), executor=InlineExecutor(), clock=clock)
        manager.start_session(intake(phone="9000000001"))
        manager.start_session(intake(phone="9000000002"))
        self.assertEqual(manager.get_active_session_count(), 2)

        clock.advance(60)
        manager.pump_sessions()

        self.assertEqual(manager.get_active_session_count(), 0)
        self.assertEqual(len(store.query_all()), 2)
        manager.shutdown()


if __name__ == "__main__":
    unittest.main()
