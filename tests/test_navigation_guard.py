import unittest

from chapter_quiz.constants.messages import NAVIGATION_FORCED_SUBMIT, NAVIGATION_WARNING
from chapter_quiz.core.models import Language
from chapter_quiz.core.services.navigation_guard import (
    NavigationAction,
    NavigationGuard,
    NavigationKind,
)


class NavigationGuardTests(unittest.TestCase):
    def test_first_attempt_warns_then_escalates(self) -> None:
        guard = NavigationGuard()

        first = guard.intercept(NavigationKind.UNLOAD)
        second = guard.intercept(NavigationKind.UNLOAD)

        self.assertIs(first.action, NavigationAction.WARN)
        self.assertTrue(first.prevent_default)
        self.assertEqual(first.message, NAVIGATION_WARNING["en"])
        self.assertIs(second.action, NavigationAction.FORCE_SUBMIT)
        self.assertEqual(second.message, NAVIGATION_FORCED_SUBMIT["en"])
        self.assertEqual(guard.interception_count, 2)

    def test_history_navigation_restores_entry(self) -> None:
        guard = NavigationGuard()

        verdict = guard.intercept(NavigationKind.HISTORY)

        self.assertIs(verdict.action, NavigationAction.WARN)
        self.assertTrue(verdict.restore_history)
        self.assertFalse(guard.intercept(NavigationKind.UNLOAD).restore_history)

    def test_mixed_kinds_share_one_escalation(self) -> None:
        guard = NavigationGuard()

        guard.intercept(NavigationKind.VISIBILITY_HIDDEN)
        verdict = guard.intercept(NavigationKind.HISTORY)

        self.assertIs(verdict.action, NavigationAction.FORCE_SUBMIT)
        self.assertTrue(guard.escalated)

    def test_disarmed_guard_ignores_everything(self) -> None:
        guard = NavigationGuard()
        guard.disarm()

        verdict = guard.intercept(NavigationKind.UNLOAD)

        self.assertIs(verdict.action, NavigationAction.IGNORE)
        self.assertFalse(verdict.prevent_default)
        self.assertIsNone(verdict.message)
        self.assertEqual(guard.interception_count, 0)

    def test_disabled_guard_starts_disarmed(self) -> None:
        guard = NavigationGuard(enabled=False)

        self.assertFalse(guard.armed)
        self.assertIs(guard.intercept(NavigationKind.HISTORY).action, NavigationAction.IGNORE)

    def test_messages_follow_participant_language(self) -> None:
        guard = NavigationGuard(Language.TAMIL)

        self.assertEqual(guard.intercept(NavigationKind.UNLOAD).message, NAVIGATION_WARNING["ta"])


if __name__ == "__main__":
    unittest.main()
