"""Interception of refresh, history and tab-visibility events during an active session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

from chapter_quiz.constants.messages import NAVIGATION_FORCED_SUBMIT, NAVIGATION_WARNING, localized
from chapter_quiz.core.models import Language

logger = logging.getLogger(__name__)


class NavigationKind(Enum):
    UNLOAD = "unload"
    HISTORY = "history"
    VISIBILITY_HIDDEN = "visibility_hidden"


class NavigationAction(Enum):
    IGNORE = "ignore"
    WARN = "warn"
    FORCE_SUBMIT = "force_submit"


@dataclass(slots=True, frozen=True)
class NavigationVerdict:
    """What the client must do with an intercepted navigation event.

    ``prevent_default`` tells the client to cancel the browser's navigation;
    ``restore_history`` tells it to push the session's history entry back so
    a back/forward press does not leave the page.
    """

    kind: NavigationKind
    action: NavigationAction
    prevent_default: bool
    restore_history: bool
    message: str | None = None


class NavigationGuard:
    """Warns on the first interception and escalates to a forced submit afterwards."""

    def __init__(self, language: Language = Language.ENGLISH, enabled: bool = True) -> None:
        self._language = language
        self._armed = enabled
        self._escalated = False
        self._visibility_losses = 0
        self._interceptions = 0

    def intercept(self, kind: NavigationKind) -> NavigationVerdict:
        if not self._armed:
            return NavigationVerdict(kind, NavigationAction.IGNORE, False, False)

        self._interceptions += 1
        repeat_visibility_loss = kind is NavigationKind.VISIBILITY_HIDDEN and self._visibility_losses > 0
        if kind is NavigationKind.VISIBILITY_HIDDEN:
            self._visibility_losses += 1
        restore_history = kind is NavigationKind.HISTORY

        if self._escalated or repeat_visibility_loss:
            logger.info("Navigation %s after warning, forcing submission", kind.value)
            return NavigationVerdict(
                kind,
                NavigationAction.FORCE_SUBMIT,
                prevent_default=True,
                restore_history=restore_history,
                message=localized(NAVIGATION_FORCED_SUBMIT, self._language.value),
            )

        self._escalated = True
        logger.info("Navigation %s intercepted, warning issued", kind.value)
        return NavigationVerdict(
            kind,
            NavigationAction.WARN,
            prevent_default=True,
            restore_history=restore_history,
            message=localized(NAVIGATION_WARNING, self._language.value),
        )

    def disarm(self) -> None:
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def escalated(self) -> bool:
        return self._escalated

    @property
    def interception_count(self) -> int:
        return self._interceptions
