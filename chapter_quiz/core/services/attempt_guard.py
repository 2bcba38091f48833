"""Gate that keeps a participant from re-entering a chapter they already finished."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
import logging

from chapter_quiz.constants.storage_constants import ATTEMPT_MARKER_PREFIX
from chapter_quiz.core.errors import DuplicateAttemptError
from chapter_quiz.core.services.local_stage import LocalStage, stage_key
from chapter_quiz.core.services.result_store import ResultStore

logger = logging.getLogger(__name__)


class AttemptVerdict(Enum):
    ALLOW = "allow"
    DENY = "deny"


class AttemptGuard:
    """Checks the local marker first, then the result store."""

    def __init__(self, result_store: ResultStore, stage: LocalStage) -> None:
        self._result_store = result_store
        self._stage = stage

    def evaluate(self, phone: str, chapter_id: str) -> AttemptVerdict:
        if self.has_local_marker(phone, chapter_id):
            logger.info("Local marker denies %s for chapter %s", phone, chapter_id)
            return AttemptVerdict.DENY
        if self._result_store.find_by_identity(phone, chapter_id) is not None:
            logger.info("Stored result denies %s for chapter %s", phone, chapter_id)
            self.record_attempt(phone, chapter_id)
            return AttemptVerdict.DENY
        return AttemptVerdict.ALLOW

    def ensure_allowed(self, phone: str, chapter_id: str) -> None:
        if self.evaluate(phone, chapter_id) is AttemptVerdict.DENY:
            raise DuplicateAttemptError(phone, chapter_id)

    def record_attempt(self, phone: str, chapter_id: str) -> None:
        self._stage.put(
            self._key(phone, chapter_id),
            {"recorded_at": datetime.now(timezone.utc).isoformat()},
        )

    def has_local_marker(self, phone: str, chapter_id: str) -> bool:
        return self._stage.get(self._key(phone, chapter_id)) is not None

    @staticmethod
    def _key(phone: str, chapter_id: str) -> str:
        return stage_key(ATTEMPT_MARKER_PREFIX, phone, chapter_id)
