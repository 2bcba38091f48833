"""Durable staging of results between the decision to submit and the acknowledged write."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
import logging

from pydantic import BaseModel, Field

from chapter_quiz.constants.storage_constants import PENDING_RESULT_PREFIX, STAGE_KEY_SEPARATOR
from chapter_quiz.core.errors import DuplicateResultError, WriteFailure
from chapter_quiz.core.models import Language, Result
from chapter_quiz.core.services.local_stage import LocalStage, stage_key
from chapter_quiz.core.services.result_store import ResultStore

logger = logging.getLogger(__name__)


class StagedResult(BaseModel):
    """Serialized form of a pending result kept in the device stage."""

    name: str
    phone: str
    place: str
    language: Language
    chapter_id: str
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    time_taken: int | None = None
    created_at: datetime

    @classmethod
    def from_result(cls, result: Result) -> "StagedResult":
        return cls(
            name=result.name,
            phone=result.phone,
            place=result.place,
            language=result.language,
            chapter_id=result.chapter_id,
            score=result.score,
            total=result.total,
            time_taken=result.time_taken,
            created_at=result.created_at,
        )

    def to_result(self) -> Result:
        return Result(
            name=self.name,
            phone=self.phone,
            place=self.place,
            language=self.language,
            chapter_id=self.chapter_id,
            score=self.score,
            total=self.total,
            time_taken=self.time_taken,
            created_at=self.created_at,
        )


class ReplayOutcome(Enum):
    NOTHING_STAGED = "nothing_staged"
    DELIVERED = "delivered"
    ALREADY_STORED = "already_stored"
    FAILED = "failed"


class RecoveryStage:
    """Stages result payloads and replays them into the result store."""

    def __init__(self, stage: LocalStage, result_store: ResultStore) -> None:
        self._stage = stage
        self._result_store = result_store

    def stage(self, result: Result) -> None:
        payload = StagedResult.from_result(result).model_dump(mode="json")
        self._stage.put(self._key(result.phone, result.chapter_id), payload)
        logger.info("Staged result for %s in chapter %s", result.phone, result.chapter_id)

    def load(self, phone: str, chapter_id: str) -> Result | None:
        payload = self._stage.get(self._key(phone, chapter_id))
        if payload is None:
            return None
        return StagedResult.model_validate(payload).to_result()

    def has_pending(self, phone: str, chapter_id: str) -> bool:
        return self._stage.get(self._key(phone, chapter_id)) is not None

    def clear(self, phone: str, chapter_id: str) -> None:
        self._stage.delete(self._key(phone, chapter_id))

    def replay(self, phone: str, chapter_id: str) -> ReplayOutcome:
        """Deliver a staged payload, clearing it once the store has the row."""
        staged = self.load(phone, chapter_id)
        if staged is None:
            return ReplayOutcome.NOTHING_STAGED
        try:
            self._result_store.insert(staged)
        except DuplicateResultError:
            logger.info("Staged result for %s in %s was already stored", phone, chapter_id)
            self.clear(phone, chapter_id)
            return ReplayOutcome.ALREADY_STORED
        except WriteFailure as exc:
            logger.warning("Replay for %s in %s failed, keeping it staged: %s", phone, chapter_id, exc)
            return ReplayOutcome.FAILED
        self.clear(phone, chapter_id)
        logger.info("Replayed staged result for %s in chapter %s", phone, chapter_id)
        return ReplayOutcome.DELIVERED

    def pending_identities(self) -> list[tuple[str, str]]:
        prefix = PENDING_RESULT_PREFIX + STAGE_KEY_SEPARATOR
        identities = []
        for key in self._stage.keys(prefix):
            _, phone, chapter_id = key.split(STAGE_KEY_SEPARATOR, 2)
            identities.append((phone, chapter_id))
        return identities

    def replay_all(self) -> dict[tuple[str, str], ReplayOutcome]:
        return {
            identity: self.replay(*identity)
            for identity in self.pending_identities()
        }

    @staticmethod
    def _key(phone: str, chapter_id: str) -> str:
        return stage_key(PENDING_RESULT_PREFIX, phone, chapter_id)
