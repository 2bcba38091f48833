"""Per-chapter standings kept current from the result store's change stream."""

from __future__ import annotations

import logging

from chapter_quiz.constants.quiz_constants import RESULTS_TABLE
from chapter_quiz.core.models import Result
from chapter_quiz.core.services.ranking import RankedResult, rank_results
from chapter_quiz.core.services.result_store import ResultStore

logger = logging.getLogger(__name__)


class LiveLeaderboard:
    """Caches ranked standings for one chapter.

    ``sync`` drains pending change events and re-queries the chapter only when
    one of them touched it, mirroring a view that refetches on notification.
    """

    def __init__(self, result_store: ResultStore, chapter_id: str) -> None:
        self._result_store = result_store
        self._chapter_id = chapter_id
        self._subscription = result_store.subscribe_changes(RESULTS_TABLE)
        self._results: list[Result] = []
        self._standings: list[RankedResult] = []
        self._refresh_count = 0
        self.refresh()

    @property
    def chapter_id(self) -> str:
        return self._chapter_id

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    def refresh(self) -> None:
        self._results = self._result_store.query_by_chapter(self._chapter_id)
        self._standings = rank_results(self._results)
        self._refresh_count += 1
        logger.debug("Leaderboard for %s refreshed (%d entries)", self._chapter_id, len(self._standings))

    def sync(self) -> bool:
        """Apply queued changes. Returns True when the standings were recomputed."""
        events = self._subscription.drain()
        if any(event.chapter_id == self._chapter_id for event in events):
            self.refresh()
            return True
        return False

    def standings(self) -> list[RankedResult]:
        self.sync()
        return list(self._standings)

    def results(self) -> list[Result]:
        self.sync()
        return list(self._results)

    def close(self) -> None:
        self._subscription.close()
