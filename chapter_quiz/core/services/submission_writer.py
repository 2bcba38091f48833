"""Background delivery of staged results to the result store."""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
import logging

from chapter_quiz.core.errors import DuplicateResultError, WriteFailure
from chapter_quiz.core.models import Result
from chapter_quiz.core.services.recovery_stage import RecoveryStage
from chapter_quiz.core.services.result_store import ResultStore

logger = logging.getLogger(__name__)


class ResultWriter:
    """Runs result inserts off the caller's thread.

    The staged copy is cleared once the store acknowledges the row (or reports
    it already exists). A failed write leaves it staged for the next replay.
    """

    def __init__(
        self,
        result_store: ResultStore,
        recovery_stage: RecoveryStage,
        executor: Executor | None = None,
    ) -> None:
        self._result_store = result_store
        self._recovery_stage = recovery_stage
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="ResultWriter")

    def dispatch(self, result: Result) -> Future:
        future = self._executor.submit(self._deliver, result)
        future.add_done_callback(self._log_unexpected_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _deliver(self, result: Result) -> Result | None:
        try:
            stored = self._result_store.insert(result)
        except DuplicateResultError:
            logger.info("Result for %s in %s already stored", result.phone, result.chapter_id)
            self._recovery_stage.clear(result.phone, result.chapter_id)
            return None
        except WriteFailure as exc:
            logger.warning(
                "Write for %s in %s failed, left staged for replay: %s",
                result.phone,
                result.chapter_id,
                exc,
            )
            return None
        self._recovery_stage.clear(result.phone, result.chapter_id)
        return stored

    @staticmethod
    def _log_unexpected_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Result delivery raised unexpectedly", exc_info=exc)
