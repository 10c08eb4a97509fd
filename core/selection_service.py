"""Picks the next problem for the learner."""

import logging
from typing import Optional

from core.batch_repository import ProblemBatchRepository
from core.dto import Problem, ProblemBatch
from core.progress_repository import ProgressRepository

logger = logging.getLogger(__name__)


class ProblemSelectionService:
    """Serves unsolved problems from the learner's current batch.

    Reading never marks anything completed. The only write is pointing
    progress at the latest batch when no current batch is set.
    """

    def __init__(self, batches: ProblemBatchRepository, progress: ProgressRepository):
        self.batches = batches
        self.progress = progress

    def get_current_batch(self) -> Optional[ProblemBatch]:
        progress = self.progress.get_user_progress()
        if progress is None or progress.current_batch_id is None:
            return None
        return self.batches.get_batch_by_id(progress.current_batch_id)

    def select_batch(self, batch_id: str) -> ProblemBatch:
        """Point progress at a specific stored batch.

        Raises:
            LookupError: if the batch does not exist
        """
        batch = self.batches.get_batch_by_id(batch_id)
        if batch is None:
            raise LookupError(f"Batch {batch_id} not found")
        self.progress.update_user_progress(current_batch_id=batch.id)
        return batch

    def get_next_problem(self) -> Optional[Problem]:
        """First unsolved problem (creation order) of the current batch.

        When no current batch is set, or it no longer exists, the latest
        imported batch becomes current. Returns None when there are no
        batches or the current batch is exhausted; unsolved problems in
        other batches are not considered.
        """
        progress = self.progress.get_user_progress()
        batch_id = progress.current_batch_id if progress else None

        if batch_id is not None and self.batches.get_batch_by_id(batch_id) is None:
            logger.debug(f"Current batch {batch_id} no longer exists")
            batch_id = None

        if batch_id is None:
            latest = self.batches.get_latest_batch()
            if latest is None:
                return None
            try:
                self.progress.update_user_progress(current_batch_id=latest.id)
            except ValueError:
                # Batch vanished between the lookup and the pointer write
                logger.debug(f"Latest batch {latest.id} disappeared during selection")
                return None
            logger.info(f"Current batch set to {latest.id}")
            batch_id = latest.id

        unsolved = self.batches.get_unsolved_problems(batch_id, limit=1)
        return unsolved[0] if unsolved else None
