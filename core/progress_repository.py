"""
Progress repository.

Attempt/correct counters and the current-batch pointer for the device's
learner. The record is created lazily with zero counters.
"""

import logging
from dataclasses import replace
from typing import Optional

from config import Config
from core.dto import UserProgress, utc_now
from core.ports import ProblemStore

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = ("current_batch_id", "problems_attempted", "problems_correct")


class ProgressRepository:
    """Reads and updates the UserProgress singleton."""

    def __init__(self, store: ProblemStore, user_id: Optional[str] = None):
        self.store = store
        self.user_id = user_id or Config.USER_ID

    def get_user_progress(self) -> Optional[UserProgress]:
        return self.store.fetch_progress(self.user_id)

    def _get_or_create(self) -> UserProgress:
        progress = self.store.fetch_progress(self.user_id)
        if progress is None:
            now = utc_now()
            progress = UserProgress(
                id=self.user_id,
                current_batch_id=None,
                problems_attempted=0,
                problems_correct=0,
                created_at=now,
                updated_at=now,
            )
            self.store.save_progress(progress)
            logger.info(f"Initialized progress for {self.user_id}")
        return progress

    def update_user_progress(self, **fields) -> UserProgress:
        """Merge fields into the progress record, creating it if needed.

        Args:
            **fields: Any of current_batch_id, problems_attempted, problems_correct

        Returns:
            The updated record

        Raises:
            ValueError: Unknown field, a counter going negative or backwards,
                or more correct answers than attempts
        """
        unknown = set(fields) - set(PROGRESS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown progress fields: {', '.join(sorted(unknown))}")

        with self.store.transaction():
            current = self._get_or_create()
            updated = replace(current, updated_at=utc_now(), **fields)

            for counter in ("problems_attempted", "problems_correct"):
                value = getattr(updated, counter)
                if value < 0:
                    raise ValueError(f"{counter} cannot be negative")
                if value < getattr(current, counter):
                    raise ValueError(f"{counter} cannot decrease; use reset_user_progress()")
            if updated.problems_correct > updated.problems_attempted:
                raise ValueError("problems_correct cannot exceed problems_attempted")

            self.store.save_progress(updated)
            return updated

    def record_attempt(self, is_correct: bool) -> UserProgress:
        """Count one submitted answer."""
        with self.store.transaction():
            current = self._get_or_create()
            return self.update_user_progress(
                problems_attempted=current.problems_attempted + 1,
                problems_correct=current.problems_correct + (1 if is_correct else 0),
            )

    def reset_user_progress(self) -> UserProgress:
        """Zero the counters and mark every stored problem unsolved.

        Both happen in one transaction, so counters and problem state
        never disagree.
        """
        with self.store.transaction():
            current = self._get_or_create()
            now = utc_now()
            reset = replace(current, problems_attempted=0, problems_correct=0, updated_at=now)
            self.store.save_progress(reset)
            touched = self.store.reset_problems(now)
        logger.info(f"Progress reset for {self.user_id}; {touched} problems marked unsolved")
        return reset
