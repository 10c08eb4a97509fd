"""Abstract storage interface for batches, problems and progress.

The repositories and services depend on this abstraction rather than on
a concrete database, so the backend can be chosen once at startup.

Implementations:
- SQLiteProblemStore: durable store (storage/database.py)
- InMemoryProblemStore: process-lifetime store for development and tests
  (storage/memory.py)
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, ContextManager, Dict, List, Optional

from core.dto import Problem, ProblemBatch, UserProgress

# Problem columns the learner's actions may change
MUTABLE_PROBLEM_FIELDS = frozenset({"is_completed", "user_answer", "solution_steps_shown"})


class ProblemStore(ABC):
    """Abstract store for problem batches, problems and user progress.

    Every mutating method is atomic on its own. transaction() groups
    several calls into one all-or-nothing unit and may be nested; an
    exception leaving the outermost block restores the pre-transaction
    state.
    """

    @abstractmethod
    def transaction(self) -> ContextManager["ProblemStore"]:
        """Open a (possibly nested) transaction scope."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    # ==================== BATCHES ====================

    @abstractmethod
    def insert_batch(self, batch: ProblemBatch) -> None:
        """Insert a batch row.

        Raises:
            ValueError: if a batch with the same id already exists
        """
        pass

    @abstractmethod
    def fetch_batch(self, batch_id: str) -> Optional[ProblemBatch]:
        pass

    @abstractmethod
    def fetch_batches(self) -> List[ProblemBatch]:
        """All batches, most recently imported first."""
        pass

    @abstractmethod
    def fetch_batches_on_day(
        self,
        day: date,
        exclude_id: Optional[str] = None,
    ) -> List[ProblemBatch]:
        """Batches whose UTC generation day equals day.

        Args:
            day: Calendar day to match
            exclude_id: Batch id to leave out of the result

        Returns:
            Matching batches, most recent generation_date first
        """
        pass

    @abstractmethod
    def delete_batch(self, batch_id: str) -> bool:
        """Delete a batch and its problems.

        Returns:
            True if the batch existed
        """
        pass

    @abstractmethod
    def delete_all_batches(self) -> None:
        pass

    # ==================== PROBLEMS ====================

    @abstractmethod
    def insert_problem(self, problem: Problem) -> None:
        """Insert a problem row.

        Raises:
            ValueError: if the id is taken or the owning batch is missing
        """
        pass

    @abstractmethod
    def fetch_problem(self, problem_id: str) -> Optional[Problem]:
        pass

    @abstractmethod
    def fetch_problems(
        self,
        batch_id: str,
        unsolved_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Problem]:
        """Problems of a batch in creation order.

        Args:
            batch_id: Owning batch
            unsolved_only: Only problems with is_completed = False
            limit: Maximum number of problems to return

        Returns:
            Problems ordered by created_at, then position
        """
        pass

    @abstractmethod
    def fetch_completed_problems(self) -> List[Problem]:
        pass

    @abstractmethod
    def update_problem(
        self,
        problem_id: str,
        changes: Dict[str, Any],
        updated_at: datetime,
    ) -> bool:
        """Apply changes (keys from MUTABLE_PROBLEM_FIELDS) to a problem.

        Returns:
            True if the problem exists
        """
        pass

    @abstractmethod
    def reset_problems(self, updated_at: datetime) -> int:
        """Mark every problem unsolved with no answer.

        Returns:
            Number of problems touched
        """
        pass

    # ==================== PROGRESS ====================

    @abstractmethod
    def fetch_progress(self, user_id: str) -> Optional[UserProgress]:
        pass

    @abstractmethod
    def save_progress(self, progress: UserProgress) -> None:
        """Insert or replace the progress record for progress.id."""
        pass

    # ==================== SYNC STATE ====================

    @abstractmethod
    def get_state(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_state(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_state(self, key: str) -> None:
        pass


def check_problem_changes(changes: Dict[str, Any]) -> None:
    """Reject changes to columns the learner cannot touch."""
    unknown = set(changes) - MUTABLE_PROBLEM_FIELDS
    if unknown:
        raise ValueError(f"Cannot update problem fields: {', '.join(sorted(unknown))}")
