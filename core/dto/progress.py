"""Progress DTOs."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UserProgress:
    """Singleton progress record for the device's learner.

    Attributes:
        id: Learner identifier (one record per learner)
        current_batch_id: Batch the learner is working through, if any
        problems_attempted: Answers submitted since the last reset
        problems_correct: Correct answers since the last reset
    """
    id: str
    current_batch_id: Optional[str]
    problems_attempted: int
    problems_correct: int
    created_at: datetime
    updated_at: datetime

    @property
    def accuracy(self) -> float:
        if self.problems_attempted <= 0:
            return 0.0
        return self.problems_correct / self.problems_attempted


@dataclass(frozen=True)
class TopicAccuracy:
    """Attempted/correct counts for one problem type."""
    problem_type: str
    attempted: int
    correct: int

    @property
    def incorrect(self) -> int:
        return self.attempted - self.correct


@dataclass(frozen=True)
class SyncResult:
    """Result of one sync attempt.

    disposition is None when no candidate batch was obtained; error then
    says why. Local state is untouched in that case.
    """
    disposition: Optional[str]
    batch_id: Optional[str] = None
    error: Optional[str] = None
    synced_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.disposition is not None
