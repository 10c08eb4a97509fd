"""Records learner answers."""

import logging
from typing import Any

from core.batch_repository import ProblemBatchRepository
from core.dto import UserProgress
from core.progress_repository import ProgressRepository

logger = logging.getLogger(__name__)


class AnswerSubmissionService:
    """Records what it is told, nothing more.

    Calling submit_answer twice for one problem counts twice; callers keep
    their own "already recorded" flag per problem (see PracticeSession).
    """

    def __init__(self, batches: ProblemBatchRepository, progress: ProgressRepository):
        self.batches = batches
        self.progress = progress

    def submit_answer(self, problem_id: str, user_answer: Any, is_correct: bool) -> UserProgress:
        """Mark a problem completed and count the attempt, as one transaction.

        Args:
            problem_id: Problem being answered
            user_answer: Learner's raw answer (stored as a string)
            is_correct: Verdict from the answer checker

        Returns:
            Progress after the attempt

        Raises:
            LookupError: if the problem does not exist (nothing is changed)
        """
        with self.batches.store.transaction():
            updated = self.batches.update_problem(
                problem_id,
                is_completed=True,
                user_answer=str(user_answer),
            )
            if not updated:
                raise LookupError(f"Problem {problem_id} not found")
            progress = self.progress.record_attempt(is_correct)

        logger.info(
            f"Recorded {'correct' if is_correct else 'incorrect'} answer for {problem_id} "
            f"({progress.problems_correct}/{progress.problems_attempted})"
        )
        return progress

    def mark_solution_shown(self, problem_id: str) -> None:
        """Remember that the learner opened the worked solution.

        Raises:
            LookupError: if the problem does not exist
        """
        if not self.batches.update_problem(problem_id, solution_steps_shown=True):
            raise LookupError(f"Problem {problem_id} not found")
