"""
Practice session.

Caller-side state for one sitting: the problem on screen, which problems
already had an answer recorded this session, and sync-on-start. A learner
may retry a problem after a wrong answer, but only the first answer
counts towards progress.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from core.answer_check import AnswerChecker, is_answer_correct
from core.dto import Problem, SolutionStep, SyncResult, UserProgress
from core.problem_sync import ProblemSyncService
from core.progress_repository import ProgressRepository
from core.selection_service import ProblemSelectionService
from core.submission_service import AnswerSubmissionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of answering the current problem.

    Attributes:
        problem_id: Problem that was answered
        is_correct: Checker verdict for this answer
        recorded: False when an earlier answer this session was already counted
        progress: Progress after recording (None when not recorded)
    """
    problem_id: str
    is_correct: bool
    recorded: bool
    progress: Optional[UserProgress] = None


class PracticeSession:
    """One learner sitting over the selection and submission services."""

    def __init__(
        self,
        selection: ProblemSelectionService,
        submission: AnswerSubmissionService,
        progress: ProgressRepository,
        checker: Optional[AnswerChecker] = None,
        sync: Optional[ProblemSyncService] = None,
    ):
        self.selection = selection
        self.submission = submission
        self.progress = progress
        self.checker = checker or is_answer_correct
        self.sync = sync
        self.current_problem: Optional[Problem] = None
        self.last_sync: Optional[SyncResult] = None
        self._recorded: Set[str] = set()

    def start(self, force_sync: bool = False) -> Optional[Problem]:
        """Sync if due, then load the first problem.

        A failed sync is logged and the session continues with whatever
        is stored locally.
        """
        if self.sync is not None and (force_sync or self.sync.should_sync()):
            try:
                self.last_sync = self.sync.sync_problems()
            except Exception as e:
                logger.warning(f"Sync failed but continuing with local data: {e}", exc_info=True)
                self.last_sync = SyncResult(disposition=None, error=str(e))
        return self.load_next()

    def load_next(self) -> Optional[Problem]:
        self.current_problem = self.selection.get_next_problem()
        return self.current_problem

    def has_recorded(self, problem_id: str) -> bool:
        return problem_id in self._recorded

    def answer(self, user_answer: str) -> AnswerOutcome:
        """Check an answer to the current problem and record the first one.

        Raises:
            RuntimeError: if no problem is loaded
        """
        problem = self.current_problem
        if problem is None:
            raise RuntimeError("No problem loaded; call start() or load_next() first")

        is_correct = bool(self.checker(user_answer, problem.answer))
        if problem.id in self._recorded:
            logger.debug(f"Answer for {problem.id} already recorded this session")
            return AnswerOutcome(problem_id=problem.id, is_correct=is_correct, recorded=False)

        progress = self.submission.submit_answer(problem.id, user_answer, is_correct)
        self._recorded.add(problem.id)
        return AnswerOutcome(
            problem_id=problem.id,
            is_correct=is_correct,
            recorded=True,
            progress=progress,
        )

    def show_solution(self) -> List[SolutionStep]:
        """Worked solution for the current problem (marks it as shown)."""
        problem = self.current_problem
        if problem is None:
            raise RuntimeError("No problem loaded; call start() or load_next() first")
        self.submission.mark_solution_shown(problem.id)
        return list(problem.solution_steps)

    def reset(self) -> Optional[Problem]:
        """Reset progress and start over from the current batch."""
        self.progress.reset_user_progress()
        self._recorded.clear()
        return self.load_next()
