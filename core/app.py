"""Wiring of repositories and services around one store."""

from dataclasses import dataclass
from typing import Optional

from core.accuracy import TopicAccuracyService
from core.answer_check import AnswerChecker, is_answer_correct
from core.batch_repository import ProblemBatchRepository
from core.ports import ProblemStore
from core.practice_session import PracticeSession
from core.problem_sync import BatchSource, ProblemSyncService
from core.progress_repository import ProgressRepository
from core.selection_service import ProblemSelectionService
from core.submission_service import AnswerSubmissionService
from core.sync_reconciler import SyncReconciler


@dataclass
class AppServices:
    """Everything the UI layer talks to, built over a single store."""
    store: ProblemStore
    batches: ProblemBatchRepository
    progress: ProgressRepository
    reconciler: SyncReconciler
    selection: ProblemSelectionService
    submission: AnswerSubmissionService
    accuracy: TopicAccuracyService
    checker: AnswerChecker
    sync: Optional[ProblemSyncService] = None

    @classmethod
    def build(
        cls,
        store: ProblemStore,
        source: Optional[BatchSource] = None,
        checker: Optional[AnswerChecker] = None,
        user_id: Optional[str] = None,
    ) -> "AppServices":
        """Build the service graph.

        Args:
            store: Initialized problem store
            source: Remote batch source; sync is disabled without one
            checker: Answer equivalence checker (defaults to is_answer_correct)
            user_id: Learner id (defaults to Config.USER_ID)
        """
        checker = checker or is_answer_correct
        batches = ProblemBatchRepository(store)
        progress = ProgressRepository(store, user_id)
        reconciler = SyncReconciler(batches, progress)
        return cls(
            store=store,
            batches=batches,
            progress=progress,
            reconciler=reconciler,
            selection=ProblemSelectionService(batches, progress),
            submission=AnswerSubmissionService(batches, progress),
            accuracy=TopicAccuracyService(batches, checker),
            checker=checker,
            sync=ProblemSyncService(source, reconciler, store) if source is not None else None,
        )

    def session(self) -> PracticeSession:
        return PracticeSession(
            selection=self.selection,
            submission=self.submission,
            progress=self.progress,
            checker=self.checker,
            sync=self.sync,
        )
