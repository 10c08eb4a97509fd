"""
Algebrix Core - problem sync and persistence for algebra practice.

Main components:
- ProblemBatchRepository / ProgressRepository: transactional data access
- SyncReconciler: import, replace or skip incoming batches
- ProblemSelectionService / AnswerSubmissionService: serve and record problems
- PracticeSession: one learner sitting over the services
"""

from core.accuracy import TopicAccuracyService
from core.answer_check import is_answer_correct
from core.app import AppServices
from core.batch_repository import ProblemBatchRepository
from core.practice_session import AnswerOutcome, PracticeSession
from core.problem_sync import ProblemSyncService
from core.progress_repository import ProgressRepository
from core.selection_service import ProblemSelectionService
from core.submission_service import AnswerSubmissionService
from core.sync_reconciler import (
    BatchCandidate,
    InvalidBatchError,
    SyncReconciler,
    parse_batch_payload,
)

__all__ = [
    "ProblemBatchRepository",
    "ProgressRepository",
    "SyncReconciler",
    "BatchCandidate",
    "InvalidBatchError",
    "parse_batch_payload",
    "ProblemSyncService",
    "ProblemSelectionService",
    "AnswerSubmissionService",
    "TopicAccuracyService",
    "is_answer_correct",
    # Session layer
    "AppServices",
    "PracticeSession",
    "AnswerOutcome",
]
