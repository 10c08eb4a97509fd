"""Per-topic accuracy over completed problems."""

from typing import Dict, List, Optional

from core.answer_check import AnswerChecker, is_answer_correct
from core.batch_repository import ProblemBatchRepository
from core.dto import ProblemType, TopicAccuracy


class TopicAccuracyService:
    """Groups completed problems by problem type and re-checks stored answers.

    Safe to call while a sync runs: it only reads, and problems deleted
    underneath it simply drop out of the result.
    """

    def __init__(self, batches: ProblemBatchRepository, checker: Optional[AnswerChecker] = None):
        self.batches = batches
        self.checker = checker or is_answer_correct

    def get_topic_accuracy_stats(self) -> List[TopicAccuracy]:
        counts: Dict[str, List[int]] = {}
        for problem in self.batches.get_completed_problems():
            attempted_correct = counts.setdefault(problem.problem_type.value, [0, 0])
            attempted_correct[0] += 1
            if problem.user_answer and self.checker(problem.user_answer, problem.answer):
                attempted_correct[1] += 1

        # Stable order: enum declaration order
        order = {ptype.value: i for i, ptype in enumerate(ProblemType)}
        return [
            TopicAccuracy(problem_type=ptype, attempted=attempted, correct=correct)
            for ptype, (attempted, correct) in sorted(counts.items(), key=lambda kv: order[kv[0]])
        ]
