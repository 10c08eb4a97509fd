"""
Sync reconciler.

Decides what to do with a candidate batch delivered by the remote source
and applies the decision in a single transaction:

1. A stored batch with the same id            -> SKIPPED_EXISTING (no change)
2. A stored batch from the same UTC day        -> REPLACED_EXISTING
   (the stored batch and its problems are deleted, the candidate inserted)
3. Otherwise                                   -> IMPORTED_NEW

Only one batch per calendar day is kept: the generation pipeline may
reissue a corrected batch for a day it already published.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

from core.batch_repository import ProblemBatchRepository
from core.dto import (
    BatchInput,
    Difficulty,
    ProblemInput,
    ProblemType,
    SolutionStep,
    SyncDisposition,
    parse_timestamp,
)
from core.progress_repository import ProgressRepository

logger = logging.getLogger(__name__)


class InvalidBatchError(Exception):
    """Raised when a candidate batch document is malformed."""
    pass


@dataclass
class BatchCandidate:
    """A validated incoming batch."""
    batch: BatchInput
    problems: List[ProblemInput] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.batch.id


def _is_answer_value(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _parse_answer(data: Dict[str, Any], where: str):
    # Solve-for problems carry the value in answerRHS ("x = " lives in answerLHS)
    answer = data.get("answer", data.get("answerRHS"))
    if answer is None:
        raise InvalidBatchError(f"{where}: missing answer")
    if isinstance(answer, list):
        if not answer or not all(_is_answer_value(v) for v in answer):
            raise InvalidBatchError(f"{where}: answer list must hold strings or numbers")
        return list(answer)
    if not _is_answer_value(answer):
        raise InvalidBatchError(f"{where}: unsupported answer type {type(answer).__name__}")
    return answer


def _parse_enum(enum_cls, value: Any, where: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidBatchError(f"{where}: '{value}' is not one of {allowed}") from None


def parse_problem(data: Dict[str, Any], index: int, batch_id: Optional[str] = None) -> ProblemInput:
    """Convert one wire-format problem (camelCase keys) to a ProblemInput.

    When batch_id is given the problem belongs to that batch, whatever
    batchId the document carries. A reissued batch may still name the
    batch it replaces.
    """
    where = f"problem {index + 1}"
    if not isinstance(data, dict):
        raise InvalidBatchError(f"{where}: expected an object")

    equation = data.get("equation")
    if not isinstance(equation, str) or not equation.strip():
        raise InvalidBatchError(f"{where}: missing equation")

    steps = data.get("solutionSteps", data.get("solution_steps")) or []
    variables = data.get("variables") or []
    if not isinstance(steps, list) or not all(isinstance(s, dict) for s in steps):
        raise InvalidBatchError(f"{where}: solutionSteps must be a list of objects")
    if not isinstance(variables, list):
        raise InvalidBatchError(f"{where}: variables must be a list")

    return ProblemInput(
        id=data.get("id"),
        batch_id=batch_id or data.get("batchId", data.get("batch_id")),
        equation=equation,
        direction=str(data.get("direction") or ""),
        answer=_parse_answer(data, where),
        difficulty=_parse_enum(Difficulty, data.get("difficulty"), where),
        problem_type=_parse_enum(ProblemType, data.get("problemType", data.get("problem_type")), where),
        solution_steps=[SolutionStep.from_dict(step) for step in steps],
        variables=[str(v) for v in variables],
    )


def parse_batch_payload(payload: Dict[str, Any]) -> BatchCandidate:
    """Validate a batch document from the remote source.

    Expected shape: {id, generationDate, problemCount, problems[]}.

    Raises:
        InvalidBatchError: if any part of the document is malformed
    """
    if not isinstance(payload, dict):
        raise InvalidBatchError("Batch document must be a JSON object")

    batch_id = payload.get("id")
    if not isinstance(batch_id, str) or not batch_id.strip():
        raise InvalidBatchError("Batch id is missing")

    raw_date = payload.get("generationDate")
    try:
        generation_date = parse_timestamp(raw_date)
    except (TypeError, ValueError):
        raise InvalidBatchError(f"Batch {batch_id}: invalid generationDate {raw_date!r}") from None

    problems = payload.get("problems")
    if not isinstance(problems, list):
        raise InvalidBatchError(f"Batch {batch_id}: problems must be a list")

    problem_count = payload.get("problemCount", len(problems))
    if isinstance(problem_count, bool) or not isinstance(problem_count, int) or problem_count < 0:
        raise InvalidBatchError(f"Batch {batch_id}: invalid problemCount {problem_count!r}")

    return BatchCandidate(
        batch=BatchInput(
            id=batch_id,
            generation_date=generation_date,
            problem_count=problem_count,
            source_url=payload.get("sourceUrl"),
        ),
        problems=[parse_problem(p, i, batch_id) for i, p in enumerate(problems)],
    )


def _owned_problems(candidate: BatchCandidate) -> List[ProblemInput]:
    owned = []
    for problem in candidate.problems:
        if problem.batch_id not in (None, candidate.id):
            logger.debug(
                f"Problem {problem.id or 'new'} names batch {problem.batch_id}; "
                f"importing into {candidate.id}"
            )
            problem = replace(problem, batch_id=candidate.id)
        owned.append(problem)
    return owned


class SyncReconciler:
    """Applies incoming batches to the local store."""

    def __init__(self, batches: ProblemBatchRepository, progress: ProgressRepository):
        """Initialize reconciler.

        Args:
            batches: Batch repository to mutate
            progress: Progress repository; its batch pointer follows replacements
        """
        self.batches = batches
        self.progress = progress

    def reconcile(self, candidate: Union[BatchCandidate, Dict[str, Any]]) -> SyncDisposition:
        """Import, replace, or skip a candidate batch.

        Args:
            candidate: Validated candidate, or a raw batch document

        Returns:
            The disposition that was applied

        Raises:
            InvalidBatchError: if a raw document fails validation (no mutation)
        """
        if not isinstance(candidate, BatchCandidate):
            candidate = parse_batch_payload(candidate)

        with self.batches.store.transaction():
            if self.batches.get_batch_by_id(candidate.id) is not None:
                logger.info(f"Batch {candidate.id} already exists, skipping import")
                return SyncDisposition.SKIPPED_EXISTING

            existing = self.batches.find_same_day_batch(
                candidate.batch.generation_date, exclude_id=candidate.id
            )
            follow_pointer = False
            if existing is not None:
                logger.info(
                    f"Replacing existing batch {existing.id} from same date "
                    f"with newer batch {candidate.id}"
                )
                progress = self.progress.get_user_progress()
                follow_pointer = progress is not None and progress.current_batch_id == existing.id
                self.batches.delete_batch(existing.id)

            logger.info(
                f"Importing {'replacement' if existing else 'new'} batch {candidate.id} "
                f"with {len(candidate.problems)} problems"
            )
            self.batches.add_batch(candidate.batch, _owned_problems(candidate))

            if follow_pointer:
                self.progress.update_user_progress(current_batch_id=candidate.id)

        if existing is not None:
            return SyncDisposition.REPLACED_EXISTING
        return SyncDisposition.IMPORTED_NEW
