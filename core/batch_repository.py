"""
Problem batch repository.

Transactional reads and writes over batches and their problems. Batches
are inserted together with all of their problems or not at all.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Union

from core.dto import (
    BatchInput,
    Problem,
    ProblemBatch,
    ProblemInput,
    calendar_day,
    parse_timestamp,
    utc_now,
)
from core.ports import ProblemStore

logger = logging.getLogger(__name__)


def generate_id() -> str:
    return uuid.uuid4().hex


def problem_id_for(batch_id: str, position: int) -> str:
    """Default problem id: owning batch id plus 1-based ordinal."""
    return f"{batch_id}-problem-{position}"


class ProblemBatchRepository:
    """CRUD over problem batches and problems."""

    def __init__(self, store: ProblemStore):
        """Initialize repository.

        Args:
            store: Backend holding batches and problems
        """
        self.store = store

    def add_batch(self, batch_input: BatchInput, problems_input: List[ProblemInput]) -> str:
        """Insert a batch and its problems as one unit.

        A problem declaring a different batch_id is logged and skipped.
        Problems without a batch_id belong to the batch being inserted.
        Any insert failure rolls back the whole batch.

        Args:
            batch_input: Batch fields; id is generated when missing
            problems_input: Problems in creation order

        Returns:
            Id of the inserted batch
        """
        with self.store.transaction():
            batch_id = batch_input.id or generate_id()
            imported_at = utc_now()

            self.store.insert_batch(ProblemBatch(
                id=batch_id,
                generation_date=parse_timestamp(batch_input.generation_date),
                problem_count=int(batch_input.problem_count),
                imported_at=imported_at,
                source_url=batch_input.source_url,
            ))
            logger.info(f"Batch {batch_id} inserted.")

            position = 0
            for problem in problems_input:
                if problem.batch_id is not None and problem.batch_id != batch_id:
                    logger.warning(
                        f"Problem {problem.id or 'new'} has batch_id {problem.batch_id} "
                        f"but should be {batch_id}. Skipping."
                    )
                    continue

                position += 1
                problem_id = problem.id or problem_id_for(batch_id, position)
                self.store.insert_problem(Problem(
                    id=problem_id,
                    batch_id=batch_id,
                    position=position,
                    equation=problem.equation,
                    direction=problem.direction,
                    answer=problem.answer,
                    difficulty=problem.difficulty,
                    problem_type=problem.problem_type,
                    solution_steps=list(problem.solution_steps),
                    variables=list(problem.variables),
                    is_completed=False,
                    user_answer=None,
                    solution_steps_shown=False,
                    created_at=imported_at,
                    updated_at=imported_at,
                ))
                logger.debug(f"Problem {problem_id} for batch {batch_id} inserted.")

            if position != int(batch_input.problem_count):
                logger.warning(
                    f"Batch {batch_id} declares {batch_input.problem_count} problems "
                    f"but {position} were stored"
                )
            return batch_id

    def get_batch_by_id(self, batch_id: str) -> Optional[ProblemBatch]:
        return self.store.fetch_batch(batch_id)

    def get_latest_batch(self) -> Optional[ProblemBatch]:
        """Most recently imported batch (not the most recently generated)."""
        batches = self.store.fetch_batches()
        return batches[0] if batches else None

    def get_all_batches(self) -> List[ProblemBatch]:
        return self.store.fetch_batches()

    def find_same_day_batch(
        self,
        generation_date: Union[str, datetime],
        exclude_id: Optional[str] = None,
    ) -> Optional[ProblemBatch]:
        """Stored batch generated on the same UTC day, latest generation first."""
        matches = self.store.fetch_batches_on_day(calendar_day(generation_date), exclude_id)
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} batches share generation day {calendar_day(generation_date)}; "
                f"using {matches[0].id}"
            )
        return matches[0] if matches else None

    def get_problems_by_batch(self, batch_id: str) -> List[Problem]:
        return self.store.fetch_problems(batch_id)

    def get_unsolved_problems(self, batch_id: str, limit: Optional[int] = None) -> List[Problem]:
        """Unsolved problems in creation order.

        Raises:
            ValueError: if limit is negative
        """
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be zero or more, got {limit}")
        return self.store.fetch_problems(batch_id, unsolved_only=True, limit=limit)

    def get_problem_by_id(self, problem_id: str) -> Optional[Problem]:
        return self.store.fetch_problem(problem_id)

    def get_completed_problems(self) -> List[Problem]:
        """Completed problems across all batches, in creation order."""
        return self.store.fetch_completed_problems()

    def update_problem(self, problem_id: str, **changes) -> bool:
        """Change learner-owned fields of a problem.

        Args:
            problem_id: Problem to change
            **changes: is_completed, user_answer and/or solution_steps_shown

        Returns:
            False if the problem does not exist
        """
        if not changes:
            logger.debug(f"No fields to update for problem {problem_id}")
            return self.store.fetch_problem(problem_id) is not None
        with self.store.transaction():
            updated = self.store.update_problem(problem_id, changes, utc_now())
        if not updated:
            logger.warning(f"Problem {problem_id} not found, nothing updated")
        return updated

    def count_problems(self, batch_id: str) -> int:
        return len(self.store.fetch_problems(batch_id))

    def count_completed_problems(self, batch_id: str) -> int:
        return sum(1 for p in self.store.fetch_problems(batch_id) if p.is_completed)

    def delete_batch(self, batch_id: str) -> bool:
        """Delete a batch and all of its problems."""
        with self.store.transaction():
            deleted = self.store.delete_batch(batch_id)
        if deleted:
            logger.info(f"Deleted batch {batch_id} and its problems.")
        else:
            logger.debug(f"Batch {batch_id} not found, nothing deleted")
        return deleted

    def delete_all_batches(self) -> None:
        """Remove every batch and problem (full reset of content)."""
        self.store.delete_all_batches()
        logger.info("All problem batches and problems have been deleted.")
