"""
In-memory problem store.
Keeps all state in process memory; used for development runs and tests.
"""

import copy
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

from core.dto import Problem, ProblemBatch, UserProgress, calendar_day
from core.ports import ProblemStore, check_problem_changes


class InMemoryProblemStore(ProblemStore):
    """Problem store backed by plain dicts.

    Mirrors the SQLite store's constraints (unique ids, problem -> batch
    foreign key with cascade, progress pointer set to None when its batch
    goes away). Each transaction level pushes a snapshot of the state and
    restores it if the block raises.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._snapshots: List[Dict[str, Any]] = []
        self._batches: Dict[str, ProblemBatch] = {}
        self._problems: Dict[str, Problem] = {}
        self._progress: Dict[str, UserProgress] = {}
        self._state: Dict[str, str] = {}
        # Insertion sequence, the rowid equivalent used to break ordering ties
        self._seq: Dict[str, int] = {}
        self._next_seq = 0

    def close(self) -> None:
        pass

    def _capture(self) -> Dict[str, Any]:
        return copy.deepcopy({
            "batches": self._batches,
            "problems": self._problems,
            "progress": self._progress,
            "state": self._state,
            "seq": self._seq,
            "next_seq": self._next_seq,
        })

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self._batches = snapshot["batches"]
        self._problems = snapshot["problems"]
        self._progress = snapshot["progress"]
        self._state = snapshot["state"]
        self._seq = snapshot["seq"]
        self._next_seq = snapshot["next_seq"]

    @contextmanager
    def transaction(self) -> Iterator["InMemoryProblemStore"]:
        with self._lock:
            self._snapshots.append(self._capture())
            try:
                yield self
            except BaseException:
                self._restore(self._snapshots.pop())
                raise
            else:
                self._snapshots.pop()

    def _sequence(self, key: str) -> int:
        self._next_seq += 1
        self._seq[key] = self._next_seq
        return self._next_seq

    # Batch operations
    def insert_batch(self, batch: ProblemBatch) -> None:
        with self._lock:
            if batch.id in self._batches:
                raise ValueError(f"Batch {batch.id} already exists")
            self._batches[batch.id] = batch
            self._sequence(f"batch:{batch.id}")

    def fetch_batch(self, batch_id: str) -> Optional[ProblemBatch]:
        with self._lock:
            return self._batches.get(batch_id)

    def fetch_batches(self) -> List[ProblemBatch]:
        with self._lock:
            return sorted(
                self._batches.values(),
                key=lambda b: (b.imported_at, self._seq[f"batch:{b.id}"]),
                reverse=True,
            )

    def fetch_batches_on_day(self, day: date, exclude_id: Optional[str] = None) -> List[ProblemBatch]:
        with self._lock:
            matches = [
                b for b in self._batches.values()
                if calendar_day(b.generation_date) == day and b.id != exclude_id
            ]
            return sorted(
                matches,
                key=lambda b: (b.generation_date, self._seq[f"batch:{b.id}"]),
                reverse=True,
            )

    def delete_batch(self, batch_id: str) -> bool:
        with self._lock:
            if batch_id not in self._batches:
                return False
            for problem_id in [p.id for p in self._problems.values() if p.batch_id == batch_id]:
                del self._problems[problem_id]
                self._seq.pop(f"problem:{problem_id}", None)
            del self._batches[batch_id]
            self._seq.pop(f"batch:{batch_id}", None)
            for user_id, progress in list(self._progress.items()):
                if progress.current_batch_id == batch_id:
                    self._progress[user_id] = replace(progress, current_batch_id=None)
            return True

    def delete_all_batches(self) -> None:
        with self.transaction():
            for batch_id in list(self._batches):
                self.delete_batch(batch_id)

    # Problem operations
    def insert_problem(self, problem: Problem) -> None:
        with self._lock:
            if problem.id in self._problems:
                raise ValueError(f"Cannot insert problem {problem.id}: id already exists")
            if problem.batch_id not in self._batches:
                raise ValueError(
                    f"Cannot insert problem {problem.id}: batch {problem.batch_id} does not exist"
                )
            self._problems[problem.id] = copy.deepcopy(problem)
            self._sequence(f"problem:{problem.id}")

    def _ordered(self, problems) -> List[Problem]:
        ordered = sorted(
            problems,
            key=lambda p: (p.created_at, p.position, self._seq[f"problem:{p.id}"]),
        )
        return [copy.deepcopy(p) for p in ordered]

    def fetch_problem(self, problem_id: str) -> Optional[Problem]:
        with self._lock:
            problem = self._problems.get(problem_id)
            return copy.deepcopy(problem) if problem else None

    def fetch_problems(
        self,
        batch_id: str,
        unsolved_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Problem]:
        with self._lock:
            problems = self._ordered(
                p for p in self._problems.values()
                if p.batch_id == batch_id and not (unsolved_only and p.is_completed)
            )
        # Negative limits mean "no limit", as with SQLite's LIMIT
        if limit is None or int(limit) < 0:
            return problems
        return problems[:int(limit)]

    def fetch_completed_problems(self) -> List[Problem]:
        with self._lock:
            return self._ordered(p for p in self._problems.values() if p.is_completed)

    def update_problem(self, problem_id: str, changes: Dict[str, Any], updated_at: datetime) -> bool:
        check_problem_changes(changes)
        with self._lock:
            problem = self._problems.get(problem_id)
            if problem is None:
                return False
            if "is_completed" in changes:
                problem.is_completed = bool(changes["is_completed"])
            if "user_answer" in changes:
                answer = changes["user_answer"]
                problem.user_answer = None if answer is None else str(answer)
            if "solution_steps_shown" in changes:
                problem.solution_steps_shown = bool(changes["solution_steps_shown"])
            problem.updated_at = updated_at
            return True

    def reset_problems(self, updated_at: datetime) -> int:
        with self._lock:
            for problem in self._problems.values():
                problem.is_completed = False
                problem.user_answer = None
                problem.updated_at = updated_at
            return len(self._problems)

    # Progress operations
    def fetch_progress(self, user_id: str) -> Optional[UserProgress]:
        with self._lock:
            return self._progress.get(user_id)

    def save_progress(self, progress: UserProgress) -> None:
        with self._lock:
            if progress.current_batch_id is not None and progress.current_batch_id not in self._batches:
                raise ValueError(
                    f"Invalid progress for {progress.id}: batch {progress.current_batch_id} does not exist"
                )
            if progress.problems_correct > progress.problems_attempted:
                raise ValueError(
                    f"Invalid progress for {progress.id}: more correct than attempted answers"
                )
            existing = self._progress.get(progress.id)
            if existing is not None:
                # created_at is fixed by the first insert
                progress = replace(progress, created_at=existing.created_at)
            self._progress[progress.id] = progress

    # Sync state operations
    def get_state(self, key: str) -> Optional[str]:
        with self._lock:
            return self._state.get(key)

    def set_state(self, key: str, value: str) -> None:
        with self._lock:
            self._state[key] = value

    def remove_state(self, key: str) -> None:
        with self._lock:
            self._state.pop(key, None)
