"""
Database management for Algebrix.
Handles SQLite operations and schema management.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from config import Config
from core.dto import (
    Difficulty,
    Problem,
    ProblemBatch,
    ProblemType,
    SolutionStep,
    UserProgress,
    format_timestamp,
    parse_timestamp,
)
from core.ports import ProblemStore, check_problem_changes

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class SQLiteProblemStore(ProblemStore):
    """Durable problem store backed by SQLite.

    The connection runs in autocommit mode; transaction() issues explicit
    BEGIN/COMMIT and uses savepoints when nested. A re-entrant lock is held
    for each read and for the whole of a transaction, so a reader in another
    thread never observes a half-applied write.
    """

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        """Initialize database store.

        Args:
            db_path: Path to SQLite database file. Uses Config.DB_PATH if not
                provided. ":memory:" gives a private in-process database.
        """
        self.db_path = db_path or Config.DB_PATH
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0

    def connect(self):
        """Establish database connection."""
        self.conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,
        )
        self.conn.row_factory = sqlite3.Row  # Enable dict-like access
        # Enable foreign keys (cascade from batches to problems)
        self.conn.execute("PRAGMA foreign_keys = ON")
        if str(self.db_path) != MEMORY_PATH:
            self.conn.execute("PRAGMA journal_mode = WAL")

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def initialize(self):
        """Create all tables and indexes."""
        if not self.conn:
            self.connect()

        with self.transaction():
            self._create_tables()
            self._create_indexes()

    def _connection(self) -> sqlite3.Connection:
        if not self.conn:
            self.initialize()
        return self.conn

    def _create_tables(self):
        """Create all database tables."""

        # Problem batches table
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS problem_batches (
                id TEXT PRIMARY KEY,
                generation_date TEXT NOT NULL,
                source_url TEXT,
                problem_count INTEGER NOT NULL DEFAULT 0,
                imported_at TEXT NOT NULL
            )
        """)

        # Problems table
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS problems (
                id TEXT PRIMARY KEY,
                batch_id TEXT NOT NULL,
                position INTEGER NOT NULL,
                equation TEXT NOT NULL,
                direction TEXT,
                answer TEXT NOT NULL,
                solution_steps TEXT,
                variables TEXT,
                difficulty TEXT NOT NULL,
                problem_type TEXT NOT NULL,
                is_completed BOOLEAN DEFAULT 0,
                user_answer TEXT,
                solution_steps_shown BOOLEAN DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (batch_id) REFERENCES problem_batches(id) ON DELETE CASCADE
            )
        """)

        # User progress table (one row per learner)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS user_progress (
                id TEXT PRIMARY KEY,
                current_batch_id TEXT,
                problems_attempted INTEGER DEFAULT 0,
                problems_correct INTEGER DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (current_batch_id) REFERENCES problem_batches(id) ON DELETE SET NULL,
                CHECK (problems_correct <= problems_attempted)
            )
        """)

        # Sync bookkeeping (last sync time and the like)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def _create_indexes(self):
        """Create database indexes for performance."""
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_batches_imported ON problem_batches(imported_at)",
            "CREATE INDEX IF NOT EXISTS idx_batches_generation ON problem_batches(generation_date)",
            "CREATE INDEX IF NOT EXISTS idx_problems_batch ON problems(batch_id, is_completed)",
        ]

        for index_sql in indexes:
            self.conn.execute(index_sql)

    @contextmanager
    def transaction(self) -> Iterator["SQLiteProblemStore"]:
        with self._lock:
            conn = self._connection()
            savepoint = f"sp_{self._depth}"
            if self._depth == 0:
                conn.execute("BEGIN IMMEDIATE")
            else:
                conn.execute(f"SAVEPOINT {savepoint}")
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                if self._depth == 0:
                    conn.execute("ROLLBACK")
                else:
                    conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                    conn.execute(f"RELEASE SAVEPOINT {savepoint}")
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    conn.execute("COMMIT")
                else:
                    conn.execute(f"RELEASE SAVEPOINT {savepoint}")

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._connection().execute(sql, params).fetchall()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._connection().execute(sql, params)

    # Row mapping
    @staticmethod
    def _row_to_batch(row: sqlite3.Row) -> ProblemBatch:
        return ProblemBatch(
            id=row["id"],
            generation_date=parse_timestamp(row["generation_date"]),
            problem_count=int(row["problem_count"] or 0),
            imported_at=parse_timestamp(row["imported_at"]),
            source_url=row["source_url"],
        )

    @staticmethod
    def _row_to_problem(row: sqlite3.Row) -> Problem:
        # Parse JSON fields
        steps = json.loads(row["solution_steps"]) if row["solution_steps"] else []
        variables = json.loads(row["variables"]) if row["variables"] else []
        return Problem(
            id=row["id"],
            batch_id=row["batch_id"],
            position=int(row["position"]),
            equation=row["equation"],
            direction=row["direction"] or "",
            answer=json.loads(row["answer"]),
            difficulty=Difficulty(row["difficulty"]),
            problem_type=ProblemType(row["problem_type"]),
            solution_steps=[SolutionStep.from_dict(step) for step in steps],
            variables=list(variables),
            is_completed=bool(row["is_completed"]),
            user_answer=row["user_answer"],
            solution_steps_shown=bool(row["solution_steps_shown"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _row_to_progress(row: sqlite3.Row) -> UserProgress:
        return UserProgress(
            id=row["id"],
            current_batch_id=row["current_batch_id"],
            problems_attempted=int(row["problems_attempted"] or 0),
            problems_correct=int(row["problems_correct"] or 0),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    # Batch operations
    def insert_batch(self, batch: ProblemBatch) -> None:
        try:
            self._execute("""
                INSERT INTO problem_batches
                (id, generation_date, source_url, problem_count, imported_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                batch.id,
                format_timestamp(batch.generation_date),
                batch.source_url,
                int(batch.problem_count),
                format_timestamp(batch.imported_at),
            ))
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Batch {batch.id} already exists") from e

    def fetch_batch(self, batch_id: str) -> Optional[ProblemBatch]:
        rows = self._query("SELECT * FROM problem_batches WHERE id = ?", (batch_id,))
        return self._row_to_batch(rows[0]) if rows else None

    def fetch_batches(self) -> List[ProblemBatch]:
        rows = self._query(
            "SELECT * FROM problem_batches ORDER BY imported_at DESC, rowid DESC"
        )
        return [self._row_to_batch(row) for row in rows]

    def fetch_batches_on_day(self, day: date, exclude_id: Optional[str] = None) -> List[ProblemBatch]:
        # generation_date is stored as a UTC ISO string, so its first ten
        # characters are the UTC calendar day
        rows = self._query("""
            SELECT * FROM problem_batches
            WHERE substr(generation_date, 1, 10) = ?
              AND (? IS NULL OR id != ?)
            ORDER BY generation_date DESC, rowid DESC
        """, (day.isoformat(), exclude_id, exclude_id))
        return [self._row_to_batch(row) for row in rows]

    def delete_batch(self, batch_id: str) -> bool:
        cursor = self._execute("DELETE FROM problem_batches WHERE id = ?", (batch_id,))
        return cursor.rowcount > 0

    def delete_all_batches(self) -> None:
        with self.transaction():
            self.conn.execute("DELETE FROM problems")  # Problems first due to FK
            self.conn.execute("DELETE FROM problem_batches")

    # Problem operations
    def insert_problem(self, problem: Problem) -> None:
        try:
            self._execute("""
                INSERT INTO problems
                (id, batch_id, position, equation, direction, answer, solution_steps,
                 variables, difficulty, problem_type, is_completed, user_answer,
                 solution_steps_shown, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                problem.id,
                problem.batch_id,
                int(problem.position),
                problem.equation,
                problem.direction,
                json.dumps(problem.answer),
                json.dumps([step.to_dict() for step in problem.solution_steps]),
                json.dumps(list(problem.variables)),
                problem.difficulty.value,
                problem.problem_type.value,
                1 if problem.is_completed else 0,
                problem.user_answer,
                1 if problem.solution_steps_shown else 0,
                format_timestamp(problem.created_at),
                format_timestamp(problem.updated_at),
            ))
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Cannot insert problem {problem.id}: {e}") from e

    def fetch_problem(self, problem_id: str) -> Optional[Problem]:
        rows = self._query("SELECT * FROM problems WHERE id = ?", (problem_id,))
        return self._row_to_problem(rows[0]) if rows else None

    def fetch_problems(
        self,
        batch_id: str,
        unsolved_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Problem]:
        sql = "SELECT * FROM problems WHERE batch_id = ?"
        if unsolved_only:
            sql += " AND is_completed = 0"
        sql += " ORDER BY created_at ASC, position ASC, rowid ASC LIMIT ?"
        rows = self._query(sql, (batch_id, -1 if limit is None else int(limit)))
        return [self._row_to_problem(row) for row in rows]

    def fetch_completed_problems(self) -> List[Problem]:
        rows = self._query("""
            SELECT * FROM problems
            WHERE is_completed = 1
            ORDER BY created_at ASC, position ASC, rowid ASC
        """)
        return [self._row_to_problem(row) for row in rows]

    def update_problem(self, problem_id: str, changes: Dict[str, Any], updated_at: datetime) -> bool:
        check_problem_changes(changes)
        fields = []
        values: List[Any] = []

        if "is_completed" in changes:
            fields.append("is_completed = ?")
            values.append(1 if changes["is_completed"] else 0)
        if "user_answer" in changes:
            fields.append("user_answer = ?")
            answer = changes["user_answer"]
            values.append(None if answer is None else str(answer))
        if "solution_steps_shown" in changes:
            fields.append("solution_steps_shown = ?")
            values.append(1 if changes["solution_steps_shown"] else 0)

        fields.append("updated_at = ?")
        values.append(format_timestamp(updated_at))
        values.append(problem_id)

        cursor = self._execute(
            f"UPDATE problems SET {', '.join(fields)} WHERE id = ?", tuple(values)
        )
        return cursor.rowcount > 0

    def reset_problems(self, updated_at: datetime) -> int:
        cursor = self._execute("""
            UPDATE problems
            SET is_completed = 0, user_answer = NULL, updated_at = ?
        """, (format_timestamp(updated_at),))
        return cursor.rowcount

    # Progress operations
    def fetch_progress(self, user_id: str) -> Optional[UserProgress]:
        rows = self._query("SELECT * FROM user_progress WHERE id = ?", (user_id,))
        return self._row_to_progress(rows[0]) if rows else None

    def save_progress(self, progress: UserProgress) -> None:
        try:
            self._save_progress(progress)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Invalid progress for {progress.id}: {e}") from e

    def _save_progress(self, progress: UserProgress) -> None:
        self._execute("""
            INSERT INTO user_progress
            (id, current_batch_id, problems_attempted, problems_correct, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                current_batch_id = excluded.current_batch_id,
                problems_attempted = excluded.problems_attempted,
                problems_correct = excluded.problems_correct,
                updated_at = excluded.updated_at
        """, (
            progress.id,
            progress.current_batch_id,
            int(progress.problems_attempted),
            int(progress.problems_correct),
            format_timestamp(progress.created_at),
            format_timestamp(progress.updated_at),
        ))

    # Sync state operations
    def get_state(self, key: str) -> Optional[str]:
        rows = self._query("SELECT value FROM sync_state WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_state(self, key: str, value: str) -> None:
        self._execute("""
            INSERT OR REPLACE INTO sync_state (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
        """, (key, value))

    def remove_state(self, key: str) -> None:
        self._execute("DELETE FROM sync_state WHERE key = ?", (key,))
