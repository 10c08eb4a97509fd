"""Problem and batch DTOs shared by the stores, repositories and services."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

# Canonical answer: a single value, or several roots
AnswerValue = Union[str, int, float]
Answer = Union[AnswerValue, List[AnswerValue]]


class Difficulty(Enum):
    """Difficulty tiers used by the generation pipeline."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ProblemType(Enum):
    """Kinds of algebra problems a batch may contain."""
    LINEAR_ONE_VARIABLE = "linear-one-variable"
    LINEAR_TWO_VARIABLES = "linear-two-variables"
    QUADRATIC_FACTORING = "quadratic-factoring"
    QUADRATIC_FORMULA = "quadratic-formula"
    POLYNOMIAL_SIMPLIFICATION = "polynomial-simplification"


class SyncDisposition(str, Enum):
    """Outcome of reconciling an incoming batch with local state."""
    SKIPPED_EXISTING = "SKIPPED_EXISTING"
    REPLACED_EXISTING = "REPLACED_EXISTING"
    IMPORTED_NEW = "IMPORTED_NEW"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are taken as UTC. A trailing 'Z' is accepted.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO string, so text ordering matches time ordering."""
    return parse_timestamp(value).isoformat(timespec="microseconds")


def calendar_day(value: Union[str, datetime]) -> date:
    """UTC calendar day of a timestamp."""
    return parse_timestamp(value).date()


@dataclass(frozen=True)
class SolutionStep:
    """One step of a worked solution."""
    explanation: str
    math_expression: str
    is_equation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "explanation": self.explanation,
            "mathExpression": self.math_expression,
            "isEquation": self.is_equation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SolutionStep":
        return cls(
            explanation=str(data.get("explanation", "")),
            math_expression=str(data.get("mathExpression", data.get("math_expression", ""))),
            is_equation=bool(data.get("isEquation", data.get("is_equation", False))),
        )


@dataclass
class BatchInput:
    """Batch fields supplied by the importer. id is generated when absent."""
    generation_date: datetime
    problem_count: int
    id: Optional[str] = None
    source_url: Optional[str] = None


@dataclass
class ProblemInput:
    """Problem fields supplied by the importer.

    batch_id must match the batch being inserted; id defaults to
    "{batch_id}-problem-{position}".
    """
    equation: str
    direction: str
    answer: Answer
    difficulty: Difficulty
    problem_type: ProblemType
    solution_steps: List[SolutionStep] = field(default_factory=list)
    variables: List[str] = field(default_factory=list)
    batch_id: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class ProblemBatch:
    """A dated collection of problems delivered together."""
    id: str
    generation_date: datetime
    problem_count: int
    imported_at: datetime
    source_url: Optional[str] = None


@dataclass
class Problem:
    """A stored practice problem plus the learner's state on it."""
    id: str
    batch_id: str
    position: int
    equation: str
    direction: str
    answer: Answer
    difficulty: Difficulty
    problem_type: ProblemType
    solution_steps: List[SolutionStep]
    variables: List[str]
    is_completed: bool
    user_answer: Optional[str]
    solution_steps_shown: bool
    created_at: datetime
    updated_at: datetime
