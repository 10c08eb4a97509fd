"""Data Transfer Objects for the Algebrix core."""

from .problem import (
    Answer,
    BatchInput,
    Difficulty,
    Problem,
    ProblemBatch,
    ProblemInput,
    ProblemType,
    SolutionStep,
    SyncDisposition,
    calendar_day,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from .progress import (
    SyncResult,
    TopicAccuracy,
    UserProgress,
)

__all__ = [
    # Enums
    "Difficulty",
    "ProblemType",
    "SyncDisposition",
    # Problem DTOs
    "Answer",
    "BatchInput",
    "ProblemInput",
    "ProblemBatch",
    "Problem",
    "SolutionStep",
    # Progress DTOs
    "UserProgress",
    "TopicAccuracy",
    "SyncResult",
    # Timestamp helpers
    "utc_now",
    "parse_timestamp",
    "format_timestamp",
    "calendar_day",
]
