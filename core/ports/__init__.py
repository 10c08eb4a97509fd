"""Ports (interfaces) for Algebrix dependency inversion.

These abstract interfaces define how the core accesses data, allowing
different storage backends (SQLite on device, in-memory for development
and tests).
"""

from .problem_store import MUTABLE_PROBLEM_FIELDS, ProblemStore, check_problem_changes

__all__ = [
    "ProblemStore",
    "MUTABLE_PROBLEM_FIELDS",
    "check_problem_changes",
]
