"""
Shared fixtures: every store-backed test runs against both backends.
"""

import json
from pathlib import Path

import pytest

from core.app import AppServices
from storage import create_store

FIXTURES = Path(__file__).parent / "fixtures"


def make_problem(index: int = 1, problem_type: str = "linear-one-variable", **overrides) -> dict:
    """Wire-format problem whose answer is always 4."""
    data = {
        "equation": f"{index}x + 2 = {index * 4 + 2}",
        "direction": "Solve for x",
        "answer": "4",
        "difficulty": "easy",
        "problemType": problem_type,
        "solutionSteps": [
            {"explanation": "Subtract 2 from both sides", "mathExpression": f"{index}x = {index * 4}", "isEquation": True},
            {"explanation": f"Divide by {index}", "mathExpression": "x = 4", "isEquation": True},
        ],
        "variables": ["x"],
    }
    data.update(overrides)
    return data


def make_batch(
    batch_id: str = "batch-1",
    generation_date: str = "2026-10-15T06:00:00Z",
    count: int = 3,
    problems=None,
    **overrides,
) -> dict:
    """Wire-format batch document."""
    if problems is None:
        problems = [make_problem(i) for i in range(1, count + 1)]
    data = {
        "id": batch_id,
        "generationDate": generation_date,
        "problemCount": len(problems),
        "problems": problems,
    }
    data.update(overrides)
    return data


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """Initialized problem store, one per backend."""
    if request.param == "sqlite":
        problem_store = create_store("sqlite", tmp_path / "algebrix.db")
    else:
        problem_store = create_store("memory")
    yield problem_store
    problem_store.close()


@pytest.fixture
def services(store):
    return AppServices.build(store, user_id="tester")


@pytest.fixture
def sample_batch():
    return json.loads((FIXTURES / "sample_batch.json").read_text(encoding="utf-8"))
