"""
Tests for batch reconciliation: import, replace and skip.
"""

import pytest

from conftest import make_batch, make_problem
from core.dto import SyncDisposition
from core.sync_reconciler import InvalidBatchError, parse_batch_payload


def test_new_batch_imported(services):
    disposition = services.reconciler.reconcile(make_batch("batch-1"))

    assert disposition == SyncDisposition.IMPORTED_NEW
    assert services.batches.count_problems("batch-1") == 3


def test_same_id_skipped_without_touching_state(services):
    services.reconciler.reconcile(make_batch("batch-1"))
    services.submission.submit_answer("batch-1-problem-1", "4", True)

    changed = make_batch("batch-1", problems=[make_problem(9)])
    disposition = services.reconciler.reconcile(changed)

    assert disposition == SyncDisposition.SKIPPED_EXISTING
    problems = services.batches.get_problems_by_batch("batch-1")
    assert len(problems) == 3
    assert problems[0].is_completed
    assert problems[0].user_answer == "4"


def test_same_day_batch_replaced(services):
    services.reconciler.reconcile(make_batch("morning", "2026-10-15T06:00:00Z"))
    services.submission.submit_answer("morning-problem-1", "4", True)

    disposition = services.reconciler.reconcile(
        make_batch("evening", "2026-10-15T20:00:00Z", count=2)
    )

    assert disposition == SyncDisposition.REPLACED_EXISTING
    assert services.batches.get_batch_by_id("morning") is None
    assert services.batches.get_problem_by_id("morning-problem-1") is None
    assert [b.id for b in services.batches.get_all_batches()] == ["evening"]
    assert services.batches.count_problems("evening") == 2
    assert services.batches.count_completed_problems("evening") == 0


def test_different_days_kept(services):
    services.reconciler.reconcile(make_batch("day-1", "2026-10-14T06:00:00Z"))
    disposition = services.reconciler.reconcile(make_batch("day-2", "2026-10-15T06:00:00Z"))

    assert disposition == SyncDisposition.IMPORTED_NEW
    assert {b.id for b in services.batches.get_all_batches()} == {"day-1", "day-2"}


def test_replacement_takes_over_current_pointer(services):
    services.reconciler.reconcile(make_batch("morning", "2026-10-15T06:00:00Z"))
    services.selection.select_batch("morning")

    services.reconciler.reconcile(make_batch("evening", "2026-10-15T20:00:00Z"))

    assert services.progress.get_user_progress().current_batch_id == "evening"
    assert services.selection.get_next_problem().id == "evening-problem-1"


def test_replacement_leaves_other_pointer_alone(services):
    services.reconciler.reconcile(make_batch("yesterday", "2026-10-14T06:00:00Z"))
    services.reconciler.reconcile(make_batch("morning", "2026-10-15T06:00:00Z"))
    services.selection.select_batch("yesterday")

    services.reconciler.reconcile(make_batch("evening", "2026-10-15T20:00:00Z"))

    assert services.progress.get_user_progress().current_batch_id == "yesterday"


def test_failed_replacement_keeps_old_batch(services, store, monkeypatch):
    services.reconciler.reconcile(make_batch("morning", "2026-10-15T06:00:00Z"))

    original = store.insert_problem

    def failing_insert(problem):
        if problem.batch_id == "evening" and problem.position == 2:
            raise RuntimeError("write failed")
        original(problem)

    monkeypatch.setattr(store, "insert_problem", failing_insert)

    with pytest.raises(RuntimeError):
        services.reconciler.reconcile(make_batch("evening", "2026-10-15T20:00:00Z"))

    assert [b.id for b in services.batches.get_all_batches()] == ["morning"]
    assert services.batches.count_problems("morning") == 3


@pytest.mark.parametrize("payload", [
    make_batch(batch_id=""),
    make_batch(generation_date="not a date"),
    make_batch(problems="nope"),
    make_batch(problemCount="3"),
    make_batch(problemCount=-1),
    make_batch(problems=[make_problem(1, difficulty="impossible")]),
    make_batch(problems=[make_problem(1, problemType="calculus")]),
    make_batch(problems=[make_problem(1, equation="")]),
    make_batch(problems=[{k: v for k, v in make_problem(1).items() if k != "answer"}]),
    make_batch(problems=[make_problem(1, answer={"x": 4})]),
    ["not", "an", "object"],
])
def test_invalid_document_rejected_without_changes(services, payload):
    with pytest.raises(InvalidBatchError):
        services.reconciler.reconcile(payload)

    assert services.batches.get_all_batches() == []


def test_parse_accepts_answer_rhs_and_defaults_count():
    problem = make_problem(1)
    del problem["answer"]
    problem["answerLHS"] = "x = "
    problem["answerRHS"] = 4
    payload = make_batch(problems=[problem])
    del payload["problemCount"]

    candidate = parse_batch_payload(payload)

    assert candidate.id == "batch-1"
    assert candidate.batch.problem_count == 1
    assert candidate.problems[0].answer == 4
    assert candidate.problems[0].solution_steps[1].math_expression == "x = 4"


def test_imported_problems_start_unsolved(services):
    payload = make_batch(problems=[make_problem(1, isCompleted=True, userAnswer="4")])
    services.reconciler.reconcile(payload)

    problem = services.batches.get_problem_by_id("batch-1-problem-1")
    assert not problem.is_completed
    assert problem.user_answer is None


def test_reissued_batch_with_stale_batch_ids_keeps_problems(services):
    services.reconciler.reconcile(make_batch("A", "2024-01-01T08:00:00Z"))

    stale = [make_problem(i, batchId="A") for i in range(1, 4)]
    disposition = services.reconciler.reconcile(
        make_batch("B", "2024-01-01T20:00:00Z", problems=stale)
    )

    assert disposition == SyncDisposition.REPLACED_EXISTING
    assert services.batches.get_batch_by_id("A") is None
    assert [p.id for p in services.batches.get_problems_by_batch("B")] == [
        "B-problem-1",
        "B-problem-2",
        "B-problem-3",
    ]


def test_hand_built_candidate_problems_join_candidate(services):
    candidate = parse_batch_payload(make_batch("B"))
    for problem in candidate.problems:
        problem.batch_id = "somewhere-else"

    assert services.reconciler.reconcile(candidate) == SyncDisposition.IMPORTED_NEW
    assert services.batches.count_problems("B") == 3


def test_parse_assigns_problems_to_document_batch():
    payload = make_batch("B", problems=[make_problem(1, batchId="A")])

    candidate = parse_batch_payload(payload)

    assert candidate.problems[0].batch_id == "B"
