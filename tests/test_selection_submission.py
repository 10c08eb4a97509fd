"""
Tests for problem selection and answer submission.
"""

import pytest

from conftest import make_batch


def test_no_batches_no_problem(services):
    assert services.selection.get_next_problem() is None
    assert services.selection.get_current_batch() is None


def test_next_problem_defaults_to_latest_batch(services):
    services.reconciler.reconcile(make_batch("day-1", "2026-10-14T06:00:00Z"))
    services.reconciler.reconcile(make_batch("day-2", "2026-10-15T06:00:00Z"))

    problem = services.selection.get_next_problem()

    assert problem.id == "day-2-problem-1"
    assert services.progress.get_user_progress().current_batch_id == "day-2"
    assert services.selection.get_current_batch().id == "day-2"


def test_reading_does_not_complete(services):
    services.reconciler.reconcile(make_batch("batch-1"))

    first = services.selection.get_next_problem()
    again = services.selection.get_next_problem()

    assert first.id == again.id == "batch-1-problem-1"
    assert not services.batches.get_problem_by_id(first.id).is_completed


def test_submit_advances_to_next_problem(services):
    services.reconciler.reconcile(make_batch("batch-1"))

    progress = services.submission.submit_answer("batch-1-problem-1", "4", True)

    assert (progress.problems_attempted, progress.problems_correct) == (1, 1)
    stored = services.batches.get_problem_by_id("batch-1-problem-1")
    assert stored.is_completed
    assert stored.user_answer == "4"
    assert services.selection.get_next_problem().id == "batch-1-problem-2"


def test_incorrect_answer_still_completes(services):
    services.reconciler.reconcile(make_batch("batch-1"))

    progress = services.submission.submit_answer("batch-1-problem-1", "9", False)

    assert (progress.problems_attempted, progress.problems_correct) == (1, 0)
    assert services.batches.get_problem_by_id("batch-1-problem-1").is_completed


def test_exhausted_batch_returns_none(services):
    services.reconciler.reconcile(make_batch("day-1", "2026-10-14T06:00:00Z", count=2))
    services.reconciler.reconcile(make_batch("day-2", "2026-10-15T06:00:00Z", count=2))
    services.selection.select_batch("day-1")

    for problem_id in ("day-1-problem-1", "day-1-problem-2"):
        services.submission.submit_answer(problem_id, "4", True)

    # Unsolved problems in day-2 are not picked up automatically
    assert services.selection.get_next_problem() is None


def test_dangling_pointer_falls_back_to_latest(services):
    services.reconciler.reconcile(make_batch("day-1", "2026-10-14T06:00:00Z"))
    services.reconciler.reconcile(make_batch("day-2", "2026-10-15T06:00:00Z"))
    services.selection.select_batch("day-1")

    services.batches.delete_batch("day-1")

    assert services.selection.get_next_problem().id == "day-2-problem-1"
    assert services.progress.get_user_progress().current_batch_id == "day-2"


def test_select_unknown_batch(services):
    with pytest.raises(LookupError):
        services.selection.select_batch("missing")


def test_submit_unknown_problem_changes_nothing(services):
    services.reconciler.reconcile(make_batch("batch-1"))

    with pytest.raises(LookupError):
        services.submission.submit_answer("missing", "4", True)

    assert services.progress.get_user_progress() is None


def test_mark_solution_shown(services):
    services.reconciler.reconcile(make_batch("batch-1"))

    services.submission.mark_solution_shown("batch-1-problem-2")

    assert services.batches.get_problem_by_id("batch-1-problem-2").solution_steps_shown
    with pytest.raises(LookupError):
        services.submission.mark_solution_shown("missing")


def test_reset_restarts_current_batch(services):
    services.reconciler.reconcile(make_batch("batch-1"))
    for n in (1, 2, 3):
        services.submission.submit_answer(f"batch-1-problem-{n}", "4", True)
    assert services.selection.get_next_problem() is None

    services.progress.reset_user_progress()

    assert services.selection.get_next_problem().id == "batch-1-problem-1"
    progress = services.progress.get_user_progress()
    assert (progress.problems_attempted, progress.problems_correct) == (0, 0)


def test_submit_answer_is_all_or_nothing(services, store, monkeypatch):
    services.reconciler.reconcile(make_batch("batch-1"))

    def failing_save(progress):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "save_progress", failing_save)

    with pytest.raises(RuntimeError):
        services.submission.submit_answer("batch-1-problem-1", "4", True)

    problem = services.batches.get_problem_by_id("batch-1-problem-1")
    assert not problem.is_completed
    assert problem.user_answer is None
    assert services.progress.get_user_progress() is None
