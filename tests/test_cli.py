"""
Tests for the algebrix CLI.
"""

import json
import sqlite3
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from cli import cli
from config import Config
from conftest import FIXTURES, make_batch

SAMPLE = str(FIXTURES / "sample_batch.json")


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()
    db_path = str(tmp_path / "cli.db")

    def invoke(*args, **kwargs):
        return runner.invoke(cli, ["--store", "sqlite", "--db", db_path, *args], **kwargs)

    return invoke


def test_init(run):
    result = run("init")
    assert result.exit_code == 0
    assert "Algebrix initialized" in result.output


def test_import_then_skip(run):
    first = run("import", SAMPLE)
    second = run("import", SAMPLE)

    assert first.exit_code == 0
    assert "IMPORTED_NEW" in first.output
    assert second.exit_code == 0
    assert "SKIPPED_EXISTING" in second.output


def test_import_invalid_file(run, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"id": "x", "generationDate": "soon", "problems": []}))

    result = run("import", str(bad))

    assert result.exit_code != 0
    assert "Invalid batch" in result.output


def test_batches_and_problems(run):
    run("import", SAMPLE)

    batches = run("batches")
    problems = run("problems")

    assert batches.exit_code == 0
    assert "Total: 1 batches" in batches.output
    assert problems.exit_code == 0
    assert "Total: 3 problems" in problems.output


def test_next_and_answer(run):
    run("import", SAMPLE)

    shown = run("next")
    correct = run("answer", "batch-2026-10-15-problem-1", "x = 4")
    again = run("answer", "batch-2026-10-15-problem-1", "4")
    roots = run("answer", "batch-2026-10-15-problem-2", "2, 5")
    progress = run("progress")

    assert "2x + 3 = 11" in shown.output
    assert "Correct" in correct.output
    assert "already answered" in again.output
    assert "Incorrect" in roots.output
    assert "Problems attempted: 2" in progress.output
    assert "Problems correct:   1" in progress.output
    assert "linear-one-variable" in progress.output


def test_answer_unknown_problem(run):
    result = run("answer", "missing", "4")
    assert result.exit_code != 0
    assert "not found" in result.output


def test_practice_loop(run):
    run("import", SAMPLE)

    result = run("practice", "--no-sync", input="4\n?\nq\n")

    assert result.exit_code == 0
    assert "Correct" in result.output
    assert "Solution" in result.output
    assert "(x - 2)(x - 3) = 0" in result.output


def test_reset(run):
    run("import", SAMPLE)
    run("answer", "batch-2026-10-15-problem-1", "4")

    result = run("reset", "--yes")
    progress = run("progress")

    assert result.exit_code == 0
    assert "Problems attempted: 0" in progress.output


def test_delete_batch(run):
    run("import", SAMPLE)

    deleted = run("delete-batch", "batch-2026-10-15")
    missing = run("delete-batch", "batch-2026-10-15")

    assert "Deleted batch" in deleted.output
    assert "not found" in missing.output
    assert "No batches stored" in run("batches").output


def test_sync_without_url(run, monkeypatch):
    monkeypatch.setattr(Config, "SYNC_URL", "")

    result = run("sync")

    assert result.exit_code != 0
    assert "Sync failed" in result.output


@patch("remote.batch_source.requests.get")
def test_sync_with_url(mock_get, run):
    mock_get.return_value = MagicMock(**{"json.return_value": make_batch("remote-1")})

    first = run("sync", "--url", "https://example.com/latest.json")
    second = run("sync", "--url", "https://example.com/latest.json")
    forced = run("sync", "--url", "https://example.com/latest.json", "--force")

    assert "IMPORTED_NEW" in first.output
    assert "Up to date" in second.output
    assert "SKIPPED_EXISTING" in forced.output
    assert mock_get.call_count == 2


@pytest.mark.parametrize("args", [
    ("answer", "batch-2026-10-15-problem-1", "4"),
    ("practice", "--no-sync"),
    ("delete-batch", "batch-2026-10-15"),
    ("select-batch", "batch-2026-10-15"),
])
def test_store_errors_abort_cleanly(run, monkeypatch, args):
    def broken_store(backend=None, db_path=None):
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr("cli.create_store", broken_store)

    result = run(*args)

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "unable to open database file" in result.output
    assert not isinstance(result.exception, sqlite3.OperationalError)
