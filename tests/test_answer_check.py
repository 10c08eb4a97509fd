"""
Tests for the default answer checker.
"""

import pytest

from core.answer_check import is_answer_correct, normalize_answer, parse_answer


@pytest.mark.parametrize("user_answer, canonical", [
    ("4", "4"),
    ("4", 4),
    ("x = 4", "4"),
    ("4.0", 4),
    ("8/2", "4"),
    ("2*2", 4),
    ("1/2", "0.5"),
    ("\\frac{1}{2}", "1/2"),
    ("\\frac{\\sqrt{2}}{2}", "1/sqrt(2)"),
    (" 2x + 1 ", "2x+1"),
    ("x^2 + 2x + 1", "(x + 1)^2"),
    ("0.5", 0.5),
    ("2, -3", ["-3", "2"]),
    ("[2; -3]", ["2", "-3"]),
    ("(4/2, -3)", [2, -3]),
    ("3", [3, 3]),
])
def test_equivalent_answers(user_answer, canonical):
    assert is_answer_correct(user_answer, canonical)


@pytest.mark.parametrize("user_answer, canonical", [
    ("5", "4"),
    ("", "4"),
    (None, "4"),
    ("1/3", "0.33"),
    ("2x + 2", "2x + 1"),
    ("2", ["2", "-3"]),
    ("2, -3, 4", ["2", "-3"]),
    ("", ["2"]),
])
def test_wrong_answers(user_answer, canonical):
    assert not is_answer_correct(user_answer, canonical)


def test_unparseable_answers_compare_as_text():
    assert parse_answer("\\pm 3") is None
    assert is_answer_correct("\\pm3", "\\pm 3")
    assert not is_answer_correct("\\pm 2", "\\pm 3")


def test_normalize_answer():
    assert normalize_answer(4.0) == "4"
    assert normalize_answer("y = -2.50") == "-2.5"
    assert normalize_answer("x^2 - 1") == "x^2-1"
