"""Default answer checker.

Both answers are parsed with SymPy and compared symbolically, so "8/2",
"2*2" and "4.0" all match 4, and "\\frac{1}{2}" matches 0.5. A leading
"x =" is ignored, common LaTeX (\\frac, \\sqrt, \\cdot, ^{...}) is
accepted, and multi-root answers compare as sets. Text SymPy cannot
parse falls back to a whitespace-insensitive string comparison.
"""

import logging
import re
from typing import Any, Callable, List, Optional

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

from core.dto import Answer

logger = logging.getLogger(__name__)

# (user_answer, canonical_answer) -> is_correct
AnswerChecker = Callable[[str, Answer], bool]

TRANSFORMS = standard_transformations + (
    implicit_multiplication_application,  # 2x, 3(x + 1)
    convert_xor,                          # x^2
)

_LHS_PREFIX = re.compile(r"^[A-Za-z]\s*=\s*")
_SEPARATORS = re.compile(r"[,;]")
_LATEX_FRAC = re.compile(r"\\[dt]?frac\s*\{([^{}]*)\}\s*\{([^{}]*)\}")
_LATEX_SQRT = re.compile(r"\\sqrt\s*\{([^{}]*)\}")
_LATEX_WORDS = {
    "\\cdot": "*",
    "\\times": "*",
    "\\div": "/",
    "\\left": "",
    "\\right": "",
    "\\pi": "pi",
    "·": "*",
    "−": "-",
    "–": "-",
    "²": "^2",
}


def _strip_lhs(text: str) -> str:
    return _LHS_PREFIX.sub("", text.strip())


def normalize_answer(value: Any) -> str:
    """Canonical text form of a single answer value (string fallback)."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = re.sub(r"\s+", "", _strip_lhs(str(value)))
    try:
        number = float(text)
    except ValueError:
        return text
    return str(int(number)) if number.is_integer() else str(number)


def _latex_to_sympy(text: str) -> str:
    for word, replacement in _LATEX_WORDS.items():
        text = text.replace(word, replacement)
    # Innermost \frac / \sqrt first, until nothing is left to rewrite
    previous = None
    while previous != text:
        previous = text
        text = _LATEX_FRAC.sub(r"((\1)/(\2))", text)
        text = _LATEX_SQRT.sub(r"sqrt(\1)", text)
    return text.replace("{", "(").replace("}", ")")


def parse_answer(value: Any) -> Optional[sp.Expr]:
    """Parse one answer value into a SymPy expression, or None."""
    text = _latex_to_sympy(_strip_lhs(str(value)))
    if not text or "=" in text or "\\" in text:
        return None
    try:
        expr = parse_expr(text, transformations=TRANSFORMS)
    except Exception:
        logger.debug(f"Could not parse answer {value!r}")
        return None
    return expr if isinstance(expr, sp.Expr) else None


def equivalent(a: sp.Expr, b: sp.Expr) -> bool:
    try:
        diff = sp.simplify(sp.expand(a - b))
        if diff == 0:
            return True
        # 0.5 - 1/2 can simplify to a float residue
        return bool(diff.is_number and abs(complex(diff)) < 1e-9)
    except Exception:
        return False


def _same_value(given: Any, expected: Any) -> bool:
    given_expr = parse_answer(given)
    expected_expr = parse_answer(expected)
    if given_expr is not None and expected_expr is not None:
        return equivalent(given_expr, expected_expr)
    return normalize_answer(given) == normalize_answer(expected)


def _split_roots(user_answer: str) -> List[str]:
    text = str(user_answer).strip()
    # "[2, 3]" or "(2, 3)", but not "(x - 2)(x - 3)"
    if len(text) >= 2 and text[0] + text[-1] in ("[]", "()"):
        inner = text[1:-1]
        if text[0] not in inner and text[-1] not in inner:
            text = inner
    return [part for part in _SEPARATORS.split(text) if part.strip()]


def is_answer_correct(user_answer: str, canonical: Answer) -> bool:
    if user_answer is None or not str(user_answer).strip():
        return False
    if isinstance(canonical, list):
        given = _split_roots(user_answer)
        if not given or not canonical:
            return False
        # Set comparison: every root given is expected and every expected root is given
        return (
            all(any(_same_value(g, e) for e in canonical) for g in given)
            and all(any(_same_value(g, e) for g in given) for e in canonical)
        )
    return _same_value(user_answer, canonical)
