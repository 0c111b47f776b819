"""
Fill-in-the-blank checker.

Both answers are normalized (case, whitespace, trailing punctuation,
apostrophes, hyphens in plain words) and compared exactly. Longer
non-numeric answers also tolerate a single typo.
"""

from __future__ import annotations

import random
import re
from typing import Any

from config import get_settings
from src.practice.types import Question, QuestionType

from . import register
from .base import as_text

_WHITESPACE = re.compile(r"\s+")
_TRAILING_PUNCT = re.compile(r"[.,]+$")
_PLAIN_WORDS = re.compile(r"^[a-z\s-]+$")
_NUMERIC_OR_MATH = re.compile(r"[0-9^()/]")


def normalize_fill_blank(raw: str) -> str:
    """Normalize a fill-blank answer for comparison."""
    s = raw.strip().lower()
    s = _WHITESPACE.sub(" ", s)
    s = _TRAILING_PUNCT.sub("", s)
    s = s.replace("'", "")
    # Hyphens only become spaces in plain words, never in "-3" or "x^2 - 1"
    if _PLAIN_WORDS.match(s):
        s = _WHITESPACE.sub(" ", s.replace("-", " ")).strip()
    return s


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (single-row DP)."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def is_fill_blank_match(
    user_raw: str,
    correct_raw: str,
    min_length: int = 5,
    max_distance: int = 1,
) -> bool:
    """
    Compare a fill-blank answer against the stored one.

    Args:
        user_raw: Learner's answer as typed
        correct_raw: Stored correct answer
        min_length: Typo tolerance only applies to answers longer than this
        max_distance: Largest edit distance accepted as a typo

    Returns:
        True on an exact normalized match, or a near match on long text answers
    """
    user = normalize_fill_blank(user_raw)
    correct = normalize_fill_blank(correct_raw)

    if user == correct:
        return True

    if _NUMERIC_OR_MATH.search(correct) or len(correct) <= min_length:
        return False

    return levenshtein(user, correct) <= max_distance


@register(QuestionType.FILL_BLANK)
class FillBlankChecker:
    """Checker for fill-in-the-blank questions."""

    def validate(self, question: Question) -> bool:
        correct = as_text(question.correct_answer)
        return correct is not None and bool(correct.strip())

    def check(self, question: Question, user_answer: Any) -> bool:
        answer = as_text(user_answer)
        correct = as_text(question.correct_answer)
        if answer is None or correct is None:
            return False

        settings = get_settings()
        return is_fill_blank_match(
            answer,
            correct,
            min_length=settings.typo_tolerance_min_length,
            max_distance=settings.typo_tolerance_max_distance,
        )

    def client_view(self, question: Question, rng: random.Random) -> dict[str, Any]:
        return {"options": None}
