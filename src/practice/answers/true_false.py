"""
True/False checker.

Accepts "true"/"false" and the canonical letter forms "A"/"B" in any case.
"""

from __future__ import annotations

import random
from typing import Any

from src.practice.types import Question, QuestionType

from . import register
from .base import normalize_choice

CANONICAL = {"true": "a", "a": "a", "false": "b", "b": "b"}


def normalize_true_false(value: Any) -> str | None:
    """Map true/false/A/B (any case) to "a" or "b"; other strings pass through."""
    if isinstance(value, bool):
        return "a" if value else "b"
    choice = normalize_choice(value)
    if choice is None:
        return None
    return CANONICAL.get(choice, choice)


@register(QuestionType.TRUE_FALSE)
class TrueFalseChecker:
    """Checker for true/false statements."""

    def validate(self, question: Question) -> bool:
        return normalize_true_false(question.correct_answer) in ("a", "b")

    def check(self, question: Question, user_answer: Any) -> bool:
        answer = normalize_true_false(user_answer)
        if answer is None:
            return False
        return answer == normalize_true_false(question.correct_answer)

    def client_view(self, question: Question, rng: random.Random) -> dict[str, Any]:
        return {"options": list(question.options) if question.options else ["True", "False"]}
