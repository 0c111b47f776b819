"""
Base protocol and helpers for answer checkers.
"""

from __future__ import annotations

import random
from typing import Any, Protocol

from src.practice.types import Question


class AnswerChecker(Protocol):
    """Protocol for question type checkers."""

    def validate(self, question: Question) -> bool:
        """Check if the question has the fields this type needs."""
        ...

    def check(self, question: Question, user_answer: Any) -> bool:
        """Return True if the answer is correct. Must not raise."""
        ...

    def client_view(self, question: Question, rng: random.Random) -> dict[str, Any]:
        """Type-specific fields for the learner-facing view."""
        ...


def shuffled(items: list[Any], rng: random.Random) -> list[Any]:
    """Shuffled copy of items."""
    result = list(items)
    rng.shuffle(result)
    return result


def as_text(value: Any) -> str | None:
    """String form of a scalar answer (str, int or float), else None."""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    return str(value)


def normalize_choice(value: Any) -> str | None:
    """Lower-cased, trimmed string form of a scalar choice, or None."""
    text = as_text(value)
    if text is None:
        return None
    return text.strip().lower()
