"""
Ordering checker.

The learner's sequence must equal the stored order position by position.
"""

from __future__ import annotations

import random
from typing import Any

from src.practice.types import Question, QuestionType

from . import register
from .base import shuffled


@register(QuestionType.ORDERING)
class OrderingChecker:
    """Checker for put-in-order questions."""

    def validate(self, question: Question) -> bool:
        return isinstance(question.correct_answer, list) and len(question.correct_answer) > 0

    def check(self, question: Question, user_answer: Any) -> bool:
        correct = question.correct_answer
        if not isinstance(user_answer, (list, tuple)) or not isinstance(correct, list):
            return False
        return list(user_answer) == correct

    def client_view(self, question: Question, rng: random.Random) -> dict[str, Any]:
        items = question.ordering_items or question.correct_answer or []
        return {"ordering_items_shuffled": shuffled(list(items), rng)}
