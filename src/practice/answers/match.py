"""
Match-the-pairs checker.

The learner submits a mapping of left item -> right item. It must have one
entry per pair and map every left item to its declared right item.
"""

from __future__ import annotations

import random
from typing import Any, Mapping

from src.practice.types import MatchPair, Question, QuestionType

from . import register
from .base import shuffled


def expected_pairs(question: Question) -> list[MatchPair]:
    """Pairs from match_pairs, falling back to a left->right correct_answer map."""
    if question.match_pairs:
        return list(question.match_pairs)
    if isinstance(question.correct_answer, Mapping):
        return [MatchPair(left=str(k), right=str(v)) for k, v in question.correct_answer.items()]
    return []


@register(QuestionType.MATCH)
class MatchChecker:
    """Checker for matching questions."""

    def validate(self, question: Question) -> bool:
        return len(expected_pairs(question)) > 0

    def check(self, question: Question, user_answer: Any) -> bool:
        if not isinstance(user_answer, Mapping):
            return False

        pairs = expected_pairs(question)
        if not pairs or len(user_answer) != len(pairs):
            return False

        return all(user_answer.get(pair.left) == pair.right for pair in pairs)

    def client_view(self, question: Question, rng: random.Random) -> dict[str, Any]:
        pairs = expected_pairs(question)
        return {
            "match_left": [pair.left for pair in pairs],
            "match_right_shuffled": shuffled([pair.right for pair in pairs], rng),
        }
