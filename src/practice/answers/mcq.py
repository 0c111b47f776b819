"""
MCQ (Multiple Choice Question) checker.

The stored correct answer is the option text or its letter ("B" for the
second option). Either form is accepted from the learner. Matching is
case-insensitive and ignores surrounding whitespace; numbers compare by
their text.
"""

from __future__ import annotations

import random
from typing import Any

from src.practice.types import Question, QuestionType

from . import register
from .base import normalize_choice


def option_letter(index: int) -> str:
    return chr(ord("a") + index)


def accepted_choices(question: Question) -> set[str]:
    """Normalized forms of the correct option: its text and its letter."""
    correct = normalize_choice(question.correct_answer)
    if correct is None:
        return set()

    options = [normalize_choice(option) for option in question.options or []]
    accepted = {correct}
    if len(correct) == 1 and 0 <= ord(correct) - ord("a") < len(options):
        option = options[ord(correct) - ord("a")]
        if option is not None:
            accepted.add(option)
    if correct in options:
        accepted.add(option_letter(options.index(correct)))
    return accepted


@register(QuestionType.MCQ)
class MCQChecker:
    """Checker for multiple choice questions."""

    def validate(self, question: Question) -> bool:
        return bool(question.options) and normalize_choice(question.correct_answer) is not None

    def check(self, question: Question, user_answer: Any) -> bool:
        answer = normalize_choice(user_answer)
        if answer is None:
            return False
        return answer in accepted_choices(question)

    def client_view(self, question: Question, rng: random.Random) -> dict[str, Any]:
        return {}
