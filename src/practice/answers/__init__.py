"""
Answer checkers for practice questions.

Each question type (mcq, true_false, fill_blank, ordering, match) has its
own module with a registered checker providing:
- validate(): Does the question carry the fields this type needs?
- check(): Is the learner's answer correct? Never raises.
- client_view(): The question as shown to the learner, answers removed.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any

from src.practice.types import Question, QuestionType

if TYPE_CHECKING:
    from .base import AnswerChecker


# Checker registry - populated by @register decorator
CHECKERS: dict[QuestionType, "AnswerChecker"] = {}


def register(question_type: QuestionType):
    """Decorator to register an answer checker."""
    def decorator(cls):
        CHECKERS[question_type] = cls()
        return cls
    return decorator


def get_checker(question_type: str | QuestionType) -> "AnswerChecker | None":
    """Get the checker for a question type."""
    if isinstance(question_type, str) and not isinstance(question_type, QuestionType):
        try:
            question_type = QuestionType(question_type.lower())
        except ValueError:
            return None
    return CHECKERS.get(question_type)


def is_supported(question: Question) -> bool:
    """True if the question's type is known and its content is well formed."""
    checker = get_checker(question.question_type)
    if checker is None or not (question.question_text or "").strip():
        return False
    return checker.validate(question)


def check_answer(question: Question, user_answer: Any) -> bool:
    """
    Judge a learner's answer.

    Total over its input: unknown question types, wrong-typed answers and
    malformed maps are all judged incorrect rather than raising.
    """
    checker = get_checker(question.question_type)
    if checker is None:
        return False
    return checker.check(question, user_answer)


def strip_answer_data(question: Question, rng: random.Random | None = None) -> dict[str, Any]:
    """Client-safe view of a question with answers hidden and items shuffled."""
    checker = get_checker(question.question_type)
    view = {
        "question_id": question.question_id,
        "concept_id": question.concept_id,
        "difficulty": question.difficulty.value,
        "question_type": question.question_type.value,
        "question_text": question.question_text,
        "options": list(question.options) if question.options else None,
        "hint": question.hint,
        "match_left": None,
        "match_right_shuffled": None,
        "ordering_items_shuffled": None,
    }
    if checker is not None:
        view.update(checker.client_view(question, rng or random.Random()))
    return view


# Import checkers to trigger registration
from . import mcq
from . import true_false
from . import fill_blank
from . import ordering
from . import match

__all__ = [
    "CHECKERS",
    "check_answer",
    "get_checker",
    "is_supported",
    "register",
    "strip_answer_data",
]
