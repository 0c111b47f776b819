"""
Recency scoring for question selection.

Questions seen in recent sessions are pushed down the queue so learners do
not get immediate repeats; questions seen long ago come back for spaced
review, and never-seen questions get a small boost.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .types import SessionSummary


RECENCY_PENALTIES = {
    "never_seen": 20,
    "last_session": -80,
    "two_sessions_ago": -50,
    "three_sessions_ago": -30,
    "older": -10,
}


@dataclass
class QuestionHistoryEntry:
    """Most recent sighting of a question in past sessions."""
    sessions_ago: int  # 1 = the most recent session
    was_correct: bool | None


QuestionHistoryMap = dict[str, QuestionHistoryEntry]


def get_recency_penalty(sessions_ago: int | None) -> int:
    """Score adjustment for a question last seen ``sessions_ago`` sessions back."""
    if sessions_ago is None:
        return RECENCY_PENALTIES["never_seen"]
    if sessions_ago <= 1:
        return RECENCY_PENALTIES["last_session"]
    if sessions_ago == 2:
        return RECENCY_PENALTIES["two_sessions_ago"]
    if sessions_ago == 3:
        return RECENCY_PENALTIES["three_sessions_ago"]
    return RECENCY_PENALTIES["older"]


def build_question_history_map(
    sessions: Iterable[SessionSummary],
    topic_id: str | None = None,
) -> QuestionHistoryMap:
    """
    Map question ids to how many sessions ago they were last seen.

    Args:
        sessions: Session summaries ordered newest first
        topic_id: Only count sessions for this topic when given

    Returns:
        Dict of question_id -> QuestionHistoryEntry (closest sighting wins)
    """
    history: QuestionHistoryMap = {}
    sessions_ago = 0

    for summary in sessions:
        if topic_id is not None and summary.topic_id != topic_id:
            continue
        sessions_ago += 1
        for result in summary.question_results:
            if result.question_id not in history:
                history[result.question_id] = QuestionHistoryEntry(
                    sessions_ago=sessions_ago,
                    was_correct=result.is_correct,
                )

    return history
