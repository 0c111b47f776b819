"""
Adaptive practice engine.

Components:
- mastery_tracker: rolling-window mastery per concept difficulty, XP
- proficiency: topic-level proficiency bands
- question_selector: eligibility, priority scoring, interleaving, variety
- session_manager: session state machine, answer checking, summaries
- engine: QuizEngine facade wiring CAM, question banks and storage
"""

from .errors import (
    ContentValidationError,
    PracticeError,
    QuestionBankNotFoundError,
    SessionStateError,
    TopicNotFoundError,
)
from .mastery_tracker import MasteryConfig, MasteryTracker
from .proficiency import calculate_topic_proficiency, create_topic_progress
from .question_selector import QuestionSelector, SelectionConfig, apply_cognitive_variety
from .recency import build_question_history_map, get_recency_penalty
from .session_manager import CreateSessionParams, SessionManager
from .engine import QuizEngine

__all__ = [
    "ContentValidationError",
    "CreateSessionParams",
    "MasteryConfig",
    "MasteryTracker",
    "PracticeError",
    "QuestionBankNotFoundError",
    "QuestionSelector",
    "QuizEngine",
    "SelectionConfig",
    "SessionManager",
    "SessionStateError",
    "TopicNotFoundError",
    "apply_cognitive_variety",
    "build_question_history_map",
    "calculate_topic_proficiency",
    "create_topic_progress",
    "get_recency_penalty",
]
