"""
Shared domain types for the adaptive practice engine.

Everything here is a plain dataclass or a ``(str, Enum)`` so values serialize
to JSON without custom encoders. Engine operations never mutate these in
place; they return updated copies.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def safe_pct(count: int, total: int) -> int:
    """Whole-number percentage rounded half up; 0 when total is 0."""
    if total <= 0:
        return 0
    return math.floor(count / total * 100 + 0.5)


# =============================================================================
# Enumerations
# =============================================================================


class Difficulty(str, Enum):
    """Difficulty levels a CAM concept may allow."""
    FAMILIARITY = "familiarity"
    APPLICATION = "application"
    EXAM_STYLE = "exam_style"


# Fixed progression order; current_difficulty only moves forward along it.
DIFFICULTY_ORDER: list[Difficulty] = [
    Difficulty.FAMILIARITY,
    Difficulty.APPLICATION,
    Difficulty.EXAM_STYLE,
]


class QuestionType(str, Enum):
    """Question types the answer checker understands."""
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    MATCH = "match"
    ORDERING = "ordering"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ANSWERED = "answered"
    SKIPPED = "skipped"


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.ABANDONED})


class TimeMode(str, Enum):
    UNLIMITED = "unlimited"
    TEN_MIN = "10min"
    FIVE_MIN = "5min"
    THREE_MIN = "3min"


TIME_LIMITS: dict[TimeMode, int | None] = {
    TimeMode.UNLIMITED: None,
    TimeMode.TEN_MIN: 10 * 60 * 1000,
    TimeMode.FIVE_MIN: 5 * 60 * 1000,
    TimeMode.THREE_MIN: 3 * 60 * 1000,
}


class ProficiencyBand(str, Enum):
    """Topic-level bands, declared lowest to highest."""
    NOT_STARTED = "not_started"
    BUILDING_FAMILIARITY = "building_familiarity"
    GROWING_CONFIDENCE = "growing_confidence"
    CONSISTENT_UNDERSTANDING = "consistent_understanding"
    EXAM_READY = "exam_ready"


class SelectionStrategy(str, Enum):
    ADAPTIVE = "adaptive"
    SEQUENTIAL = "sequential"
    RANDOM = "random"
    REVIEW = "review"


# =============================================================================
# Mastery
# =============================================================================


@dataclass
class DifficultyMastery:
    """Rolling-window correctness record for one concept difficulty."""

    attempts: int = 0
    correct: int = 0
    streak: int = 0
    mastered: bool = False
    mastered_at: str | None = None
    recent_attempts: list[bool] = field(default_factory=list)

    def copy(self) -> DifficultyMastery:
        return DifficultyMastery(
            attempts=self.attempts,
            correct=self.correct,
            streak=self.streak,
            mastered=self.mastered,
            mastered_at=self.mastered_at,
            recent_attempts=list(self.recent_attempts),
        )


@dataclass
class QuestionAttempt:
    """One entry of a concept's append-only question history."""

    question_id: str
    difficulty: Difficulty
    is_correct: bool
    xp_earned: int
    attempted_at: str
    time_taken_ms: int | None = None


@dataclass
class ConceptProgress:
    """Mastery state of a single concept for one user."""

    concept_id: str
    current_difficulty: Difficulty
    mastery_by_difficulty: dict[Difficulty, DifficultyMastery] = field(default_factory=dict)
    total_attempts: int = 0
    total_correct: int = 0
    xp_earned: int = 0
    last_attempted_at: str | None = None
    question_history: list[QuestionAttempt] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "concept_id": self.concept_id,
            "current_difficulty": self.current_difficulty.value,
            "mastery_by_difficulty": {
                difficulty.value: asdict(mastery)
                for difficulty, mastery in self.mastery_by_difficulty.items()
            },
            "total_attempts": self.total_attempts,
            "total_correct": self.total_correct,
            "xp_earned": self.xp_earned,
            "last_attempted_at": self.last_attempted_at,
            "question_history": [
                {**asdict(entry), "difficulty": entry.difficulty.value}
                for entry in self.question_history
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConceptProgress:
        """Create from dictionary."""
        return cls(
            concept_id=data["concept_id"],
            current_difficulty=Difficulty(data["current_difficulty"]),
            mastery_by_difficulty={
                Difficulty(key): DifficultyMastery(**value)
                for key, value in data.get("mastery_by_difficulty", {}).items()
            },
            total_attempts=data.get("total_attempts", 0),
            total_correct=data.get("total_correct", 0),
            xp_earned=data.get("xp_earned", 0),
            last_attempted_at=data.get("last_attempted_at"),
            question_history=[
                QuestionAttempt(**{**entry, "difficulty": Difficulty(entry["difficulty"])})
                for entry in data.get("question_history", [])
            ],
        )


# =============================================================================
# Curriculum (CAM) and question bank
# =============================================================================


@dataclass
class CAMConcept:
    concept_id: str
    concept_name: str
    difficulty_levels: list[Difficulty] = field(default_factory=list)


@dataclass
class CAMTopic:
    topic_id: str
    topic_name: str
    concepts: list[CAMConcept] = field(default_factory=list)


@dataclass
class CAMTheme:
    theme_id: str
    theme_name: str
    topics: list[CAMTopic] = field(default_factory=list)


@dataclass
class CAM:
    """Curriculum tree: themes -> topics -> concepts."""

    board: str
    class_level: int
    subject: str
    version: str = "1.0.0"
    themes: list[CAMTheme] = field(default_factory=list)


@dataclass
class MatchPair:
    left: str
    right: str


@dataclass
class Question:
    """Immutable question content as authored in the question bank."""

    question_id: str
    concept_id: str
    difficulty: Difficulty
    question_type: QuestionType
    question_text: str
    correct_answer: Any = None
    options: list[str] | None = None
    match_pairs: list[MatchPair] | None = None
    ordering_items: list[str] | None = None
    cognitive_level: str | None = None
    hint: str | None = None
    explanation: str | None = None


@dataclass
class QuestionBank:
    topic_id: str
    questions: list[Question] = field(default_factory=list)
    canonical_explanation: str | None = None


@dataclass
class EnrichedQuestion(Question):
    """A question annotated for selection and session tracking."""

    eligible: bool = True
    is_recommended: bool = False
    priority_score: float = 0.0
    concept_progress: ConceptProgress | None = None
    recency_penalty: float = 0.0
    order_in_session: int = 0
    status: QuestionStatus = QuestionStatus.PENDING


# =============================================================================
# Sessions
# =============================================================================


@dataclass
class SessionConfig:
    time_mode: TimeMode
    time_limit_ms: int | None
    topic_id: str
    topic_name: str
    question_count: int


@dataclass
class SessionProgress:
    questions_answered: int = 0
    questions_correct: int = 0
    xp_earned: int = 0
    current_question_index: int = 0
    time_elapsed_ms: int = 0
    time_remaining_ms: int | None = None


@dataclass
class SessionAnswer:
    """Append-only record of one submitted answer."""

    question_id: str
    concept_id: str
    difficulty: Difficulty
    user_answer: Any
    is_correct: bool
    xp_earned: int
    time_taken_ms: int | None
    answered_at: str


@dataclass
class QuizSession:
    session_id: str
    status: SessionStatus
    config: SessionConfig
    progress: SessionProgress
    questions: list[EnrichedQuestion]
    current_question: EnrichedQuestion | None
    answers: list[SessionAnswer] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    started_at: str | None = None
    paused_at: str | None = None
    completed_at: str | None = None
    version: str = "1.0.0"


@dataclass
class DifficultyBreakdown:
    answered: int = 0
    correct: int = 0


@dataclass
class QuestionResult:
    """Per-question outcome kept in a summary so recency can be rebuilt."""

    question_id: str
    is_correct: bool


@dataclass
class SessionSummary:
    """Read-only projection of a session; the only session data persisted."""

    session_id: str
    topic_id: str
    topic_name: str
    time_mode: TimeMode
    status: SessionStatus
    total_questions: int
    questions_answered: int
    questions_correct: int
    questions_skipped: int
    xp_earned: int
    time_elapsed_ms: int
    started_at: str | None
    completed_at: str | None
    by_difficulty: dict[str, DifficultyBreakdown] = field(default_factory=dict)
    question_results: list[QuestionResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["time_mode"] = self.time_mode.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSummary:
        """Create from dictionary."""
        return cls(
            session_id=data["session_id"],
            topic_id=data["topic_id"],
            topic_name=data.get("topic_name", ""),
            time_mode=TimeMode(data.get("time_mode", TimeMode.UNLIMITED.value)),
            status=SessionStatus(data["status"]),
            total_questions=data.get("total_questions", 0),
            questions_answered=data.get("questions_answered", 0),
            questions_correct=data.get("questions_correct", 0),
            questions_skipped=data.get("questions_skipped", 0),
            xp_earned=data.get("xp_earned", 0),
            time_elapsed_ms=data.get("time_elapsed_ms", 0),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            by_difficulty={
                key: DifficultyBreakdown(**value)
                for key, value in data.get("by_difficulty", {}).items()
            },
            question_results=[
                QuestionResult(**entry) for entry in data.get("question_results", [])
            ],
        )


# =============================================================================
# Topic proficiency
# =============================================================================


@dataclass
class ProficiencyStats:
    """Counts and percentages behind a proficiency band."""

    total_concepts: int
    concepts_started: int
    familiarity_total: int
    familiarity_mastered: int
    familiarity_mastered_pct: int
    application_total: int
    application_mastered: int
    application_started: int
    application_mastered_pct: int
    application_started_pct: int
    exam_style_total: int
    exam_style_mastered: int
    exam_style_started: int
    exam_style_mastered_pct: int
    exam_style_started_pct: int


@dataclass
class ProficiencyResult:
    band: ProficiencyBand
    label: str
    level: int
    stats: ProficiencyStats | None


@dataclass
class TopicProgress:
    topic_id: str
    proficiency_band: ProficiencyBand
    proficiency_label: str
    proficiency_level: int
    concepts_count: int
    concepts_started: int
    total_attempts: int
    total_correct: int
    xp_earned: int
    last_attempted_at: str | None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["proficiency_band"] = self.proficiency_band.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopicProgress:
        return cls(**{**data, "proficiency_band": ProficiencyBand(data["proficiency_band"])})
