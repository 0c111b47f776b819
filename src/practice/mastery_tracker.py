"""
Mastery Tracker for concept practice.

Keeps a rolling window of recent answers per (concept, difficulty) and decides
when a difficulty is mastered:

- Window: last 5 answers (FIFO)
- Mastery: window is full and at least 4 of them are correct
- On mastery the concept advances to its next allowed difficulty
- XP per correct answer: familiarity 10, application 20, exam_style 30

Incorrect answers earn 0 XP and never take XP away.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from loguru import logger

from config import get_settings

from .types import (
    DIFFICULTY_ORDER,
    ConceptProgress,
    Difficulty,
    DifficultyMastery,
    QuestionAttempt,
    safe_pct,
    utc_now_iso,
)


DEFAULT_XP_VALUES: dict[Difficulty, int] = {
    Difficulty.FAMILIARITY: 10,
    Difficulty.APPLICATION: 20,
    Difficulty.EXAM_STYLE: 30,
}


@dataclass
class MasteryConfig:
    """Thresholds for the rolling-window mastery test."""
    window_size: int = 5
    required_correct: int = 4
    xp_values: dict[Difficulty, int] = field(default_factory=lambda: dict(DEFAULT_XP_VALUES))

    @classmethod
    def from_settings(cls) -> MasteryConfig:
        settings = get_settings()
        return cls(
            window_size=settings.mastery_window_size,
            required_correct=settings.mastery_required_correct,
            xp_values={Difficulty(key): value for key, value in settings.xp_table().items()},
        )


@dataclass
class AttemptInput:
    """A single answered question to record against a concept."""
    question_id: str
    difficulty: Difficulty
    is_correct: bool
    time_taken_ms: int | None = None


@dataclass
class AttemptResult:
    """Outcome of recording an attempt."""
    progress: ConceptProgress
    xp_earned: int
    mastery_achieved: bool
    new_difficulty: Difficulty | None


@dataclass
class MasteryStatus:
    """Display view of one difficulty's mastery record."""
    attempts: int
    correct: int
    streak: int
    mastered: bool
    progress: str  # e.g. "3/5"


def get_next_difficulty(
    current: Difficulty,
    allowed: Iterable[Difficulty],
) -> Difficulty | None:
    """Next allowed difficulty after ``current`` in fixed order, or None."""
    allowed_set = set(allowed)
    index = DIFFICULTY_ORDER.index(current)
    for candidate in DIFFICULTY_ORDER[index + 1:]:
        if candidate in allowed_set:
            return candidate
    return None


class MasteryTracker:
    """
    Records attempts and tracks per-difficulty mastery for concepts.

    All methods are pure: they return new ConceptProgress values and never
    modify the progress passed in.
    """

    def __init__(self, config: Optional[MasteryConfig] = None):
        """
        Initialize tracker.

        Args:
            config: MasteryConfig or None to read thresholds from settings
        """
        self.config = config or MasteryConfig.from_settings()

    def xp_for(self, difficulty: Difficulty) -> int:
        """XP awarded for a correct answer at this difficulty."""
        return self.config.xp_values.get(difficulty, 0)

    def create_concept_progress(
        self,
        concept_id: str,
        allowed_difficulties: Iterable[Difficulty],
    ) -> ConceptProgress:
        """
        Create an empty progress record for a concept.

        Only allowed difficulties get a mastery record. The starting
        difficulty is the first allowed one in fixed order.
        """
        allowed = set(allowed_difficulties)
        mastery = {d: DifficultyMastery() for d in DIFFICULTY_ORDER if d in allowed}
        starting = next(iter(mastery), Difficulty.FAMILIARITY)

        return ConceptProgress(
            concept_id=concept_id,
            current_difficulty=starting,
            mastery_by_difficulty=mastery,
        )

    def get_or_create_concept_progress(
        self,
        existing: ConceptProgress | None,
        concept_id: str,
        allowed_difficulties: Iterable[Difficulty],
    ) -> ConceptProgress:
        if existing is not None:
            return existing
        return self.create_concept_progress(concept_id, allowed_difficulties)

    def record_attempt(self, progress: ConceptProgress, attempt: AttemptInput) -> AttemptResult:
        """
        Record an answer and apply the mastery test.

        Args:
            progress: Current concept progress (left untouched)
            attempt: The answered question

        Returns:
            AttemptResult with the updated progress, XP earned, whether this
            attempt mastered the difficulty, and the difficulty advanced to
        """
        now = utc_now_iso()
        xp = self.xp_for(attempt.difficulty) if attempt.is_correct else 0

        mastery_by_difficulty = {d: m.copy() for d, m in progress.mastery_by_difficulty.items()}
        current_difficulty = progress.current_difficulty
        mastery_achieved = False
        new_difficulty: Difficulty | None = None

        mastery = mastery_by_difficulty.get(attempt.difficulty)
        if mastery is not None:
            mastery.attempts += 1
            if attempt.is_correct:
                mastery.correct += 1
                mastery.streak += 1
            else:
                mastery.streak = 0

            mastery.recent_attempts.append(attempt.is_correct)
            while len(mastery.recent_attempts) > self.config.window_size:
                mastery.recent_attempts.pop(0)

            if not mastery.mastered and self._window_passes(mastery.recent_attempts):
                mastery.mastered = True
                mastery.mastered_at = now
                mastery_achieved = True

                new_difficulty = get_next_difficulty(
                    attempt.difficulty, mastery_by_difficulty.keys()
                )
                if new_difficulty is not None and _is_ahead(new_difficulty, current_difficulty):
                    current_difficulty = new_difficulty

                logger.debug(
                    f"Concept {progress.concept_id} mastered {attempt.difficulty.value}"
                    f" -> {current_difficulty.value}"
                )
        else:
            logger.debug(
                f"Concept {progress.concept_id} has no {attempt.difficulty.value} record; "
                "counting totals only"
            )

        history_entry = QuestionAttempt(
            question_id=attempt.question_id,
            difficulty=attempt.difficulty,
            is_correct=attempt.is_correct,
            xp_earned=xp,
            attempted_at=now,
            time_taken_ms=attempt.time_taken_ms,
        )

        updated = replace(
            progress,
            current_difficulty=current_difficulty,
            mastery_by_difficulty=mastery_by_difficulty,
            total_attempts=progress.total_attempts + 1,
            total_correct=progress.total_correct + (1 if attempt.is_correct else 0),
            xp_earned=progress.xp_earned + xp,
            last_attempted_at=now,
            question_history=[*progress.question_history, history_entry],
        )

        return AttemptResult(
            progress=updated,
            xp_earned=xp,
            mastery_achieved=mastery_achieved,
            new_difficulty=new_difficulty,
        )

    def get_recommended_difficulty(self, progress: ConceptProgress) -> Difficulty:
        """Current difficulty, or the next allowed one once it is mastered."""
        current = progress.current_difficulty
        mastery = progress.mastery_by_difficulty.get(current)
        if mastery is not None and mastery.mastered:
            next_difficulty = get_next_difficulty(current, progress.mastery_by_difficulty.keys())
            if next_difficulty is not None:
                return next_difficulty
        return current

    def get_mastery_status(
        self,
        progress: ConceptProgress,
        difficulty: Difficulty,
    ) -> MasteryStatus | None:
        mastery = progress.mastery_by_difficulty.get(difficulty)
        if mastery is None:
            return None

        recent_correct = sum(1 for correct in mastery.recent_attempts if correct)
        return MasteryStatus(
            attempts=mastery.attempts,
            correct=mastery.correct,
            streak=mastery.streak,
            mastered=mastery.mastered,
            progress=f"{recent_correct}/{self.config.window_size}",
        )

    def is_concept_fully_mastered(self, progress: ConceptProgress) -> bool:
        """True when every tracked difficulty is mastered."""
        masteries = progress.mastery_by_difficulty.values()
        return bool(masteries) and all(m.mastered for m in masteries)

    def get_concept_mastery_percentage(self, progress: ConceptProgress) -> int:
        """Percentage of tracked difficulties mastered, rounded."""
        total = len(progress.mastery_by_difficulty)
        mastered = sum(1 for m in progress.mastery_by_difficulty.values() if m.mastered)
        return safe_pct(mastered, total)

    def _window_passes(self, window: list[bool]) -> bool:
        if len(window) < self.config.window_size:
            return False
        return sum(1 for correct in window if correct) >= self.config.required_correct


def _is_ahead(candidate: Difficulty, current: Difficulty) -> bool:
    return DIFFICULTY_ORDER.index(candidate) > DIFFICULTY_ORDER.index(current)
