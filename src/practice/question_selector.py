"""
Question Selector for practice sessions.

Builds the ordered question queue for a session:

1. Drop malformed questions and those the CAM does not allow
2. Score each remaining question (recommended difficulty, novelty, mastery,
   streak momentum, recency, random jitter)
3. Order by the chosen strategy (adaptive, sequential, random, review)
4. Interleave by concept so one concept never dominates the start
5. Balance cognitive levels (at least 2 levels, no runs longer than 3)
"""
from __future__ import annotations

import random
from collections import OrderedDict
from dataclasses import dataclass, fields, replace
from typing import Callable, Mapping, Optional, Sequence

from loguru import logger

from config import get_settings

from .answers import is_supported
from .answers.base import shuffled
from .mastery_tracker import MasteryTracker
from .recency import QuestionHistoryMap, get_recency_penalty
from .types import (
    DIFFICULTY_ORDER,
    CAMConcept,
    CAMTopic,
    ConceptProgress,
    Difficulty,
    EnrichedQuestion,
    Question,
    QuestionStatus,
    SelectionStrategy,
)


# Priority weights
RECOMMENDED_BONUS = 100
COLD_START_BONUS = 50
NOVELTY_CEILING = 20
NOT_MASTERED_BONUS = 30
STREAK_MULTIPLIER = 2
STREAK_CAP = 10
REVIEW_BONUS = 100

MAX_SAME_LEVEL_RUN = 3


@dataclass
class SelectionConfig:
    """Configuration for question selection."""
    default_strategy: SelectionStrategy = SelectionStrategy.ADAPTIVE
    jitter: float = 10.0

    @classmethod
    def from_settings(cls) -> SelectionConfig:
        settings = get_settings()
        return cls(
            default_strategy=SelectionStrategy(settings.default_strategy),
            jitter=settings.priority_jitter,
        )


def enrich(question: Question, **annotations) -> EnrichedQuestion:
    """Copy a question into an EnrichedQuestion with extra annotations."""
    base = {f.name: getattr(question, f.name) for f in fields(Question)}
    return EnrichedQuestion(**base, **annotations)


def calculate_priority_score(
    question: Question,
    progress: ConceptProgress | None,
    recommended: Difficulty,
) -> float:
    """
    Deterministic part of a question's adaptive priority.

    Args:
        question: Candidate question
        progress: Learner progress on the question's concept, if any
        recommended: Recommended difficulty for that concept

    Returns:
        Score before jitter and recency adjustments
    """
    score = 0.0

    if question.difficulty == recommended:
        score += RECOMMENDED_BONUS

    if progress is None or progress.total_attempts == 0:
        return score + COLD_START_BONUS

    score += max(0, NOVELTY_CEILING - progress.total_attempts)

    mastery = progress.mastery_by_difficulty.get(question.difficulty)
    if mastery is not None:
        if not mastery.mastered:
            score += NOT_MASTERED_BONUS
        if mastery.streak > 0:
            score += min(STREAK_CAP, mastery.streak * STREAK_MULTIPLIER)

    return score


def interleave_by_concept(questions: Sequence[EnrichedQuestion]) -> list[EnrichedQuestion]:
    """Round-robin across concept groups, groups in first-seen order."""
    groups: OrderedDict[str, list[EnrichedQuestion]] = OrderedDict()
    for question in questions:
        groups.setdefault(question.concept_id, []).append(question)

    result: list[EnrichedQuestion] = []
    depth = 0
    while len(result) < len(questions):
        for group in groups.values():
            if depth < len(group):
                result.append(group[depth])
        depth += 1
    return result


def apply_cognitive_variety(
    selected: Sequence[EnrichedQuestion],
    pool: Sequence[EnrichedQuestion],
) -> list[EnrichedQuestion]:
    """
    Balance cognitive levels in a selection.

    - With fewer than 2 distinct levels, the highest-scoring pool question of
      another level replaces the lowest-scoring selected question.
    - Runs of more than 3 same-level questions are broken by swapping with a
      later selected question, else replacing from the pool.
    - Never introduces a duplicate question id; no-op when nothing qualifies.
    """
    if len(selected) <= 1:
        return list(selected)

    result = list(selected)
    used_ids = {q.question_id for q in result}

    levels = {q.cognitive_level for q in result}
    if len(levels) < 2:
        current_level = result[0].cognitive_level
        candidates = [
            q for q in pool
            if q.cognitive_level != current_level and q.question_id not in used_ids
        ]
        if candidates:
            replacement = max(candidates, key=lambda q: q.priority_score)
            lowest = min(range(len(result)), key=lambda i: result[i].priority_score)
            used_ids.discard(result[lowest].question_id)
            result[lowest] = replacement
            used_ids.add(replacement.question_id)

    for i in range(MAX_SAME_LEVEL_RUN, len(result)):
        window = result[i - MAX_SAME_LEVEL_RUN:i + 1]
        level = result[i].cognitive_level
        if any(q.cognitive_level != level for q in window):
            continue

        swap_index = next(
            (j for j in range(i + 1, len(result)) if result[j].cognitive_level != level),
            None,
        )
        if swap_index is not None:
            result[i], result[swap_index] = result[swap_index], result[i]
            continue

        replacement = next(
            (q for q in pool if q.cognitive_level != level and q.question_id not in used_ids),
            None,
        )
        if replacement is not None:
            used_ids.discard(result[i].question_id)
            result[i] = replacement
            used_ids.add(replacement.question_id)

    return result


def _limit(items: Sequence[EnrichedQuestion], count: int | None) -> int:
    return count if count else len(items)


class QuestionSelector:
    """
    Selects and orders questions for a session.

    The random source is injected so selection is reproducible in tests
    (seeded ``random.Random``) and varied in production.
    """

    def __init__(
        self,
        tracker: Optional[MasteryTracker] = None,
        config: Optional[SelectionConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.tracker = tracker or MasteryTracker()
        self.config = config or SelectionConfig.from_settings()
        self.rng = rng or random.Random()

        self._strategies: dict[
            SelectionStrategy,
            Callable[
                [list[EnrichedQuestion], int | None, random.Random, QuestionHistoryMap],
                list[EnrichedQuestion],
            ],
        ] = {
            SelectionStrategy.ADAPTIVE: self._select_adaptive,
            SelectionStrategy.SEQUENTIAL: self._select_sequential,
            SelectionStrategy.RANDOM: self._select_random,
            SelectionStrategy.REVIEW: self._select_review,
        }

    def select_questions(
        self,
        questions: Sequence[Question],
        cam_topic: CAMTopic,
        concept_progresses: Mapping[str, ConceptProgress],
        count: int | None = None,
        strategy: SelectionStrategy | str | None = None,
        history_map: QuestionHistoryMap | None = None,
        rng: random.Random | None = None,
    ) -> list[EnrichedQuestion]:
        """
        Build the ordered question queue for a session.

        Args:
            questions: Question bank content for the topic
            cam_topic: CAM topic; the only authority on allowed difficulties
            concept_progresses: Learner progress keyed by concept id
            count: Maximum questions to return (None = all eligible)
            strategy: Selection strategy (defaults to configured strategy)
            history_map: Past-session sightings for recency scoring
            rng: Random source for this call (defaults to the selector's)

        Returns:
            Eligible questions tagged with order_in_session and pending status
        """
        rng = rng or self.rng
        strategy = SelectionStrategy(strategy) if strategy else self.config.default_strategy

        pool = self.build_question_pool(questions, cam_topic, concept_progresses, history_map, rng)
        if not pool:
            logger.info(f"No eligible questions for topic {cam_topic.topic_id}")
            return []

        selected = self._strategies[strategy](pool, count, rng, history_map or {})

        seen: set[str] = set()
        queue: list[EnrichedQuestion] = []
        for question in selected:
            if question.question_id in seen:
                continue
            seen.add(question.question_id)
            queue.append(
                replace(question, order_in_session=len(queue), status=QuestionStatus.PENDING)
            )

        logger.debug(
            f"Selected {len(queue)}/{len(pool)} questions for topic {cam_topic.topic_id} "
            f"({strategy.value})"
        )
        return queue

    def build_question_pool(
        self,
        questions: Sequence[Question],
        cam_topic: CAMTopic,
        concept_progresses: Mapping[str, ConceptProgress],
        history_map: QuestionHistoryMap | None = None,
        rng: random.Random | None = None,
    ) -> list[EnrichedQuestion]:
        """Eligible, scored questions in bank order."""
        rng = rng or self.rng
        concepts: dict[str, CAMConcept] = {c.concept_id: c for c in cam_topic.concepts}
        pool: list[EnrichedQuestion] = []
        dropped = 0

        for question in questions:
            concept = concepts.get(question.concept_id)
            if (
                concept is None
                or question.difficulty not in concept.difficulty_levels
                or not is_supported(question)
            ):
                dropped += 1
                continue

            progress = concept_progresses.get(question.concept_id)
            recommended = self._recommended_difficulty(progress, concept)

            score = calculate_priority_score(question, progress, recommended)
            score += rng.random() * self.config.jitter

            recency = 0.0
            if history_map is not None:
                entry = history_map.get(question.question_id)
                recency = float(get_recency_penalty(entry.sessions_ago if entry else None))
                score += recency

            pool.append(
                enrich(
                    question,
                    eligible=True,
                    is_recommended=question.difficulty == recommended,
                    priority_score=score,
                    concept_progress=progress,
                    recency_penalty=recency,
                )
            )

        if dropped:
            logger.debug(f"Dropped {dropped} ineligible or malformed questions")
        return pool

    def _recommended_difficulty(
        self,
        progress: ConceptProgress | None,
        concept: CAMConcept,
    ) -> Difficulty:
        if progress is not None:
            return self.tracker.get_recommended_difficulty(progress)
        allowed = [d for d in DIFFICULTY_ORDER if d in concept.difficulty_levels]
        return allowed[0] if allowed else Difficulty.FAMILIARITY

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _select_adaptive(self, pool, count, rng, history_map):
        ordered = sorted(pool, key=lambda q: q.priority_score, reverse=True)
        interleaved = interleave_by_concept(ordered)
        limit = _limit(interleaved, count)
        return apply_cognitive_variety(interleaved[:limit], interleaved[limit:])

    def _select_sequential(self, pool, count, rng, history_map):
        ordered = sorted(
            pool,
            key=lambda q: (q.concept_id, DIFFICULTY_ORDER.index(q.difficulty), q.question_id),
        )
        return ordered[:_limit(ordered, count)]

    def _select_random(self, pool, count, rng, history_map):
        ordered = shuffled(pool, rng)
        return ordered[:_limit(ordered, count)]

    def _select_review(self, pool, count, rng, history_map):
        rescored = []
        for question in pool:
            score = question.priority_score
            if _needs_review(question, history_map):
                score += REVIEW_BONUS
            rescored.append(replace(question, priority_score=score))

        ordered = sorted(rescored, key=lambda q: q.priority_score, reverse=True)
        return ordered[:_limit(ordered, count)]


def _needs_review(question: EnrichedQuestion, history_map: QuestionHistoryMap) -> bool:
    """True if this question or its difficulty was recently answered wrong."""
    entry = history_map.get(question.question_id)
    if entry is not None and entry.was_correct is False:
        return True

    progress = question.concept_progress
    if progress is None:
        return False
    mastery = progress.mastery_by_difficulty.get(question.difficulty)
    return mastery is not None and False in mastery.recent_attempts
