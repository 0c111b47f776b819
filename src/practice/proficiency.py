"""
Proficiency Calculator for topic progress.

Reduces per-concept mastery into one of five ordered proficiency bands:

    not_started < building_familiarity < growing_confidence
                < consistent_understanding < exam_ready

Percentages are taken over every concept in the topic that allows a given
difficulty, not only the concepts the learner has attempted.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from loguru import logger

from .types import (
    CAMConcept,
    ConceptProgress,
    Difficulty,
    ProficiencyBand,
    ProficiencyResult,
    ProficiencyStats,
    TopicProgress,
    safe_pct,
)


BAND_LABELS: dict[ProficiencyBand, str] = {
    ProficiencyBand.NOT_STARTED: "Not Started",
    ProficiencyBand.BUILDING_FAMILIARITY: "Building Familiarity",
    ProficiencyBand.GROWING_CONFIDENCE: "Growing Confidence",
    ProficiencyBand.CONSISTENT_UNDERSTANDING: "Consistent Understanding",
    ProficiencyBand.EXAM_READY: "Exam Ready",
}

BAND_ORDER: list[ProficiencyBand] = list(ProficiencyBand)

BAND_MESSAGES: dict[ProficiencyBand, str] = {
    ProficiencyBand.NOT_STARTED: "Start practicing to build your understanding of this topic.",
    ProficiencyBand.BUILDING_FAMILIARITY: "You're getting familiar with the basics. Keep practicing!",
    ProficiencyBand.GROWING_CONFIDENCE: "You're growing more confident. Try some application questions!",
    ProficiencyBand.CONSISTENT_UNDERSTANDING: "You have a solid understanding. Challenge yourself with exam-style questions!",
    ProficiencyBand.EXAM_READY: "Excellent! You're ready for exams on this topic.",
}

# Percentage thresholds per band
CONSISTENT_APPLICATION_MASTERED_PCT = 75
CONSISTENT_EXAM_STYLE_STARTED_PCT = 25
GROWING_FAMILIARITY_MASTERED_PCT = 50
GROWING_APPLICATION_STARTED_PCT = 25


def band_level(band: ProficiencyBand) -> int:
    """Numeric level of a band, 0 (not_started) to 4 (exam_ready)."""
    return BAND_ORDER.index(band)


def calculate_proficiency_stats(
    concept_progresses: Mapping[str, ConceptProgress],
    cam_concepts: Sequence[CAMConcept],
) -> ProficiencyStats:
    """
    Count mastered and started concepts per difficulty.

    Args:
        concept_progresses: Progress keyed by concept id (missing = not started)
        cam_concepts: All concepts in the topic

    Returns:
        ProficiencyStats with raw counts and rounded percentages
    """
    totals = {d: 0 for d in Difficulty}
    mastered = {d: 0 for d in Difficulty}
    started = {d: 0 for d in Difficulty}
    concepts_started = 0

    for concept in cam_concepts:
        allowed = set(concept.difficulty_levels)
        for difficulty in allowed:
            totals[difficulty] += 1

        progress = concept_progresses.get(concept.concept_id)
        if progress is None or progress.total_attempts == 0:
            continue
        concepts_started += 1

        for difficulty in allowed:
            mastery = progress.mastery_by_difficulty.get(difficulty)
            if mastery is None:
                continue
            if mastery.mastered:
                mastered[difficulty] += 1
            if mastery.attempts > 0:
                started[difficulty] += 1

    fam, app, exam = Difficulty.FAMILIARITY, Difficulty.APPLICATION, Difficulty.EXAM_STYLE
    return ProficiencyStats(
        total_concepts=len(cam_concepts),
        concepts_started=concepts_started,
        familiarity_total=totals[fam],
        familiarity_mastered=mastered[fam],
        familiarity_mastered_pct=safe_pct(mastered[fam], totals[fam]),
        application_total=totals[app],
        application_mastered=mastered[app],
        application_started=started[app],
        application_mastered_pct=safe_pct(mastered[app], totals[app]),
        application_started_pct=safe_pct(started[app], totals[app]),
        exam_style_total=totals[exam],
        exam_style_mastered=mastered[exam],
        exam_style_started=started[exam],
        exam_style_mastered_pct=safe_pct(mastered[exam], totals[exam]),
        exam_style_started_pct=safe_pct(started[exam], totals[exam]),
    )


def determine_band(stats: ProficiencyStats) -> ProficiencyBand:
    """Evaluate bands top-down; the first satisfied band wins."""
    if (
        stats.familiarity_mastered_pct == 100
        and stats.application_mastered_pct == 100
        and stats.exam_style_mastered_pct == 100
    ):
        return ProficiencyBand.EXAM_READY

    if (
        stats.familiarity_mastered_pct == 100
        and stats.application_mastered_pct >= CONSISTENT_APPLICATION_MASTERED_PCT
        and stats.exam_style_started_pct >= CONSISTENT_EXAM_STYLE_STARTED_PCT
    ):
        return ProficiencyBand.CONSISTENT_UNDERSTANDING

    if (
        stats.familiarity_mastered_pct >= GROWING_FAMILIARITY_MASTERED_PCT
        and stats.application_started_pct >= GROWING_APPLICATION_STARTED_PCT
    ):
        return ProficiencyBand.GROWING_CONFIDENCE

    if stats.concepts_started > 0:
        return ProficiencyBand.BUILDING_FAMILIARITY

    return ProficiencyBand.NOT_STARTED


def calculate_topic_proficiency(
    concept_progresses: Mapping[str, ConceptProgress],
    cam_concepts: Sequence[CAMConcept],
) -> ProficiencyResult:
    """Proficiency band, label, level and stats for one topic."""
    if not cam_concepts:
        return ProficiencyResult(
            band=ProficiencyBand.NOT_STARTED,
            label=BAND_LABELS[ProficiencyBand.NOT_STARTED],
            level=0,
            stats=None,
        )

    stats = calculate_proficiency_stats(concept_progresses, cam_concepts)
    if stats.concepts_started == 0:
        band = ProficiencyBand.NOT_STARTED
    else:
        band = determine_band(stats)

    return ProficiencyResult(
        band=band,
        label=BAND_LABELS[band],
        level=band_level(band),
        stats=stats,
    )


def create_topic_progress(
    topic_id: str,
    concept_progresses: Mapping[str, ConceptProgress],
    cam_concepts: Sequence[CAMConcept],
) -> TopicProgress:
    """Aggregate concept progress for a topic, including its proficiency band."""
    proficiency = calculate_topic_proficiency(concept_progresses, cam_concepts)

    total_attempts = 0
    total_correct = 0
    xp_earned = 0
    concepts_started = 0
    last_attempted_at: str | None = None

    for concept in cam_concepts:
        progress = concept_progresses.get(concept.concept_id)
        if progress is None:
            continue
        total_attempts += progress.total_attempts
        total_correct += progress.total_correct
        xp_earned += progress.xp_earned
        if progress.total_attempts > 0:
            concepts_started += 1
        # ISO-8601 UTC strings compare chronologically
        if progress.last_attempted_at and (
            last_attempted_at is None or progress.last_attempted_at > last_attempted_at
        ):
            last_attempted_at = progress.last_attempted_at

    logger.debug(f"Topic {topic_id}: {proficiency.band.value} ({concepts_started} concepts started)")

    return TopicProgress(
        topic_id=topic_id,
        proficiency_band=proficiency.band,
        proficiency_label=proficiency.label,
        proficiency_level=proficiency.level,
        concepts_count=len(cam_concepts),
        concepts_started=concepts_started,
        total_attempts=total_attempts,
        total_correct=total_correct,
        xp_earned=xp_earned,
        last_attempted_at=last_attempted_at,
    )


def get_band_message(band: ProficiencyBand) -> str:
    return BAND_MESSAGES[band]


def get_next_band(band: ProficiencyBand) -> ProficiencyBand | None:
    """The band above ``band``, or None at exam_ready."""
    level = band_level(band)
    if level + 1 >= len(BAND_ORDER):
        return None
    return BAND_ORDER[level + 1]


def get_advancement_requirements(band: ProficiencyBand) -> list[str]:
    """Human-readable requirements for reaching the next band."""
    requirements = {
        ProficiencyBand.NOT_STARTED: ["Answer your first question on this topic"],
        ProficiencyBand.BUILDING_FAMILIARITY: [
            f"Master familiarity on at least {GROWING_FAMILIARITY_MASTERED_PCT}% of concepts",
            f"Start application questions on at least {GROWING_APPLICATION_STARTED_PCT}% of concepts",
        ],
        ProficiencyBand.GROWING_CONFIDENCE: [
            "Master familiarity on every concept",
            f"Master application on at least {CONSISTENT_APPLICATION_MASTERED_PCT}% of concepts",
            f"Start exam-style questions on at least {CONSISTENT_EXAM_STYLE_STARTED_PCT}% of concepts",
        ],
        ProficiencyBand.CONSISTENT_UNDERSTANDING: [
            "Master every difficulty level on every concept",
        ],
        ProficiencyBand.EXAM_READY: [],
    }
    return requirements[band]
