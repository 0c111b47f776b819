"""
Unit tests for MasteryTracker.

Tests:
- Rolling window (FIFO, capped) and the 4-of-5 mastery rule
- Difficulty advancement in fixed order
- XP table and streak bookkeeping
- Pure updates (input progress never modified)
"""

import pytest

from src.practice.mastery_tracker import (
    AttemptInput,
    MasteryConfig,
    MasteryTracker,
    get_next_difficulty,
)
from src.practice.types import Difficulty

FAM = Difficulty.FAMILIARITY
APP = Difficulty.APPLICATION
EXAM = Difficulty.EXAM_STYLE


def record_sequence(tracker, progress, outcomes, difficulty=FAM):
    """Record a run of answers; returns final progress and all results."""
    results = []
    for i, is_correct in enumerate(outcomes):
        result = tracker.record_attempt(
            progress, AttemptInput(question_id=f"q{i}", difficulty=difficulty, is_correct=is_correct)
        )
        results.append(result)
        progress = result.progress
    return progress, results


class TestCreateConceptProgress:
    def test_only_allowed_difficulties_tracked(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM, APP])
        assert set(progress.mastery_by_difficulty) == {FAM, APP}
        assert progress.current_difficulty == FAM
        assert progress.total_attempts == 0

    def test_starts_at_first_allowed_in_fixed_order(self, tracker):
        progress = tracker.create_concept_progress("c1", [EXAM, APP])
        assert progress.current_difficulty == APP

    def test_get_or_create_returns_existing(self, tracker):
        existing = tracker.create_concept_progress("c1", [FAM])
        assert tracker.get_or_create_concept_progress(existing, "c1", [FAM, APP]) is existing


class TestRecordAttempt:
    @pytest.fixture
    def progress(self, tracker):
        return tracker.create_concept_progress("c1", [FAM, APP, EXAM])

    def test_does_not_modify_input(self, tracker, progress):
        tracker.record_attempt(progress, AttemptInput("q1", FAM, True))
        assert progress.total_attempts == 0
        assert progress.mastery_by_difficulty[FAM].recent_attempts == []
        assert progress.question_history == []

    @pytest.mark.parametrize(
        "difficulty,expected_xp",
        [(FAM, 10), (APP, 20), (EXAM, 30)],
    )
    def test_xp_per_correct_answer(self, tracker, progress, difficulty, expected_xp):
        result = tracker.record_attempt(progress, AttemptInput("q1", difficulty, True))
        assert result.xp_earned == expected_xp
        assert result.progress.xp_earned == expected_xp

    def test_incorrect_earns_nothing_and_keeps_xp(self, tracker, progress):
        progress, _ = record_sequence(tracker, progress, [True])
        result = tracker.record_attempt(progress, AttemptInput("q2", FAM, False))
        assert result.xp_earned == 0
        assert result.progress.xp_earned == 10

    def test_window_is_capped_fifo(self, tracker, progress):
        progress, _ = record_sequence(tracker, progress, [False, True, True, False, True, True, False])
        assert progress.mastery_by_difficulty[FAM].recent_attempts == [True, False, True, True, False]

    def test_streak_resets_on_incorrect(self, tracker, progress):
        progress, _ = record_sequence(tracker, progress, [True, True, True])
        assert progress.mastery_by_difficulty[FAM].streak == 3
        progress, _ = record_sequence(tracker, progress, [False])
        assert progress.mastery_by_difficulty[FAM].streak == 0

    def test_totals_and_history(self, tracker, progress):
        progress, _ = record_sequence(tracker, progress, [True, False, True])
        assert progress.total_attempts == 3
        assert progress.total_correct == 2
        assert [a.is_correct for a in progress.question_history] == [True, False, True]
        assert progress.last_attempted_at is not None


class TestMasteryRule:
    @pytest.fixture
    def progress(self, tracker):
        return tracker.create_concept_progress("c1", [FAM, APP, EXAM])

    @pytest.mark.parametrize("wrong_position", [0, 1, 2, 3, 4])
    def test_four_of_five_masters_exactly_once(self, tracker, progress, wrong_position):
        outcomes = [True] * 5
        outcomes[wrong_position] = False
        # Keep answering after mastery, including wrong answers
        outcomes += [False, False, True, False]

        progress, results = record_sequence(tracker, progress, outcomes)

        assert sum(1 for r in results if r.mastery_achieved) == 1
        assert results[4].mastery_achieved is True
        assert progress.mastery_by_difficulty[FAM].mastered is True

    def test_window_not_full_does_not_master(self, tracker, progress):
        progress, results = record_sequence(tracker, progress, [True] * 4)
        assert not any(r.mastery_achieved for r in results)
        assert progress.mastery_by_difficulty[FAM].mastered is False

    def test_three_of_five_does_not_master(self, tracker, progress):
        progress, _ = record_sequence(tracker, progress, [True, False, True, False, True])
        assert progress.mastery_by_difficulty[FAM].mastered is False

    def test_mastering_familiarity_advances_to_application(self, tracker, progress):
        progress, results = record_sequence(tracker, progress, [True] * 5)
        assert results[-1].new_difficulty == APP
        assert progress.current_difficulty == APP
        assert progress.mastery_by_difficulty[FAM].mastered_at is not None

    def test_single_allowed_difficulty_holds(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM])
        progress, results = record_sequence(tracker, progress, [True] * 5)
        assert results[-1].mastery_achieved is True
        assert results[-1].new_difficulty is None
        assert progress.current_difficulty == FAM

    def test_skips_disallowed_levels(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM, EXAM])
        progress, _ = record_sequence(tracker, progress, [True] * 5)
        assert progress.current_difficulty == EXAM

    def test_custom_thresholds(self):
        tracker = MasteryTracker(MasteryConfig(window_size=3, required_correct=3))
        progress = tracker.create_concept_progress("c1", [FAM, APP])
        progress, results = record_sequence(tracker, progress, [True] * 3)
        assert results[-1].mastery_achieved is True

    def test_untracked_difficulty_counts_totals_only(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM])
        result = tracker.record_attempt(progress, AttemptInput("q1", APP, True))
        assert result.progress.total_attempts == 1
        assert APP not in result.progress.mastery_by_difficulty


class TestQueries:
    def test_recommended_difficulty_moves_past_mastered(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM, APP])
        progress.mastery_by_difficulty[FAM].mastered = True
        assert tracker.get_recommended_difficulty(progress) == APP

    def test_recommended_difficulty_holds_at_top(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM])
        progress.mastery_by_difficulty[FAM].mastered = True
        assert tracker.get_recommended_difficulty(progress) == FAM

    def test_mastery_status_progress_string(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM])
        progress, _ = record_sequence(tracker, progress, [True, False, True, True])
        status = tracker.get_mastery_status(progress, FAM)
        assert status.progress == "3/5"
        assert status.attempts == 4
        assert tracker.get_mastery_status(progress, EXAM) is None

    def test_fully_mastered_and_percentage(self, tracker):
        progress = tracker.create_concept_progress("c1", [FAM, APP, EXAM])
        assert tracker.get_concept_mastery_percentage(progress) == 0
        progress, _ = record_sequence(tracker, progress, [True] * 5)
        assert tracker.get_concept_mastery_percentage(progress) == 33
        assert tracker.is_concept_fully_mastered(progress) is False

        for difficulty in (APP, EXAM):
            progress, _ = record_sequence(tracker, progress, [True] * 5, difficulty=difficulty)
        assert tracker.is_concept_fully_mastered(progress) is True
        assert tracker.get_concept_mastery_percentage(progress) == 100


class TestGetNextDifficulty:
    def test_next_in_fixed_order(self):
        assert get_next_difficulty(FAM, [FAM, APP, EXAM]) == APP
        assert get_next_difficulty(APP, [FAM, APP, EXAM]) == EXAM

    def test_none_at_top(self):
        assert get_next_difficulty(EXAM, [FAM, APP, EXAM]) is None
        assert get_next_difficulty(APP, [FAM, APP]) is None
