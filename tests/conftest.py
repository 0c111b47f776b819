"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import json
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import get_settings  # noqa: E402
from src.practice.mastery_tracker import MasteryConfig, MasteryTracker  # noqa: E402
from src.practice.question_selector import QuestionSelector, SelectionConfig  # noqa: E402
from src.practice.session_manager import SessionManager  # noqa: E402
from src.practice.types import (  # noqa: E402
    CAM,
    CAMConcept,
    CAMTheme,
    CAMTopic,
    Difficulty,
    MatchPair,
    Question,
    QuestionBank,
    QuestionType,
)

ALL_LEVELS = [Difficulty.FAMILIARITY, Difficulty.APPLICATION, Difficulty.EXAM_STYLE]


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine with real storage)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment changes in a test take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# =============================================================================
# Curriculum and content
# =============================================================================


@pytest.fixture
def cam_topic():
    """Topic with one three-level concept and one two-level concept."""
    return CAMTopic(
        topic_id="numbers",
        topic_name="Numbers",
        concepts=[
            CAMConcept("place-value", "Place Value", list(ALL_LEVELS)),
            CAMConcept("rounding", "Rounding", [Difficulty.FAMILIARITY, Difficulty.APPLICATION]),
        ],
    )


@pytest.fixture
def cam(cam_topic):
    """CAM with a single theme holding the sample topic."""
    return CAM(
        board="icse",
        class_level=5,
        subject="mathematics",
        themes=[CAMTheme("number-sense", "Number Sense", [cam_topic])],
    )


def make_question(
    question_id,
    concept_id="place-value",
    difficulty=Difficulty.FAMILIARITY,
    question_type=QuestionType.MCQ,
    cognitive_level=None,
    **kwargs,
):
    """Build a question with sensible defaults for its type."""
    defaults = {
        QuestionType.MCQ: {"options": ["10", "100", "1000"], "correct_answer": "100"},
        QuestionType.TRUE_FALSE: {"correct_answer": "true"},
        QuestionType.FILL_BLANK: {"correct_answer": "hundreds"},
        QuestionType.ORDERING: {"correct_answer": ["1", "10", "100"], "ordering_items": ["1", "10", "100"]},
        QuestionType.MATCH: {
            "match_pairs": [MatchPair("ones", "1"), MatchPair("tens", "10")],
        },
    }[question_type]
    content = {
        "question_text": f"Question {question_id}",
        "cognitive_level": cognitive_level,
        **defaults,
        **kwargs,
    }
    return Question(
        question_id=question_id,
        concept_id=concept_id,
        difficulty=difficulty,
        question_type=question_type,
        **content,
    )


@pytest.fixture
def question_factory():
    return make_question


@pytest.fixture
def question_bank():
    """Mixed bank: both concepts, several difficulties and types."""
    return QuestionBank(
        topic_id="numbers",
        canonical_explanation="Each place is ten times the place to its right.",
        questions=[
            make_question("pv-f1", cognitive_level="remember"),
            make_question("pv-f2", question_type=QuestionType.TRUE_FALSE, cognitive_level="remember"),
            make_question("pv-a1", difficulty=Difficulty.APPLICATION, question_type=QuestionType.FILL_BLANK,
                          cognitive_level="apply"),
            make_question("pv-e1", difficulty=Difficulty.EXAM_STYLE, question_type=QuestionType.ORDERING,
                          cognitive_level="analyze"),
            make_question("rd-f1", concept_id="rounding", question_type=QuestionType.MATCH,
                          cognitive_level="understand"),
            make_question("rd-a1", concept_id="rounding", difficulty=Difficulty.APPLICATION,
                          cognitive_level="apply"),
            # Not allowed by the CAM: rounding has no exam_style level
            make_question("rd-e1", concept_id="rounding", difficulty=Difficulty.EXAM_STYLE),
        ],
    )


@pytest.fixture
def rng():
    """Seeded random source for reproducible selection."""
    return random.Random(42)


@pytest.fixture
def tracker():
    return MasteryTracker(MasteryConfig())


@pytest.fixture
def selector(tracker, rng):
    return QuestionSelector(tracker=tracker, config=SelectionConfig(jitter=0.0), rng=rng)


@pytest.fixture
def session_manager(tracker, selector, rng):
    return SessionManager(selector=selector, tracker=tracker, rng=rng)


# =============================================================================
# Content files
# =============================================================================


@pytest.fixture
def cam_data():
    return {
        "board": "icse",
        "class_level": 5,
        "subject": "mathematics",
        "themes": [
            {
                "theme_id": "number-sense",
                "theme_name": "Number Sense",
                "topics": [
                    {
                        "topic_id": "numbers",
                        "topic_name": "Numbers",
                        "concepts": [
                            {
                                "concept_id": "place-value",
                                "concept_name": "Place Value",
                                "difficulty_levels": ["familiarity", "application"],
                            }
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def bank_data():
    return {
        "topic_id": "numbers",
        "canonical_explanation": "Each place is ten times the place to its right.",
        "questions": [
            {
                "question_id": "q1",
                "concept_id": "place-value",
                "difficulty": "familiarity",
                "type": "true_false",
                "question_text": "The 3 in 352 stands for 300.",
                "correct_answer": "true",
            },
            {
                "question_id": "q2",
                "concept_id": "place-value",
                "difficulty": "familiarity",
                "type": "fill_blank",
                "question_text": "In 4,725 the digit 7 is in the ____ place.",
                "correct_answer": "hundreds",
                "explanation": "7 stands for 700.",
            },
        ],
    }


@pytest.fixture
def content_files(tmp_path, cam_data, bank_data):
    """CAM and question bank JSON files on disk."""
    cam_path = tmp_path / "cam.json"
    bank_path = tmp_path / "bank.json"
    cam_path.write_text(json.dumps(cam_data), encoding="utf-8")
    bank_path.write_text(json.dumps(bank_data), encoding="utf-8")
    return cam_path, bank_path
