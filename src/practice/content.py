"""
Question bank and CAM loading.

Content files are JSON. They are validated with Pydantic models on load and
converted into the engine's dataclasses. Malformed files raise
ContentValidationError; individually malformed questions are handled later
by the selector, which drops them.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .errors import ContentValidationError, TopicNotFoundError
from .types import (
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


class MatchPairModel(BaseModel):
    left: str
    right: str


class QuestionModel(BaseModel):
    """A question as authored in a question bank file."""

    question_id: str = Field(..., description="Stable question identifier")
    concept_id: str = Field(..., description="CAM concept this question practices")
    difficulty: Difficulty
    type: QuestionType = Field(..., description="mcq, true_false, fill_blank, match, ordering")
    question_text: str
    options: Optional[list[str]] = None
    correct_answer: Any = None
    match_pairs: Optional[list[MatchPairModel]] = None
    ordering_items: Optional[list[str]] = None
    cognitive_level: Optional[str] = None
    hint: Optional[str] = None
    explanation: Optional[str] = None

    def to_question(self) -> Question:
        return Question(
            question_id=self.question_id,
            concept_id=self.concept_id,
            difficulty=self.difficulty,
            question_type=self.type,
            question_text=self.question_text,
            correct_answer=self.correct_answer,
            options=self.options,
            match_pairs=[MatchPair(left=p.left, right=p.right) for p in self.match_pairs]
            if self.match_pairs
            else None,
            ordering_items=self.ordering_items,
            cognitive_level=self.cognitive_level,
            hint=self.hint,
            explanation=self.explanation,
        )


class QuestionBankModel(BaseModel):
    topic_id: str
    questions: list[QuestionModel] = Field(default_factory=list)
    canonical_explanation: Optional[str] = None

    def to_bank(self) -> QuestionBank:
        return QuestionBank(
            topic_id=self.topic_id,
            questions=[q.to_question() for q in self.questions],
            canonical_explanation=self.canonical_explanation,
        )


class CAMConceptModel(BaseModel):
    concept_id: str
    concept_name: str
    difficulty_levels: list[Difficulty] = Field(default_factory=list)


class CAMTopicModel(BaseModel):
    topic_id: str
    topic_name: str
    concepts: list[CAMConceptModel] = Field(default_factory=list)


class CAMThemeModel(BaseModel):
    theme_id: str
    theme_name: str
    topics: list[CAMTopicModel] = Field(default_factory=list)


class CAMModel(BaseModel):
    """Curriculum tree file: board/class/subject plus themes."""

    board: str
    class_level: int
    subject: str
    version: str = "1.0.0"
    themes: list[CAMThemeModel] = Field(default_factory=list)

    def to_cam(self) -> CAM:
        return CAM(
            board=self.board,
            class_level=self.class_level,
            subject=self.subject,
            version=self.version,
            themes=[
                CAMTheme(
                    theme_id=theme.theme_id,
                    theme_name=theme.theme_name,
                    topics=[
                        CAMTopic(
                            topic_id=topic.topic_id,
                            topic_name=topic.topic_name,
                            concepts=[
                                CAMConcept(
                                    concept_id=c.concept_id,
                                    concept_name=c.concept_name,
                                    difficulty_levels=list(c.difficulty_levels),
                                )
                                for c in topic.concepts
                            ],
                        )
                        for topic in theme.topics
                    ],
                )
                for theme in self.themes
            ],
        )


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ContentValidationError(f"Content file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentValidationError(f"Invalid JSON in {path}: {e}") from e


def parse_question_bank(data: Any) -> QuestionBank:
    """Validate raw question bank data."""
    try:
        return QuestionBankModel.model_validate(data).to_bank()
    except ValidationError as e:
        raise ContentValidationError(f"Invalid question bank: {e}") from e


def parse_cam(data: Any) -> CAM:
    """Validate raw CAM data."""
    try:
        return CAMModel.model_validate(data).to_cam()
    except ValidationError as e:
        raise ContentValidationError(f"Invalid CAM: {e}") from e


def load_question_bank(path: str | Path) -> QuestionBank:
    bank = parse_question_bank(_read_json(Path(path)))
    logger.debug(f"Loaded {len(bank.questions)} questions for topic {bank.topic_id} from {path}")
    return bank


def load_cam(path: str | Path) -> CAM:
    cam = parse_cam(_read_json(Path(path)))
    logger.debug(f"Loaded CAM {cam.board}/{cam.class_level}/{cam.subject} from {path}")
    return cam


def all_topics(cam: CAM) -> list[CAMTopic]:
    """Every topic across all themes, in CAM order."""
    return [topic for theme in cam.themes for topic in theme.topics]


def find_topic(cam: CAM, topic_id: str) -> CAMTopic:
    """Resolve a topic id through themes -> topics."""
    for topic in all_topics(cam):
        if topic.topic_id == topic_id:
            return topic
    raise TopicNotFoundError(f"Topic not found in CAM: {topic_id}")
