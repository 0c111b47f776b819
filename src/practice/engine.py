"""
QuizEngine: the host-facing facade over the practice engine.

Wires the CAM, question banks, the learner's stored progress and the
session manager together, and persists results in the background:

- progress after every submitted answer
- the session summary when a session ends or times out

A failed or slow save never reaches the learner; it is logged and the
in-memory state stays authoritative.
"""
from __future__ import annotations

import random
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from loguru import logger

from src.storage.base import StorageAdapter, StorageStats, UserProgress, create_empty_progress

from .content import all_topics
from .errors import QuestionBankNotFoundError, SessionStateError, TopicNotFoundError
from .export_manager import ExportOptions, ImportResult, create_export, import_data
from .proficiency import calculate_topic_proficiency, create_topic_progress
from .recency import QuestionHistoryMap, build_question_history_map
from .session_manager import CreateSessionParams, SessionManager
from .types import (
    CAM,
    CAMTopic,
    ConceptProgress,
    Difficulty,
    EnrichedQuestion,
    ProficiencyResult,
    QuestionBank,
    QuizSession,
    SelectionStrategy,
    SessionStatus,
    SessionSummary,
    TimeMode,
    TopicProgress,
    utc_now_iso,
)


@dataclass
class AnswerFeedback:
    """What the host shows after an answer is submitted."""
    is_correct: bool
    xp_earned: int
    correct_answer: Any
    explanation: str | None
    mastery_achieved: bool
    new_difficulty: Difficulty | None
    is_session_complete: bool
    answered: int
    total: int
    correct: int
    session_xp: int


@dataclass
class SkipResult:
    is_session_complete: bool
    next_question: EnrichedQuestion | None


class QuizEngine:
    """
    Stateful facade holding one learner's progress and current session.

    Calls against the engine must be serialized by the host; only the
    background persistence runs on another thread, and it only ever sees
    immutable snapshots.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        user_id: str = "anonymous",
        cam: Optional[CAM] = None,
        rng: Optional[random.Random] = None,
        session_manager: Optional[SessionManager] = None,
        background_persistence: bool = True,
    ):
        """
        Initialize engine.

        Args:
            storage: Adapter used to load and save progress and history
            user_id: Learner id
            cam: Curriculum tree (can be set later with set_cam)
            rng: Random source for selection and session ids
            session_manager: Custom SessionManager (built from rng if None)
            background_persistence: Save on a worker thread (False saves inline)
        """
        self.storage = storage
        self.user_id = user_id
        self.cam = cam
        self.session_manager = session_manager or SessionManager(rng=rng or random.Random())

        self._question_banks: dict[str, QuestionBank] = {}
        self._session: QuizSession | None = None
        self._progress: UserProgress | None = None
        self._history_saved: set[str] = set()
        self._pending: list[Future] = []
        self._executor = ThreadPoolExecutor(max_workers=1) if background_persistence else None

    # -------------------------------------------------------------------------
    # Progress loading and persistence
    # -------------------------------------------------------------------------

    def initialize(self) -> UserProgress:
        """Load stored progress (once)."""
        if self._progress is None:
            progress = None
            try:
                progress = self.storage.load_progress(self.user_id)
            except Exception:
                logger.exception("Failed to load progress; starting empty")
            self._progress = progress or create_empty_progress(self.user_id)
        return self._progress

    @property
    def progress(self) -> UserProgress:
        return self.initialize()

    def _persist(self, label: str, action: Callable[..., bool], *args) -> None:
        """Run a save without letting its outcome reach the caller."""

        def run() -> None:
            try:
                if not action(*args):
                    logger.warning(f"Failed to {label}")
            except Exception:
                logger.exception(f"Failed to {label}")

        if self._executor is None:
            run()
            return

        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(self._executor.submit(run))

    def flush(self, timeout: float | None = None) -> None:
        """Wait for queued background saves to finish."""
        if self._pending:
            wait(self._pending, timeout=timeout)
            self._pending = [f for f in self._pending if not f.done()]

    def close(self) -> None:
        """Finish pending saves and stop the worker thread."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._pending = []

    # -------------------------------------------------------------------------
    # CAM and question banks
    # -------------------------------------------------------------------------

    def set_cam(self, cam: CAM) -> None:
        self.cam = cam

    def register_question_bank(self, topic_id: str, question_bank: QuestionBank) -> None:
        self._question_banks[topic_id] = question_bank

    def get_question_bank(self, topic_id: str) -> QuestionBank | None:
        return self._question_banks.get(topic_id)

    def get_cam_topic(self, topic_id: str) -> CAMTopic | None:
        for topic in self.get_all_topics():
            if topic.topic_id == topic_id:
                return topic
        return None

    def get_all_topics(self) -> list[CAMTopic]:
        return all_topics(self.cam) if self.cam else []

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    @property
    def session(self) -> QuizSession | None:
        return self._session

    def _require_session(self) -> QuizSession:
        if self._session is None:
            raise SessionStateError("No active session")
        return self._session

    def _load_history_map(self, topic_id: str) -> QuestionHistoryMap | None:
        try:
            return build_question_history_map(self.storage.load_session_history(), topic_id)
        except Exception:
            logger.exception("Failed to load session history; selecting without recency")
            return None

    def create_session(
        self,
        topic_id: str,
        time_mode: TimeMode = TimeMode.UNLIMITED,
        question_count: int | None = None,
        strategy: SelectionStrategy | str | None = None,
    ) -> QuizSession:
        """
        Create (but do not start) a session for a topic.

        Raises:
            QuestionBankNotFoundError: No question bank registered for the topic
            TopicNotFoundError: Topic is not in the CAM
        """
        progress = self.initialize()

        question_bank = self.get_question_bank(topic_id)
        if question_bank is None:
            raise QuestionBankNotFoundError(f"Question bank not found for topic: {topic_id}")
        cam_topic = self.get_cam_topic(topic_id)
        if cam_topic is None:
            raise TopicNotFoundError(f"CAM topic not found: {topic_id}")

        concept_progresses = {
            c.concept_id: progress.concepts[c.concept_id]
            for c in cam_topic.concepts
            if c.concept_id in progress.concepts
        }

        self._session = self.session_manager.create_session(
            CreateSessionParams(
                topic_id=topic_id,
                question_bank=question_bank,
                cam_topic=cam_topic,
                concept_progresses=concept_progresses,
                time_mode=TimeMode(time_mode),
                question_count=question_count,
                strategy=SelectionStrategy(strategy) if strategy else None,
                history_map=self._load_history_map(topic_id),
            )
        )
        return self._session

    def start_session(self) -> QuizSession:
        self._session = self.session_manager.start_session(self._require_session())
        return self._session

    def pause_session(self, elapsed_ms: int | None = None) -> QuizSession:
        self._session = self.session_manager.pause_session(self._require_session(), elapsed_ms)
        return self._session

    def resume_session(self) -> QuizSession:
        self._session = self.session_manager.resume_session(self._require_session())
        return self._session

    def get_current_question(self) -> EnrichedQuestion | None:
        return self._session.current_question if self._session else None

    def submit_answer(self, user_answer: Any, time_taken_ms: int | None = None) -> AnswerFeedback:
        """Judge the current question, update progress and queue a progress save."""
        session = self._require_session()
        question = session.current_question
        if question is None:
            raise SessionStateError("No current question")

        progress = self.initialize()
        cam_topic = self.get_cam_topic(session.config.topic_id)
        concept_progress = self._concept_progress_for(progress, cam_topic, question.concept_id)

        result = self.session_manager.submit_answer(
            session, user_answer, time_taken_ms, concept_progress
        )
        self._session = result.session

        if result.concept_progress is not None:
            self._progress = self._update_user_progress(
                progress, result.concept_progress, cam_topic
            )
            self._persist("save progress", self.storage.save_progress, self._progress)

        bank = self.get_question_bank(session.config.topic_id)
        explanation = result.explanation or (bank.canonical_explanation if bank else None)
        mastery = result.mastery_result

        return AnswerFeedback(
            is_correct=result.is_correct,
            xp_earned=result.xp_earned,
            correct_answer=result.correct_answer,
            explanation=explanation,
            mastery_achieved=bool(mastery and mastery.mastery_achieved),
            new_difficulty=mastery.new_difficulty if mastery else None,
            is_session_complete=result.is_session_complete,
            answered=result.session.progress.questions_answered,
            total=len(result.session.questions),
            correct=result.session.progress.questions_correct,
            session_xp=result.session.progress.xp_earned,
        )

    def skip_question(self) -> SkipResult:
        self._session = self.session_manager.skip_question(self._require_session())
        return SkipResult(
            is_session_complete=self._session.status == SessionStatus.COMPLETED,
            next_question=self._session.current_question,
        )

    def end_session(self, completed: bool = False) -> SessionSummary:
        """End the session (if still running) and queue its summary for history."""
        self._session = self.session_manager.end_session(self._require_session(), completed)
        return self._record_summary(self._session)

    def is_session_timed_out(self, elapsed_ms: int) -> bool:
        if self._session is None:
            return False
        return self.session_manager.is_session_timed_out(self._session, elapsed_ms)

    def update_session_time(self, elapsed_ms: int) -> None:
        if self._session is not None:
            self._session = self.session_manager.update_session_time(self._session, elapsed_ms)

    def handle_timeout(self, elapsed_ms: int | None = None) -> SessionSummary:
        """Close a timed-out session as completed and record its summary."""
        self._session = self.session_manager.handle_timeout(self._require_session(), elapsed_ms)
        return self._record_summary(self._session)

    def _record_summary(self, session: QuizSession) -> SessionSummary:
        summary = self.session_manager.get_session_summary(session)
        if session.session_id not in self._history_saved:
            self._history_saved.add(session.session_id)
            self._persist("save session to history", self.storage.save_session_to_history, summary)
        return summary

    # -------------------------------------------------------------------------
    # Progress and proficiency
    # -------------------------------------------------------------------------

    def _concept_progress_for(
        self,
        progress: UserProgress,
        cam_topic: CAMTopic | None,
        concept_id: str,
    ) -> ConceptProgress:
        allowed = [Difficulty.FAMILIARITY]
        if cam_topic is not None:
            for concept in cam_topic.concepts:
                if concept.concept_id == concept_id and concept.difficulty_levels:
                    allowed = concept.difficulty_levels
        return self.session_manager.tracker.get_or_create_concept_progress(
            progress.concepts.get(concept_id), concept_id, allowed
        )

    def _update_user_progress(
        self,
        progress: UserProgress,
        concept_progress: ConceptProgress,
        cam_topic: CAMTopic | None,
    ) -> UserProgress:
        concepts = {**progress.concepts, concept_progress.concept_id: concept_progress}
        topics = dict(progress.topics)
        if cam_topic is not None:
            topics[cam_topic.topic_id] = create_topic_progress(
                cam_topic.topic_id, concepts, cam_topic.concepts
            )
        return replace(
            progress,
            concepts=concepts,
            topics=topics,
            total_xp=sum(c.xp_earned for c in concepts.values()),
            updated_at=utc_now_iso(),
        )

    def get_topic_proficiency(self, topic_id: str) -> ProficiencyResult:
        cam_topic = self.get_cam_topic(topic_id)
        concepts = cam_topic.concepts if cam_topic else []
        return calculate_topic_proficiency(self.progress.concepts, concepts)

    def get_topic_progress(self, topic_id: str) -> TopicProgress | None:
        cam_topic = self.get_cam_topic(topic_id)
        if cam_topic is None:
            return None
        return create_topic_progress(topic_id, self.progress.concepts, cam_topic.concepts)

    # -------------------------------------------------------------------------
    # Data management
    # -------------------------------------------------------------------------

    def export_data(self, options: ExportOptions | None = None) -> dict[str, Any]:
        self.flush()
        return create_export(self.storage, self.user_id, options)

    def import_data(self, data: Any, overwrite: bool = True) -> ImportResult:
        self.flush()
        result = import_data(self.storage, data, overwrite=overwrite)
        if result.success and result.imported.get("progress"):
            self._progress = None
            self.initialize()
        return result

    def clear_all_data(self) -> bool:
        self.flush()
        cleared = self.storage.clear_all_data()
        if cleared:
            self._progress = create_empty_progress(self.user_id)
            self._history_saved.clear()
        return cleared

    def get_storage_stats(self) -> StorageStats:
        self.flush()
        return self.storage.get_storage_stats()
