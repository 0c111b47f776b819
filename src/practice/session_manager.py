"""
Session Manager for practice sessions.

Owns the session state machine:

    not_started -> in_progress <-> paused -> completed | abandoned

Every operation returns a new QuizSession; the session passed in is never
modified. Illegal transitions raise SessionStateError. Completed and
abandoned sessions are final.
"""
from __future__ import annotations

import random
import string
import time
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from loguru import logger

from .answers import check_answer
from .answers.match import expected_pairs
from .errors import QuestionBankNotFoundError, SessionStateError, TopicNotFoundError
from .mastery_tracker import AttemptInput, AttemptResult, MasteryTracker
from .question_selector import QuestionSelector
from .recency import QuestionHistoryMap
from .types import (
    TERMINAL_STATUSES,
    TIME_LIMITS,
    CAMTopic,
    ConceptProgress,
    DifficultyBreakdown,
    EnrichedQuestion,
    QuestionBank,
    QuestionResult,
    QuestionStatus,
    QuestionType,
    QuizSession,
    SelectionStrategy,
    SessionAnswer,
    SessionConfig,
    SessionProgress,
    SessionStatus,
    SessionSummary,
    TimeMode,
    safe_pct,
    utc_now_iso,
)


SESSION_VERSION = "1.0.0"

_BASE36 = string.digits + string.ascii_lowercase


@dataclass
class CreateSessionParams:
    """Everything needed to build a session for one topic."""
    topic_id: str
    question_bank: QuestionBank | None
    cam_topic: CAMTopic | None
    concept_progresses: Mapping[str, ConceptProgress] = field(default_factory=dict)
    time_mode: TimeMode = TimeMode.UNLIMITED
    question_count: int | None = None
    strategy: SelectionStrategy | None = None
    history_map: QuestionHistoryMap | None = None


@dataclass
class SubmitResult:
    """Outcome of submitting an answer."""
    session: QuizSession
    answer: SessionAnswer
    is_correct: bool
    xp_earned: int
    correct_answer: Any
    explanation: str | None
    concept_progress: ConceptProgress | None
    mastery_result: AttemptResult | None
    is_session_complete: bool


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_session_id(rng: random.Random | None = None) -> str:
    """Unique-enough session id: ``sess_<base36 ms timestamp>_<7 random chars>``."""
    rng = rng or random.Random()
    suffix = "".join(rng.choice(_BASE36) for _ in range(7))
    return f"sess_{to_base36(int(time.time() * 1000))}_{suffix}"


def get_time_remaining(time_limit_ms: int | None, elapsed_ms: int) -> int | None:
    """Remaining time floored at 0, or None for unlimited sessions."""
    if time_limit_ms is None:
        return None
    return max(0, time_limit_ms - elapsed_ms)


def correct_answer_for(question: EnrichedQuestion) -> Any:
    """The answer to reveal after submission."""
    if question.question_type == QuestionType.MATCH:
        return {pair.left: pair.right for pair in expected_pairs(question)}
    return question.correct_answer


def _next_pending_index(questions: list[EnrichedQuestion], after: int) -> int | None:
    for index in range(after + 1, len(questions)):
        if questions[index].status == QuestionStatus.PENDING:
            return index
    return None


def _require_status(session: QuizSession, expected: SessionStatus, action: str) -> None:
    if session.status != expected:
        raise SessionStateError(f"Cannot {action} session in status: {session.status.value}")


class SessionManager:
    """
    Creates sessions and drives them through their lifecycle.

    The manager itself holds no session state; hosts keep the latest
    QuizSession returned by each call and must not call two transitions on
    the same session concurrently.
    """

    def __init__(
        self,
        selector: Optional[QuestionSelector] = None,
        tracker: Optional[MasteryTracker] = None,
        rng: Optional[random.Random] = None,
    ):
        self.rng = rng or random.Random()
        self.tracker = tracker or MasteryTracker()
        self.selector = selector or QuestionSelector(tracker=self.tracker, rng=self.rng)

    # -------------------------------------------------------------------------
    # Creation and transitions
    # -------------------------------------------------------------------------

    def create_session(self, params: CreateSessionParams) -> QuizSession:
        """
        Create a not-started session with its question queue fixed.

        Raises:
            QuestionBankNotFoundError: No question bank, or an empty one
            TopicNotFoundError: The CAM topic is missing or does not match
        """
        if params.question_bank is None or not params.question_bank.questions:
            raise QuestionBankNotFoundError(f"No question bank for topic: {params.topic_id}")
        if params.cam_topic is None or params.cam_topic.topic_id != params.topic_id:
            raise TopicNotFoundError(f"Topic not found in CAM: {params.topic_id}")

        questions = self.selector.select_questions(
            params.question_bank.questions,
            params.cam_topic,
            params.concept_progresses,
            count=params.question_count,
            strategy=params.strategy,
            history_map=params.history_map,
            rng=self.rng,
        )

        time_limit_ms = TIME_LIMITS[params.time_mode]
        session = QuizSession(
            session_id=generate_session_id(self.rng),
            status=SessionStatus.NOT_STARTED,
            config=SessionConfig(
                time_mode=params.time_mode,
                time_limit_ms=time_limit_ms,
                topic_id=params.cam_topic.topic_id,
                topic_name=params.cam_topic.topic_name,
                question_count=len(questions),
            ),
            progress=SessionProgress(time_remaining_ms=time_limit_ms),
            questions=questions,
            current_question=questions[0] if questions else None,
            version=SESSION_VERSION,
        )

        logger.info(
            f"Created session {session.session_id} for {params.topic_id}: "
            f"{len(questions)} questions, {params.time_mode.value}"
        )
        return session

    def start_session(self, session: QuizSession) -> QuizSession:
        _require_status(session, SessionStatus.NOT_STARTED, "start")
        logger.debug(f"Session {session.session_id} started")
        return replace(session, status=SessionStatus.IN_PROGRESS, started_at=utc_now_iso())

    def pause_session(self, session: QuizSession, elapsed_ms: int | None = None) -> QuizSession:
        """Pause an in-progress session, snapshotting the host's elapsed time."""
        _require_status(session, SessionStatus.IN_PROGRESS, "pause")
        progress = session.progress
        if elapsed_ms is not None:
            progress = self._timed_progress(session, elapsed_ms)
        return replace(
            session,
            status=SessionStatus.PAUSED,
            paused_at=utc_now_iso(),
            progress=progress,
        )

    def resume_session(self, session: QuizSession) -> QuizSession:
        _require_status(session, SessionStatus.PAUSED, "resume")
        return replace(session, status=SessionStatus.IN_PROGRESS, paused_at=None)

    def end_session(self, session: QuizSession, completed: bool = True) -> QuizSession:
        """
        Force a session into a terminal state.

        Legal from any non-terminal state. Ending an already finished session
        returns it unchanged.
        """
        if session.status in TERMINAL_STATUSES:
            return session

        status = SessionStatus.COMPLETED if completed else SessionStatus.ABANDONED
        logger.info(f"Session {session.session_id} ended: {status.value}")
        return replace(session, status=status, completed_at=utc_now_iso())

    def submit_answer(
        self,
        session: QuizSession,
        user_answer: Any,
        time_taken_ms: int | None = None,
        concept_progress: ConceptProgress | None = None,
    ) -> SubmitResult:
        """
        Judge the current question's answer and advance the session.

        Args:
            session: An in-progress session with a current question
            user_answer: The learner's answer, any shape
            time_taken_ms: Time spent on this question
            concept_progress: Progress on the question's concept to update

        Returns:
            SubmitResult with the new session and the updated concept progress
        """
        _require_status(session, SessionStatus.IN_PROGRESS, "submit answer in")
        question = session.current_question
        if question is None:
            raise SessionStateError("No current question to answer")

        now = utc_now_iso()
        is_correct = check_answer(question, user_answer)
        xp_earned = self.tracker.xp_for(question.difficulty) if is_correct else 0

        mastery_result: AttemptResult | None = None
        updated_progress = concept_progress
        if concept_progress is not None:
            mastery_result = self.tracker.record_attempt(
                concept_progress,
                AttemptInput(
                    question_id=question.question_id,
                    difficulty=question.difficulty,
                    is_correct=is_correct,
                    time_taken_ms=time_taken_ms,
                ),
            )
            updated_progress = mastery_result.progress

        answer = SessionAnswer(
            question_id=question.question_id,
            concept_id=question.concept_id,
            difficulty=question.difficulty,
            user_answer=user_answer,
            is_correct=is_correct,
            xp_earned=xp_earned,
            time_taken_ms=time_taken_ms,
            answered_at=now,
        )

        updated = self._advance(session, QuestionStatus.ANSWERED, now)
        updated = replace(
            updated,
            answers=[*session.answers, answer],
            progress=replace(
                updated.progress,
                questions_answered=session.progress.questions_answered + 1,
                questions_correct=session.progress.questions_correct + (1 if is_correct else 0),
                xp_earned=session.progress.xp_earned + xp_earned,
            ),
        )

        logger.debug(
            f"Session {session.session_id}: {question.question_id} "
            f"{'correct' if is_correct else 'incorrect'} (+{xp_earned} XP)"
        )

        return SubmitResult(
            session=updated,
            answer=answer,
            is_correct=is_correct,
            xp_earned=xp_earned,
            correct_answer=correct_answer_for(question),
            explanation=question.explanation,
            concept_progress=updated_progress,
            mastery_result=mastery_result,
            is_session_complete=updated.status == SessionStatus.COMPLETED,
        )

    def skip_question(self, session: QuizSession) -> QuizSession:
        """Mark the current question skipped and move on; no XP, no mastery update."""
        _require_status(session, SessionStatus.IN_PROGRESS, "skip question in")
        if session.current_question is None:
            raise SessionStateError("No current question to skip")
        return self._advance(session, QuestionStatus.SKIPPED, utc_now_iso())

    # -------------------------------------------------------------------------
    # Timing
    # -------------------------------------------------------------------------

    def update_session_time(self, session: QuizSession, elapsed_ms: int) -> QuizSession:
        """Record the host's elapsed time. Idempotent; finished sessions are left alone."""
        if session.status in TERMINAL_STATUSES:
            return session
        return replace(session, progress=self._timed_progress(session, elapsed_ms))

    def is_session_timed_out(self, session: QuizSession, elapsed_ms: int) -> bool:
        limit = session.config.time_limit_ms
        if limit is None:
            return False
        return elapsed_ms >= limit

    def handle_timeout(self, session: QuizSession, elapsed_ms: int | None = None) -> QuizSession:
        """Close a timed-out session as completed with the clock at its limit."""
        limit = session.config.time_limit_ms
        elapsed = elapsed_ms if elapsed_ms is not None else (limit or session.progress.time_elapsed_ms)
        logger.info(f"Session {session.session_id} timed out")
        return self.end_session(self.update_session_time(session, elapsed), completed=True)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_current_question(self, session: QuizSession) -> EnrichedQuestion | None:
        return session.current_question

    def get_session_accuracy(self, session: QuizSession) -> int:
        """Percentage of answered questions that were correct."""
        return safe_pct(session.progress.questions_correct, session.progress.questions_answered)

    def get_average_time_per_question(self, session: QuizSession) -> int:
        times = [a.time_taken_ms for a in session.answers if a.time_taken_ms is not None]
        if not times:
            return 0
        return round(sum(times) / len(times))

    def get_session_summary(self, session: QuizSession) -> SessionSummary:
        """Read-only report of a session; the form stored in session history."""
        by_difficulty: dict[str, DifficultyBreakdown] = defaultdict(DifficultyBreakdown)
        for answer in session.answers:
            breakdown = by_difficulty[answer.difficulty.value]
            breakdown.answered += 1
            if answer.is_correct:
                breakdown.correct += 1

        return SessionSummary(
            session_id=session.session_id,
            topic_id=session.config.topic_id,
            topic_name=session.config.topic_name,
            time_mode=session.config.time_mode,
            status=session.status,
            total_questions=len(session.questions),
            questions_answered=len(session.answers),
            questions_correct=session.progress.questions_correct,
            questions_skipped=sum(
                1 for q in session.questions if q.status == QuestionStatus.SKIPPED
            ),
            xp_earned=session.progress.xp_earned,
            time_elapsed_ms=session.progress.time_elapsed_ms,
            started_at=session.started_at,
            completed_at=session.completed_at,
            by_difficulty=dict(by_difficulty),
            question_results=[
                QuestionResult(question_id=a.question_id, is_correct=a.is_correct)
                for a in session.answers
            ],
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _timed_progress(self, session: QuizSession, elapsed_ms: int) -> SessionProgress:
        return replace(
            session.progress,
            time_elapsed_ms=elapsed_ms,
            time_remaining_ms=get_time_remaining(session.config.time_limit_ms, elapsed_ms),
        )

    def _advance(self, session: QuizSession, status: QuestionStatus, now: str) -> QuizSession:
        """Close the current question with ``status`` and move to the next pending one."""
        index = session.progress.current_question_index
        questions = list(session.questions)
        questions[index] = replace(questions[index], status=status)

        next_index = _next_pending_index(questions, index)
        if next_index is None:
            logger.info(f"Session {session.session_id} completed")
            return replace(
                session,
                status=SessionStatus.COMPLETED,
                questions=questions,
                current_question=None,
                completed_at=now,
            )

        return replace(
            session,
            questions=questions,
            current_question=questions[next_index],
            progress=replace(session.progress, current_question_index=next_index),
        )
