"""
Unit tests for SessionManager.

Tests:
- Session creation and its preconditions
- State machine transitions (and illegal ones)
- Answer submission, skipping and completion
- Timing and summaries
"""

import re

import pytest

from src.practice.errors import QuestionBankNotFoundError, SessionStateError, TopicNotFoundError
from src.practice.session_manager import (
    CreateSessionParams,
    generate_session_id,
    get_time_remaining,
    to_base36,
)
from src.practice.types import (
    QuestionBank,
    QuestionStatus,
    QuestionType,
    SelectionStrategy,
    SessionStatus,
    TimeMode,
)


def canonical_answer(question):
    if question.question_type == QuestionType.MATCH:
        return {pair.left: pair.right for pair in question.match_pairs}
    return question.correct_answer


@pytest.fixture
def params(question_bank, cam_topic):
    return CreateSessionParams(
        topic_id="numbers",
        question_bank=question_bank,
        cam_topic=cam_topic,
        strategy=SelectionStrategy.SEQUENTIAL,
    )


@pytest.fixture
def started(session_manager, params):
    return session_manager.start_session(session_manager.create_session(params))


class TestCreateSession:
    def test_initial_state(self, session_manager, params):
        session = session_manager.create_session(params)

        assert session.status == SessionStatus.NOT_STARTED
        assert session.progress.questions_answered == 0
        assert session.progress.xp_earned == 0
        assert session.config.question_count == 6
        assert session.config.topic_name == "Numbers"
        assert session.current_question.question_id == "pv-f1"
        assert session.started_at is None

    @pytest.mark.parametrize(
        "time_mode,limit",
        [
            (TimeMode.UNLIMITED, None),
            (TimeMode.TEN_MIN, 600000),
            (TimeMode.FIVE_MIN, 300000),
            (TimeMode.THREE_MIN, 180000),
        ],
    )
    def test_time_limits(self, session_manager, params, time_mode, limit):
        params.time_mode = time_mode
        session = session_manager.create_session(params)
        assert session.config.time_limit_ms == limit
        assert session.progress.time_remaining_ms == limit

    def test_question_count(self, session_manager, params):
        params.question_count = 2
        assert len(session_manager.create_session(params).questions) == 2

    def test_missing_bank(self, session_manager, params):
        params.question_bank = None
        with pytest.raises(QuestionBankNotFoundError):
            session_manager.create_session(params)

    def test_empty_bank(self, session_manager, params):
        params.question_bank = QuestionBank(topic_id="numbers")
        with pytest.raises(QuestionBankNotFoundError):
            session_manager.create_session(params)

    def test_missing_topic(self, session_manager, params):
        params.cam_topic = None
        with pytest.raises(TopicNotFoundError):
            session_manager.create_session(params)

    def test_topic_mismatch(self, session_manager, params):
        params.topic_id = "fractions"
        with pytest.raises(TopicNotFoundError):
            session_manager.create_session(params)

    def test_no_eligible_questions_gives_empty_session(self, session_manager, params, question_factory):
        params.question_bank = QuestionBank(
            topic_id="numbers", questions=[question_factory("x", concept_id="fractions")]
        )
        session = session_manager.create_session(params)
        assert session.questions == []
        assert session.current_question is None


class TestLifecycle:
    def test_start(self, started):
        assert started.status == SessionStatus.IN_PROGRESS
        assert started.started_at is not None

    def test_start_twice_fails(self, session_manager, started):
        with pytest.raises(SessionStateError):
            session_manager.start_session(started)

    def test_answer_every_question_completes(self, session_manager, started):
        session = started
        for _ in range(len(started.questions)):
            result = session_manager.submit_answer(session, canonical_answer(session.current_question))
            assert result.is_correct
            session = result.session

        assert session.status == SessionStatus.COMPLETED
        assert session.current_question is None
        assert session.progress.questions_answered == 6
        assert session.completed_at is not None
        assert result.is_session_complete
        with pytest.raises(SessionStateError):
            session_manager.start_session(session)

    def test_submit_requires_in_progress(self, session_manager, params):
        session = session_manager.create_session(params)
        with pytest.raises(SessionStateError):
            session_manager.submit_answer(session, "100")

    def test_transitions_do_not_modify_input(self, session_manager, started):
        session_manager.submit_answer(started, "100")
        assert started.progress.questions_answered == 0
        assert started.questions[0].status == QuestionStatus.PENDING
        assert started.answers == []

    def test_pause_and_resume(self, session_manager, started):
        paused = session_manager.pause_session(started, elapsed_ms=5000)
        assert paused.status == SessionStatus.PAUSED
        assert paused.paused_at is not None
        assert paused.progress.time_elapsed_ms == 5000

        resumed = session_manager.resume_session(paused)
        assert resumed.status == SessionStatus.IN_PROGRESS
        assert resumed.paused_at is None

    def test_illegal_pause_and_resume(self, session_manager, started):
        with pytest.raises(SessionStateError):
            session_manager.resume_session(started)
        paused = session_manager.pause_session(started)
        with pytest.raises(SessionStateError):
            session_manager.pause_session(paused)
        with pytest.raises(SessionStateError):
            session_manager.skip_question(paused)

    def test_end_session(self, session_manager, params, started):
        abandoned = session_manager.end_session(session_manager.create_session(params), completed=False)
        assert abandoned.status == SessionStatus.ABANDONED
        assert abandoned.completed_at is not None

        completed = session_manager.end_session(started, completed=True)
        assert completed.status == SessionStatus.COMPLETED
        # Terminal states are final
        assert session_manager.end_session(completed, completed=False) is completed

    def test_skip_in_terminal_state_fails(self, session_manager, started):
        ended = session_manager.end_session(started)
        with pytest.raises(SessionStateError):
            session_manager.skip_question(ended)


class TestSubmitAnswer:
    def test_correct_answer(self, session_manager, started):
        result = session_manager.submit_answer(started, "100", time_taken_ms=1200)

        assert result.is_correct
        assert result.xp_earned == 10
        assert result.session.progress.questions_correct == 1
        assert result.session.progress.xp_earned == 10
        assert result.session.questions[0].status == QuestionStatus.ANSWERED
        assert result.session.current_question.question_id == "pv-f2"
        assert result.answer.time_taken_ms == 1200

    def test_incorrect_answer(self, session_manager, started):
        result = session_manager.submit_answer(started, "10")
        assert not result.is_correct
        assert result.xp_earned == 0
        assert result.correct_answer == "100"
        assert result.session.progress.questions_answered == 1
        assert result.session.progress.questions_correct == 0

    def test_wrong_shape_is_incorrect(self, session_manager, started):
        assert session_manager.submit_answer(started, {"bad": "shape"}).is_correct is False

    def test_updates_concept_progress(self, session_manager, tracker, started, cam_topic):
        progress = tracker.create_concept_progress("place-value", cam_topic.concepts[0].difficulty_levels)
        result = session_manager.submit_answer(started, "100", concept_progress=progress)

        assert result.concept_progress.total_attempts == 1
        assert result.concept_progress.xp_earned == 10
        assert result.mastery_result is not None
        assert progress.total_attempts == 0

    def test_match_reveals_answer_map(self, session_manager, params, question_bank):
        params.strategy = SelectionStrategy.SEQUENTIAL
        session = session_manager.start_session(session_manager.create_session(params))
        for _ in range(4):
            session = session_manager.skip_question(session)
        assert session.current_question.question_id == "rd-f1"

        result = session_manager.submit_answer(session, {})
        assert result.correct_answer == {"ones": "1", "tens": "10"}


class TestSkip:
    def test_skip_only_remaining_question_completes(self, session_manager, params):
        params.question_count = 1
        session = session_manager.start_session(session_manager.create_session(params))

        skipped = session_manager.skip_question(session)

        assert skipped.status == SessionStatus.COMPLETED
        assert skipped.progress.questions_answered == 0
        assert skipped.questions[0].status == QuestionStatus.SKIPPED
        assert skipped.current_question is None

    def test_skip_advances_without_completing(self, session_manager, started):
        skipped = session_manager.skip_question(started)
        assert skipped.status == SessionStatus.IN_PROGRESS
        assert skipped.current_question.question_id == "pv-f2"
        assert skipped.progress.xp_earned == 0


class TestTiming:
    def test_unlimited_never_times_out(self, session_manager, started):
        assert session_manager.is_session_timed_out(started, 10**9) is False

    def test_times_out_exactly_at_limit(self, session_manager, params):
        params.time_mode = TimeMode.FIVE_MIN
        session = session_manager.create_session(params)
        assert session_manager.is_session_timed_out(session, 299999) is False
        assert session_manager.is_session_timed_out(session, 300000) is True

    def test_update_time_is_idempotent(self, session_manager, params):
        params.time_mode = TimeMode.THREE_MIN
        session = session_manager.start_session(session_manager.create_session(params))
        once = session_manager.update_session_time(session, 60000)
        twice = session_manager.update_session_time(once, 60000)
        assert once.progress == twice.progress
        assert twice.progress.time_remaining_ms == 120000

    def test_handle_timeout_completes(self, session_manager, params):
        params.time_mode = TimeMode.THREE_MIN
        session = session_manager.start_session(session_manager.create_session(params))
        timed_out = session_manager.handle_timeout(session, 181000)
        assert timed_out.status == SessionStatus.COMPLETED
        assert timed_out.progress.time_remaining_ms == 0

    def test_time_remaining_floor(self):
        assert get_time_remaining(None, 5000) is None
        assert get_time_remaining(1000, 5000) == 0
        assert get_time_remaining(10000, 4000) == 6000


class TestSummary:
    def test_summary_counts(self, session_manager, started):
        session = session_manager.submit_answer(started, "100", time_taken_ms=1000).session
        session = session_manager.submit_answer(session, "false", time_taken_ms=3000).session
        session = session_manager.skip_question(session)
        session = session_manager.submit_answer(session, ["1", "10", "100"], time_taken_ms=2000).session

        summary = session_manager.get_session_summary(session)

        assert summary.questions_answered == 3
        assert summary.questions_correct == 2
        assert summary.questions_skipped == 1
        assert summary.xp_earned == 40
        assert summary.by_difficulty["familiarity"].answered == 2
        assert summary.by_difficulty["familiarity"].correct == 1
        assert summary.by_difficulty["exam_style"].correct == 1
        assert [r.question_id for r in summary.question_results] == ["pv-f1", "pv-f2", "pv-e1"]
        assert session_manager.get_session_accuracy(session) == 67
        assert session_manager.get_average_time_per_question(session) == 2000

    def test_summary_round_trips(self, session_manager, started):
        session = session_manager.submit_answer(started, "100").session
        summary = session_manager.get_session_summary(session)
        assert type(summary).from_dict(summary.to_dict()) == summary


class TestSessionIds:
    def test_format(self, rng):
        assert re.fullmatch(r"sess_[0-9a-z]+_[0-9a-z]{7}", generate_session_id(rng))

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"
