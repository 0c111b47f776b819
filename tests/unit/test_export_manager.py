"""
Unit tests for progress export and import.
"""

from dataclasses import replace
from datetime import date

import pytest

from src.practice.export_manager import (
    EXPORT_VERSION,
    ExportOptions,
    create_export,
    export_to_json,
    generate_export_filename,
    import_data,
    merge_progress,
    validate_import_data,
)
from src.practice.types import Difficulty, SessionStatus, SessionSummary, TimeMode
from src.storage import LocalStorageAdapter, UserSettings, create_empty_progress


def make_summary(session_id):
    return SessionSummary(
        session_id=session_id,
        topic_id="numbers",
        topic_name="Numbers",
        time_mode=TimeMode.UNLIMITED,
        status=SessionStatus.COMPLETED,
        total_questions=1,
        questions_answered=1,
        questions_correct=1,
        questions_skipped=0,
        xp_earned=10,
        time_elapsed_ms=500,
        started_at=None,
        completed_at=None,
    )


@pytest.fixture
def store(tmp_path):
    return LocalStorageAdapter(data_dir=tmp_path / "source", default_user_id="learner")


@pytest.fixture
def populated(store, tracker):
    progress = create_empty_progress("learner")
    progress.concepts["c1"] = replace(
        tracker.create_concept_progress("c1", [Difficulty.FAMILIARITY]), xp_earned=40
    )
    progress.total_xp = 40
    store.save_progress(progress)
    store.save_session_to_history(make_summary("s1"))
    store.save_session_to_history(make_summary("s2"))
    store.save_settings(UserSettings(theme="dark"))
    return store


class TestExport:
    def test_full_export(self, populated):
        export = create_export(populated, "learner")

        assert export["export_version"] == EXPORT_VERSION
        assert export["exported_at"]
        assert export["data"]["progress"]["user_id"] == "learner"
        assert [s["session_id"] for s in export["data"]["sessions"]] == ["s2", "s1"]
        assert export["data"]["settings"] == {"theme": "dark"}
        assert export["metadata"] == {"concepts_count": 1, "total_xp": 40, "sessions_count": 2}

    def test_sections_can_be_excluded(self, populated):
        export = create_export(
            populated, "learner", ExportOptions(include_sessions=False, include_settings=False)
        )
        assert set(export["data"]) == {"progress"}
        assert export["metadata"]["sessions_count"] == 0

    def test_json_and_filename(self, populated):
        assert '"export_version"' in export_to_json(create_export(populated, "learner"))
        assert generate_export_filename(date(2026, 10, 18)) == "practice-progress-2026-10-18.json"


class TestValidation:
    @pytest.mark.parametrize(
        "data,message",
        [
            ("nope", "Invalid data format: expected object"),
            ({"data": {}}, "Missing export_version field"),
            ({"export_version": "1.0.0"}, "Missing data field"),
            ({"export_version": "1.0.0", "data": {"progress": {}}}, "Missing user_id in progress data"),
            (
                {"export_version": "1.0.0", "data": {"progress": {"user_id": "u", "concepts": []}}},
                "Invalid concepts data in progress",
            ),
            ({"export_version": "1.0.0", "data": {"sessions": {}}}, "Invalid sessions data"),
        ],
    )
    def test_errors(self, data, message):
        assert message in validate_import_data(data)

    def test_valid_export(self, populated):
        assert validate_import_data(create_export(populated, "learner")) == []


class TestImport:
    @pytest.fixture
    def target(self, tmp_path):
        return LocalStorageAdapter(data_dir=tmp_path / "target", default_user_id="learner")

    def test_import_everything(self, populated, target):
        result = import_data(target, create_export(populated, "learner"))

        assert result.success
        assert result.imported == {"progress": True, "sessions": True, "settings": True}
        assert target.load_progress("learner").total_xp == 40
        assert [s.session_id for s in target.load_session_history()] == ["s2", "s1"]
        assert target.load_settings().theme == "dark"

    def test_without_overwrite_only_sessions_added(self, populated, target):
        result = import_data(target, create_export(populated, "learner"), overwrite=False)

        assert result.success
        assert "progress" not in result.imported
        assert target.load_progress("learner").total_xp == 0
        assert len(target.load_session_history()) == 2

    def test_invalid_data_rejected(self, target):
        result = import_data(target, {"data": {}})
        assert not result.success
        assert result.errors

    def test_malformed_session_reported(self, target):
        data = {"export_version": "1.0.0", "data": {"sessions": [{"topic_id": "x"}]}}
        result = import_data(target, data)
        assert not result.success
        assert result.errors


class TestMerge:
    def test_keeps_concept_with_more_xp(self, tracker):
        def concept(concept_id, xp):
            return replace(
                tracker.create_concept_progress(concept_id, [Difficulty.FAMILIARITY]), xp_earned=xp
            )

        existing = create_empty_progress("learner")
        existing.concepts = {"c1": concept("c1", 50), "c2": concept("c2", 10)}
        imported = create_empty_progress("learner")
        imported.concepts = {"c1": concept("c1", 20), "c2": concept("c2", 30), "c3": concept("c3", 5)}

        merged = merge_progress(existing, imported)

        assert {k: v.xp_earned for k, v in merged.concepts.items()} == {"c1": 50, "c2": 30, "c3": 5}
        assert merged.total_xp == 85
