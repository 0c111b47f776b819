"""
Export and import of a learner's practice data.

An export is a versioned JSON document holding progress, session history and
settings, so a learner can back up or move their data between devices.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from loguru import logger

from src.storage.base import StorageAdapter, UserProgress, UserSettings

from .types import SessionSummary, utc_now_iso

EXPORT_VERSION = "1.0.0"
EXPORT_FILENAME_PREFIX = "practice-progress"


@dataclass
class ExportOptions:
    include_progress: bool = True
    include_sessions: bool = True
    include_settings: bool = True


@dataclass
class ImportResult:
    success: bool
    imported: dict[str, bool] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def create_export(
    adapter: StorageAdapter,
    user_id: str,
    options: ExportOptions | None = None,
) -> dict[str, Any]:
    """
    Collect stored data into an export document.

    Args:
        adapter: Storage to read from
        user_id: Learner whose progress is exported
        options: Which sections to include (all by default)

    Returns:
        JSON-serializable export document
    """
    options = options or ExportOptions()
    data: dict[str, Any] = {}
    metadata: dict[str, Any] = {"concepts_count": 0, "total_xp": 0, "sessions_count": 0}

    if options.include_progress:
        progress = adapter.load_progress(user_id)
        if progress is not None:
            data["progress"] = progress.to_dict()
            metadata["concepts_count"] = len(progress.concepts)
            metadata["total_xp"] = progress.total_xp

    if options.include_sessions:
        sessions = adapter.load_session_history()
        data["sessions"] = [s.to_dict() for s in sessions]
        metadata["sessions_count"] = len(sessions)

    if options.include_settings:
        settings = adapter.load_settings()
        if settings is not None:
            data["settings"] = settings.to_dict()

    return {
        "export_version": EXPORT_VERSION,
        "exported_at": utc_now_iso(),
        "data": data,
        "metadata": metadata,
    }


def export_to_json(export: dict[str, Any]) -> str:
    return json.dumps(export, indent=2)


def generate_export_filename(on: date | None = None) -> str:
    """e.g. ``practice-progress-2026-10-18.json``."""
    on = on or date.today()
    return f"{EXPORT_FILENAME_PREFIX}-{on.isoformat()}.json"


def validate_import_data(data: Any) -> list[str]:
    """Structural problems with an export document; empty when valid."""
    if not isinstance(data, dict):
        return ["Invalid data format: expected object"]

    errors = []
    if not data.get("export_version"):
        errors.append("Missing export_version field")

    payload = data.get("data")
    if not isinstance(payload, dict):
        errors.append("Missing data field")
        return errors

    progress = payload.get("progress")
    if progress is not None:
        if not isinstance(progress, dict) or not progress.get("user_id"):
            errors.append("Missing user_id in progress data")
        elif not isinstance(progress.get("concepts", {}), dict):
            errors.append("Invalid concepts data in progress")

    sessions = payload.get("sessions")
    if sessions is not None and not isinstance(sessions, list):
        errors.append("Invalid sessions data")

    return errors


def import_data(
    adapter: StorageAdapter,
    data: Any,
    overwrite: bool = True,
) -> ImportResult:
    """
    Write an export document into storage.

    Progress and settings replace what is stored only when ``overwrite`` is
    set; sessions are always appended to history.
    """
    errors = validate_import_data(data)
    if errors:
        return ImportResult(success=False, errors=errors)

    payload = data["data"]
    imported: dict[str, bool] = {}

    try:
        if payload.get("progress") and overwrite:
            progress = UserProgress.from_dict(payload["progress"])
            imported["progress"] = adapter.save_progress(progress)

        if payload.get("sessions"):
            # History is newest first; append oldest first to keep that order
            for entry in reversed(payload["sessions"]):
                adapter.save_session_to_history(SessionSummary.from_dict(entry))
            imported["sessions"] = True

        if payload.get("settings") and overwrite:
            imported["settings"] = adapter.save_settings(UserSettings.from_dict(payload["settings"]))
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Import failed: {e}")
        return ImportResult(success=False, imported=imported, errors=[str(e)])

    logger.info(f"Imported practice data: {', '.join(k for k, v in imported.items() if v) or 'nothing'}")
    return ImportResult(success=True, imported=imported)


def merge_progress(existing: UserProgress, imported: UserProgress) -> UserProgress:
    """Combine two progress records, keeping whichever concept has more XP."""
    concepts = dict(existing.concepts)
    for concept_id, concept in imported.concepts.items():
        current = concepts.get(concept_id)
        if current is None or concept.xp_earned > current.xp_earned:
            concepts[concept_id] = concept

    return replace(
        existing,
        concepts=concepts,
        total_xp=sum(c.xp_earned for c in concepts.values()),
        updated_at=utc_now_iso(),
    )
