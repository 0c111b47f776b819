"""
Local JSON storage for practice progress.

Used offline and by the CLI. Data lives in three JSON files under the data
directory (default ~/.practice/):

- progress.json  - UserProgress for the current learner
- sessions.json  - session summaries, newest first
- settings.json  - UserSettings
"""

from __future__ import annotations

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from src.practice.types import SessionSummary, utc_now_iso

from .base import (
    CAMReference,
    StorageAdapter,
    StorageStats,
    UserProgress,
    UserSettings,
    create_empty_progress,
    stats_from,
)

PROGRESS_FILE = "progress.json"
SESSIONS_FILE = "sessions.json"
SETTINGS_FILE = "settings.json"

DEFAULT_HISTORY_LIMIT = 100


class LocalStorageAdapter(StorageAdapter):
    """
    Persists progress, history and settings as JSON files.

    Unreadable or corrupt files load as empty data (and are logged);
    failed writes return False.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        default_user_id: str = "anonymous",
        cam_reference: Optional[CAMReference] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.data_dir = Path(data_dir) if data_dir else Path.home() / ".practice"
        self.default_user_id = default_user_id
        self.cam_reference = cam_reference
        self.history_limit = history_limit
        self.data_dir.mkdir(parents=True, exist_ok=True)

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _read(self, name: str) -> Any | None:
        filepath = self.data_dir / name
        if not filepath.exists():
            return None
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {filepath}: {e}")
            return None

    def _write(self, name: str, data: Any) -> bool:
        filepath = self.data_dir / name
        tmp_path = filepath.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, filepath)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Could not write {filepath}: {e}")
            return False

    def _remove(self, name: str) -> bool:
        filepath = self.data_dir / name
        try:
            filepath.unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.error(f"Could not remove {filepath}: {e}")
            return False

    # -------------------------------------------------------------------------
    # StorageAdapter
    # -------------------------------------------------------------------------

    def load_progress(self, user_id: str) -> UserProgress | None:
        """Stored progress, or empty progress if none exists or it belongs to another user."""
        user_id = user_id or self.default_user_id
        data = self._read(PROGRESS_FILE)
        if not data:
            return create_empty_progress(user_id, self.cam_reference)

        try:
            progress = UserProgress.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed progress file: {e}")
            return create_empty_progress(user_id, self.cam_reference)

        if progress.user_id != user_id:
            logger.debug(f"Stored progress belongs to {progress.user_id}; starting fresh for {user_id}")
            return create_empty_progress(user_id, self.cam_reference)

        return progress

    def save_progress(self, progress: UserProgress) -> bool:
        stamped = replace(progress, updated_at=utc_now_iso())
        return self._write(PROGRESS_FILE, stamped.to_dict())

    def load_session_history(self) -> list[SessionSummary]:
        data = self._read(SESSIONS_FILE)
        if not isinstance(data, list):
            return []

        sessions = []
        for entry in data:
            try:
                sessions.append(SessionSummary.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed session summary in history")
        return sessions

    def save_session_to_history(self, summary: SessionSummary) -> bool:
        history = [summary, *self.load_session_history()][: self.history_limit]
        return self._write(SESSIONS_FILE, [s.to_dict() for s in history])

    def load_settings(self) -> UserSettings | None:
        data = self._read(SETTINGS_FILE)
        if not isinstance(data, dict):
            return None
        return UserSettings.from_dict(data)

    def save_settings(self, settings: UserSettings) -> bool:
        return self._write(SETTINGS_FILE, settings.to_dict())

    def clear_all_data(self) -> bool:
        results = [self._remove(name) for name in (PROGRESS_FILE, SESSIONS_FILE, SETTINGS_FILE)]
        logger.info(f"Cleared local practice data in {self.data_dir}")
        return all(results)

    def get_storage_stats(self) -> StorageStats:
        return stats_from(
            self.load_progress(self.default_user_id),
            sessions_count=len(self.load_session_history()),
            storage_available=os.access(self.data_dir, os.W_OK),
        )
