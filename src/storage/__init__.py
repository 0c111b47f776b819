"""
Storage adapters for practice progress and session history.

- LocalStorageAdapter: JSON files on disk (offline, CLI default)
- APIStorageAdapter: backend HTTP API (authenticated learners)
"""

from __future__ import annotations

from config import Settings, get_settings

from .api_store import APIStorageAdapter
from .base import (
    CAMReference,
    StorageAdapter,
    StorageStats,
    UserProgress,
    UserSettings,
    create_empty_progress,
)
from .local_store import LocalStorageAdapter


def get_storage_adapter(settings: Settings | None = None) -> StorageAdapter:
    """Build the adapter selected by ``storage_backend``."""
    settings = settings or get_settings()
    cam_reference = CAMReference(
        board=settings.board,
        class_level=settings.class_level,
        subject=settings.subject,
    )

    if settings.storage_backend == "api":
        return APIStorageAdapter(
            user_id=settings.user_id,
            base_url=settings.api_base_url,
            access_token=settings.api_token,
            board=settings.board,
            class_level=settings.class_level,
            subject=settings.subject,
            timeout_seconds=settings.api_timeout_seconds,
        )

    return LocalStorageAdapter(
        data_dir=settings.data_dir,
        default_user_id=settings.user_id,
        cam_reference=cam_reference,
        history_limit=settings.session_history_limit,
    )


__all__ = [
    "APIStorageAdapter",
    "CAMReference",
    "LocalStorageAdapter",
    "StorageAdapter",
    "StorageStats",
    "UserProgress",
    "UserSettings",
    "create_empty_progress",
    "get_storage_adapter",
]
