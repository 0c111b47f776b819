"""
Storage adapter contract and the records it persists.

Two realizations exist: LocalStorageAdapter (JSON files, offline) and
APIStorageAdapter (backend HTTP API). Both return False/empty values on
failure instead of raising, so callers can treat persistence as
best-effort.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

from src.practice.types import ConceptProgress, SessionSummary, TopicProgress, utc_now_iso

DATA_VERSION = "1.0.0"


@dataclass
class CAMReference:
    """Which curriculum a progress record belongs to."""
    cam_version: str = "1.0.0"
    board: str = "icse"
    class_level: int = 5
    subject: str = "mathematics"


@dataclass
class UserProgress:
    """Everything persisted about one learner's progress."""

    user_id: str
    cam_reference: CAMReference = field(default_factory=CAMReference)
    concepts: dict[str, ConceptProgress] = field(default_factory=dict)
    topics: dict[str, TopicProgress] = field(default_factory=dict)
    total_xp: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    version: str = DATA_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "user_id": self.user_id,
            "cam_reference": asdict(self.cam_reference),
            "concepts": {key: value.to_dict() for key, value in self.concepts.items()},
            "topics": {key: value.to_dict() for key, value in self.topics.items()},
            "total_xp": self.total_xp,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserProgress:
        """Create from dictionary."""
        return cls(
            user_id=data["user_id"],
            cam_reference=CAMReference(**data.get("cam_reference", {})),
            concepts={
                key: ConceptProgress.from_dict(value)
                for key, value in (data.get("concepts") or {}).items()
            },
            topics={
                key: TopicProgress.from_dict(value)
                for key, value in (data.get("topics") or {}).items()
            },
            total_xp=data.get("total_xp", 0),
            created_at=data.get("created_at") or utc_now_iso(),
            updated_at=data.get("updated_at") or utc_now_iso(),
            version=data.get("version", DATA_VERSION),
        )


@dataclass
class UserSettings:
    theme: str | None = None  # 'light', 'dark', 'system'
    sound_enabled: bool | None = None
    preferred_time_mode: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserSettings:
        return cls(
            theme=data.get("theme"),
            sound_enabled=data.get("sound_enabled"),
            preferred_time_mode=data.get("preferred_time_mode"),
        )


@dataclass
class StorageStats:
    has_progress: bool
    concepts_tracked: int
    topics_tracked: int
    total_xp: int
    sessions_count: int
    storage_available: bool


def create_empty_progress(
    user_id: str,
    cam_reference: CAMReference | None = None,
) -> UserProgress:
    """A fresh progress record with no concepts or XP."""
    return UserProgress(user_id=user_id, cam_reference=cam_reference or CAMReference())


def stats_from(
    progress: UserProgress | None,
    sessions_count: int,
    storage_available: bool,
) -> StorageStats:
    return StorageStats(
        has_progress=bool(progress and progress.concepts),
        concepts_tracked=len(progress.concepts) if progress else 0,
        topics_tracked=len(progress.topics) if progress else 0,
        total_xp=progress.total_xp if progress else 0,
        sessions_count=sessions_count,
        storage_available=storage_available,
    )


class StorageAdapter(ABC):
    """Persistence contract shared by the local and networked adapters."""

    @abstractmethod
    def load_progress(self, user_id: str) -> UserProgress | None:
        ...

    @abstractmethod
    def save_progress(self, progress: UserProgress) -> bool:
        ...

    @abstractmethod
    def load_session_history(self) -> list[SessionSummary]:
        """Session summaries, newest first."""
        ...

    @abstractmethod
    def save_session_to_history(self, summary: SessionSummary) -> bool:
        ...

    @abstractmethod
    def load_settings(self) -> UserSettings | None:
        ...

    @abstractmethod
    def save_settings(self, settings: UserSettings) -> bool:
        ...

    @abstractmethod
    def clear_all_data(self) -> bool:
        ...

    @abstractmethod
    def get_storage_stats(self) -> StorageStats:
        ...
