"""
Configuration settings for the adaptive practice engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every value can be overridden with an environment variable of the same name
prefixed with ``PRACTICE_`` (e.g. ``PRACTICE_MASTERY_WINDOW_SIZE=6``).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PRACTICE_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Mastery
    # ========================================
    mastery_window_size: int = Field(
        default=5,
        ge=1,
        description="Number of recent attempts kept per concept difficulty",
    )
    mastery_required_correct: int = Field(
        default=4,
        ge=1,
        description="Correct answers within the window needed to master a difficulty",
    )
    xp_familiarity: int = Field(
        default=10,
        ge=0,
        description="XP awarded for a correct familiarity question",
    )
    xp_application: int = Field(
        default=20,
        ge=0,
        description="XP awarded for a correct application question",
    )
    xp_exam_style: int = Field(
        default=30,
        ge=0,
        description="XP awarded for a correct exam-style question",
    )

    # ========================================
    # Answer Checking
    # ========================================
    typo_tolerance_min_length: int = Field(
        default=5,
        ge=0,
        description="Fill-blank answers longer than this may contain a typo",
    )
    typo_tolerance_max_distance: int = Field(
        default=1,
        ge=0,
        description="Maximum Levenshtein distance accepted as a typo",
    )

    # ========================================
    # Question Selection
    # ========================================
    default_strategy: Literal["adaptive", "sequential", "random", "review"] = Field(
        default="adaptive",
        description="Selection strategy used when none is requested",
    )
    priority_jitter: float = Field(
        default=10.0,
        ge=0.0,
        description="Upper bound of the random tie-breaking jitter added to priority scores",
    )

    # ========================================
    # Storage
    # ========================================
    storage_backend: Literal["local", "api"] = Field(
        default="local",
        description="Where progress and session history are persisted",
    )
    data_dir: Path = Field(
        default=Path.home() / ".practice",
        description="Directory for local JSON storage",
    )
    session_history_limit: int = Field(
        default=100,
        ge=1,
        description="Maximum number of session summaries kept in history",
    )
    user_id: str = Field(
        default="local-user",
        description="User id used by the CLI when no account is configured",
    )
    api_base_url: str = Field(
        default="http://localhost:3001",
        description="Backend API base URL for the networked storage adapter",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token for the backend API",
    )
    api_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for backend API requests",
    )
    board: str = Field(default="icse", description="Curriculum board")
    class_level: int = Field(default=5, description="Curriculum class level")
    subject: str = Field(default="mathematics", description="Curriculum subject")

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated by loguru)",
    )

    def xp_table(self) -> dict[str, int]:
        """XP per correct answer keyed by difficulty value."""
        return {
            "familiarity": self.xp_familiarity,
            "application": self.xp_application,
            "exam_style": self.xp_exam_style,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
