"""
Backend API storage for practice progress.

Syncs progress, session history and settings with the backend HTTP API for
authenticated learners. Requests never raise to the caller: failures are
logged and reported as False, empty history or None.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx
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


@dataclass
class APIResponse:
    """Outcome of one API call."""
    success: bool
    data: Any = None
    error: str | None = None


class APIStorageAdapter(StorageAdapter):
    """HTTP client for the practice backend's progress endpoints."""

    def __init__(
        self,
        user_id: str,
        base_url: str,
        access_token: Optional[str] = None,
        board: str = "icse",
        class_level: int = 5,
        subject: str = "mathematics",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize API adapter.

        Args:
            user_id: Learner id used when the API omits one
            base_url: Backend base URL
            access_token: Bearer token; requests short-circuit without one
            board: Curriculum board context
            class_level: Curriculum class context
            subject: Curriculum subject context
            timeout_seconds: Per-request timeout
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.user_id = user_id
        self.access_token = access_token
        self.board = board
        self.class_level = class_level
        self.subject = subject
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def set_access_token(self, token: str) -> None:
        self.access_token = token

    def set_context(
        self,
        board: str | None = None,
        class_level: int | None = None,
        subject: str | None = None,
    ) -> None:
        """Set the board/class/subject for future requests."""
        if board:
            self.board = board
        if class_level:
            self.class_level = class_level
        if subject:
            self.subject = subject

    @property
    def _context(self) -> dict[str, Any]:
        return {"board": self.board, "class_level": self.class_level, "subject": self.subject}

    @property
    def _query(self) -> dict[str, Any]:
        return {"board": self.board, "class": self.class_level, "subject": self.subject}

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> APIResponse:
        """Make an authenticated API request."""
        if not self.access_token:
            return APIResponse(success=False, error="Not authenticated")

        try:
            response = self.client.request(
                method,
                endpoint,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {self.access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error = f"API error: {e.response.status_code} - {e.response.text}"
            logger.warning(f"{method} {endpoint} failed: {error}")
            return APIResponse(success=False, error=error)
        except httpx.RequestError as e:
            logger.warning(f"{method} {endpoint} request error: {e}")
            return APIResponse(success=False, error=str(e))

        if not response.content:
            return APIResponse(success=True)

        try:
            return APIResponse(success=True, data=response.json())
        except ValueError as e:
            logger.warning(f"{method} {endpoint} returned invalid JSON: {e}")
            return APIResponse(success=False, error="Invalid JSON response")

    def _cam_reference(self) -> CAMReference:
        return CAMReference(board=self.board, class_level=self.class_level, subject=self.subject)

    # -------------------------------------------------------------------------
    # StorageAdapter
    # -------------------------------------------------------------------------

    def load_progress(self, user_id: str) -> UserProgress | None:
        result = self._request("GET", "/api/v1/progress", params=self._query)
        if not result.success or not isinstance(result.data, dict):
            return create_empty_progress(user_id, self._cam_reference())

        data = result.data
        try:
            return UserProgress.from_dict({
                "user_id": data.get("user_id") or user_id,
                "cam_reference": {"cam_version": "1.0.0", **self._context},
                "concepts": data.get("concepts") or {},
                "topics": data.get("topics") or {},
                "total_xp": data.get("total_xp") or 0,
                "created_at": data.get("created_at") or utc_now_iso(),
                "updated_at": data.get("updated_at") or utc_now_iso(),
            })
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed progress from API: {e}")
            return create_empty_progress(user_id, self._cam_reference())

    def save_progress(self, progress: UserProgress) -> bool:
        payload = progress.to_dict()
        result = self._request("POST", "/api/v1/progress", json={
            **self._context,
            "concepts": payload["concepts"],
            "topics": payload["topics"],
            "total_xp": payload["total_xp"],
        })
        return result.success

    def load_session_history(self) -> list[SessionSummary]:
        result = self._request("GET", "/api/v1/sessions", params={**self._query, "limit": 100})
        if not result.success or not isinstance(result.data, dict):
            return []

        sessions = []
        for entry in result.data.get("sessions") or []:
            try:
                sessions.append(SessionSummary.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed session summary from API")
        return sessions

    def save_session_to_history(self, summary: SessionSummary) -> bool:
        result = self._request("POST", "/api/v1/sessions", json={**summary.to_dict(), **self._context})
        return result.success

    def load_settings(self) -> UserSettings | None:
        result = self._request("GET", "/api/v1/settings")
        if not result.success or not isinstance(result.data, dict):
            return None
        return UserSettings.from_dict(result.data)

    def save_settings(self, settings: UserSettings) -> bool:
        return self._request("POST", "/api/v1/settings", json=settings.to_dict()).success

    def clear_all_data(self) -> bool:
        return self._request("DELETE", "/api/v1/progress", params=self._query).success

    def get_storage_stats(self) -> StorageStats:
        return stats_from(
            self.load_progress(self.user_id),
            sessions_count=len(self.load_session_history()),
            storage_available=bool(self.access_token),
        )
