"""Service helpers for live distribution sessions."""

from .session_service import (
    ProgressSummary,
    TourSessionService,
    serialize_progression,
    serialize_session,
)

__all__ = [
    "ProgressSummary",
    "TourSessionService",
    "serialize_progression",
    "serialize_session",
]
