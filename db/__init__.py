"""Database package for MongoDB operations using Beanie ODM.

Modules:
    manager: DatabaseManager for connection handling
    models: Beanie Document models for all collections
"""

from db.manager import DatabaseManager
from db.models import (
    ALL_DOCUMENT_MODELS,
    Progression,
    Segment,
    Street,
    TourSession,
    Zone,
)

__all__ = [
    "ALL_DOCUMENT_MODELS",
    "DatabaseManager",
    "Progression",
    "Segment",
    "Street",
    "TourSession",
    "Zone",
]
