"""Service helpers for zone features."""

from .analysis import ZoneAnalysis, analyze_streets, estimate_minutes
from .ingestion import IngestionSummary, ZoneIngestionService
from .zones import (
    delete_zone,
    get_zone,
    list_zone_segments,
    serialize_segment,
    serialize_zone,
)

__all__ = [
    "IngestionSummary",
    "ZoneAnalysis",
    "ZoneIngestionService",
    "analyze_streets",
    "delete_zone",
    "estimate_minutes",
    "get_zone",
    "list_zone_segments",
    "serialize_segment",
    "serialize_zone",
]
