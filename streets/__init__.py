"""Streets package - turns a drawn polygon into walkable street sides.

Key modules:
    - normalizer: Overpass extraction and street normalization
    - segmentation: Splitting streets into per-side segments
    - models: Pydantic models for normalized streets and segment drafts
    - services: Zone ingestion, analysis and lookups
    - api: Zone endpoints

Usage:
    from streets.services import ZoneIngestionService
    zone, summary = await ZoneIngestionService(normalizer).create_zone(
        name="Rue des Lilas",
        polygon=polygon,
    )
"""
