"""MongoDB connection handling and Beanie initialization."""

from __future__ import annotations

import logging
from datetime import UTC
from typing import TYPE_CHECKING

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from db.models import ALL_DOCUMENT_MODELS

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

    from config import ServiceSettings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the Motor client for one process."""

    def __init__(self, settings: ServiceSettings) -> None:
        self._uri = settings.mongo_uri
        self._db_name = settings.mongo_db
        self._client: AsyncIOMotorClient | None = None

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if self._client is None:
            self._client = AsyncIOMotorClient(
                self._uri,
                tz_aware=True,
                tzinfo=UTC,
                appname="RoundPlanner",
            )
        return self._client[self._db_name]

    async def init_beanie(self) -> None:
        """Bind every document model to the database and create indexes."""
        await init_beanie(database=self.db, document_models=ALL_DOCUMENT_MODELS)
        logger.info(
            "Beanie ODM initialized with %d document models",
            len(ALL_DOCUMENT_MODELS),
        )

    def close(self) -> None:
        if self._client is not None:
            logger.info("Closing MongoDB client connections...")
            self._client.close()
            self._client = None
