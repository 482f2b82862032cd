"""Centralized configuration for environment variables and external APIs.

Settings are read once into an immutable ``ServiceSettings`` value and handed
to the clients that need them (``OverpassClient``, ``OpenRouteServiceClient``,
the database manager). Nothing reads ``os.environ`` after construction.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Final

from dotenv import load_dotenv

from core.exceptions import ValidationError

# Load environment variables from .env if present
load_dotenv()


# --- Upstream defaults ---
DEFAULT_ORS_BASE_URL: Final[str] = "https://api.openrouteservice.org"
DEFAULT_OVERPASS_URL: Final[str] = "https://overpass-api.de/api/interpreter"
DEFAULT_MONGO_URI: Final[str] = "mongodb://localhost:27017"
DEFAULT_MONGO_DB: Final[str] = "round_planner"
DEFAULT_CORS_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        msg = f"{name} must be a number"
        raise ValidationError(msg, {"value": raw}) from exc


def _csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    values = tuple(item.strip() for item in raw.split(",") if item.strip())
    return values or default


@dataclass(frozen=True)
class ServiceSettings:
    """Immutable configuration for upstream services and storage."""

    ors_api_key: str = ""
    ors_base_url: str = DEFAULT_ORS_BASE_URL
    ors_timeout_s: float = 30.0
    overpass_url: str = DEFAULT_OVERPASS_URL
    overpass_timeout_s: float = 25.0
    optimization_timeout_s: float = 120.0
    mongo_uri: str = DEFAULT_MONGO_URI
    mongo_db: str = DEFAULT_MONGO_DB
    cors_allowed_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @classmethod
    def from_env(cls) -> ServiceSettings:
        return cls(
            ors_api_key=os.getenv("ORS_API_KEY", "").strip(),
            ors_base_url=os.getenv("ORS_BASE_URL", DEFAULT_ORS_BASE_URL).rstrip("/"),
            ors_timeout_s=_float_env("ORS_TIMEOUT_S", 30.0),
            overpass_url=os.getenv("OVERPASS_URL", DEFAULT_OVERPASS_URL),
            overpass_timeout_s=_float_env("OVERPASS_TIMEOUT_S", 25.0),
            optimization_timeout_s=_float_env("OPTIMIZATION_TIMEOUT_S", 120.0),
            mongo_uri=os.getenv("MONGO_URI", DEFAULT_MONGO_URI),
            mongo_db=os.getenv("MONGO_DB", DEFAULT_MONGO_DB),
            cors_allowed_origins=_csv_env("CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS),
        )

    def require_ors_api_key(self) -> str:
        """Return the OpenRouteService key, failing when it is not configured."""
        if not self.ors_api_key:
            msg = "ORS_API_KEY is not configured"
            raise ValidationError(msg)
        return self.ors_api_key


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    """Settings built from the environment on first use."""
    return ServiceSettings.from_env()


__all__ = [
    "DEFAULT_CORS_ORIGINS",
    "DEFAULT_MONGO_DB",
    "DEFAULT_MONGO_URI",
    "DEFAULT_ORS_BASE_URL",
    "DEFAULT_OVERPASS_URL",
    "ServiceSettings",
    "get_settings",
]
