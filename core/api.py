"""Error mapping shared by every FastAPI router."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import NamedTuple

from fastapi import HTTPException, status

from core.exceptions import (
    ExternalServiceError,
    OptimizationFailed,
    OptimizationInfeasible,
    RateLimitError,
    ResourceNotFoundError,
    RoundPlannerError,
    SessionStateViolation,
    ValidationError,
)


class ErrorMapping(NamedTuple):
    exc_type: type[RoundPlannerError]
    status_code: int
    log_level: int
    label: str
    detail_prefix: str = ""


# First match wins, so subclasses come before their bases.
ERROR_MAPPINGS: tuple[ErrorMapping, ...] = (
    ErrorMapping(
        ValidationError,
        status.HTTP_400_BAD_REQUEST,
        logging.WARNING,
        "Validation error",
    ),
    ErrorMapping(
        ResourceNotFoundError,
        status.HTTP_404_NOT_FOUND,
        logging.INFO,
        "Resource not found",
    ),
    ErrorMapping(
        SessionStateViolation,
        status.HTTP_409_CONFLICT,
        logging.INFO,
        "Rejected session transition",
    ),
    ErrorMapping(
        OptimizationInfeasible,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        logging.WARNING,
        "Infeasible optimization",
    ),
    ErrorMapping(
        RateLimitError,
        status.HTTP_429_TOO_MANY_REQUESTS,
        logging.WARNING,
        "Upstream rate limit",
    ),
    ErrorMapping(
        OptimizationFailed,
        status.HTTP_502_BAD_GATEWAY,
        logging.ERROR,
        "Route optimization failed",
        "Route optimization failed: ",
    ),
    ErrorMapping(
        ExternalServiceError,
        status.HTTP_502_BAD_GATEWAY,
        logging.ERROR,
        "External service error",
        "External service error: ",
    ),
)


def http_error_for(exc: RoundPlannerError, logger: logging.Logger, where: str) -> HTTPException:
    """Log ``exc`` at the level its family calls for and build the response error."""
    for mapping in ERROR_MAPPINGS:
        if isinstance(exc, mapping.exc_type):
            logger.log(
                mapping.log_level,
                "%s in %s: %s",
                mapping.label,
                where,
                exc.message,
                exc_info=mapping.log_level >= logging.ERROR,
            )
            return HTTPException(
                status_code=mapping.status_code,
                detail=f"{mapping.detail_prefix}{exc.message}",
            )

    logger.exception("Application error in %s: %s", where, exc.message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=exc.message,
    )


def api_route(logger: logging.Logger):
    """
    Decorator giving FastAPI endpoints uniform error handling.

    ``HTTPException`` passes through untouched, domain errors are translated
    through ``ERROR_MAPPINGS`` and anything else becomes a logged 500.

    Usage:
        @router.post("/api/sessions")
        @api_route(logger)
        async def start_session(payload: StartSessionRequest):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except RoundPlannerError as e:
                raise http_error_for(e, logger, func.__name__) from e
            except Exception as e:
                logger.exception("Unexpected error in %s", func.__name__)
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail=str(e),
                ) from e

        return wrapper

    return decorator
