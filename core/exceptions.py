"""
Centralized exception hierarchy for domain-specific errors.

Every error raised by the planning core derives from ``RoundPlannerError`` so
API handlers can map the family to HTTP responses in one place
(see ``core.api.api_route``).
"""


class RoundPlannerError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RoundPlannerError):
    """Raised when input data (polygon, coordinates, fields) is malformed."""


class ResourceNotFoundError(RoundPlannerError):
    """Raised when a zone, street, segment or session does not exist."""


class ExternalServiceError(RoundPlannerError):
    """Raised when an upstream oracle fails at the transport level or times out."""


class RateLimitError(ExternalServiceError):
    """Raised when an upstream service answers 429."""


class OptimizationFailed(ExternalServiceError):
    """Raised when route optimization is aborted by an oracle failure.

    The underlying error is kept on ``cause`` and is never replaced by a
    degraded, unoptimized route.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.cause = cause


class OptimizationInfeasible(RoundPlannerError):
    """Raised when an optimization request cannot be satisfied at all."""


class EmptyInput(OptimizationInfeasible):
    """Raised when an optimization is requested for zero waypoints."""


class SessionStateViolation(RoundPlannerError):
    """Raised on an illegal session transition; session state is left unchanged."""


class SessionEnded(SessionStateViolation):
    """Raised when a mutation targets a session that has already ended."""


class GeometryDegenerate(RoundPlannerError):
    """Signals a degenerate geometric result. Always handled by the caller."""


RoundPlannerException = RoundPlannerError
ValidationException = ValidationError
NotFound = ResourceNotFoundError
ResourceNotFoundException = ResourceNotFoundError
UpstreamUnavailable = ExternalServiceError
ExternalServiceException = ExternalServiceError
RateLimitException = RateLimitError
