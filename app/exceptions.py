"""Domain errors raised by the planet services.

Each error carries the HTTP status it maps to so the exception handler in
``app.main`` can translate it without the routers catching anything.
"""
from fastapi import status


class PlanetError(Exception):
    """Base class for planet domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "planet_error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class NotFoundError(PlanetError):
    """The referenced planet, membership or application does not exist
    (or is not in the state the operation expects)."""

    status_code = status.HTTP_404_NOT_FOUND
    detail = "not_found"


class ForbiddenError(PlanetError):
    """The actor lacks the role or ownership the action requires."""

    status_code = status.HTTP_403_FORBIDDEN
    detail = "forbidden"


class ConflictError(PlanetError):
    """A uniqueness rule was violated (duplicate join, bookmark, name)."""

    status_code = status.HTTP_409_CONFLICT
    detail = "conflict"


class InvariantViolation(PlanetError):
    """A membership would end up in an impossible status/role combination."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "invariant_violation"
