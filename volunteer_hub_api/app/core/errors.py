"""
Error taxonomy of the data-access core.

Every failure that leaves a backend, a service or the capacity checks
is one of the classes below.  Each carries a stable ``code`` string and
the HTTP status the API layer answers with, so the boundary can
translate errors without knowing where they came from.  Backends keep
whatever the native failure was in ``native`` and chain the original
exception.
"""

from typing import Any, Optional


class DataAccessError(Exception):
    """Base class for every error raised by the data layer."""

    code = "storage_error"
    status_code = 500

    def __init__(self, message: str, *, native: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.native = native


class NotFoundError(DataAccessError):
    """The requested id is absent from the backend."""

    code = "not_found"
    status_code = 404


class ConflictError(DataAccessError):
    """Unique constraint violated, or an optimistic version stamp moved."""

    code = "conflict"
    status_code = 409


class ReferentialError(DataAccessError):
    """A record points at a parent that does not exist."""

    code = "referential"
    status_code = 422


class ValidationError(DataAccessError):
    """An invariant was violated before any I/O took place."""

    code = "validation"
    status_code = 400


class RoleFullError(ValidationError):
    """Sign-up refused because the role reached its ceiling."""

    code = "role_full"
    status_code = 409


class BackendUnavailableError(DataAccessError):
    """Transport or configuration failure talking to the backend."""

    code = "backend_unavailable"
    status_code = 503
