"""Error taxonomy shared by the data-access layer, services and routes."""
from typing import Optional


class AidServiceError(Exception):
    """Base exception for aid distribution errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AidServiceError):
    """Input the user must correct; nothing was written."""

    status_code = 422


class InvalidIdentifier(AidServiceError):
    """A malformed identifier reached the data boundary."""

    status_code = 400

    def __init__(self, value, field: str = "id"):
        super().__init__(f"Invalid {field}: {value!r}")
        self.value = value
        self.field = field


class NotFoundError(AidServiceError):
    status_code = 404


class ConflictError(AidServiceError):
    """A write collided with a uniqueness constraint."""

    status_code = 409


class PermissionDenied(AidServiceError):
    status_code = 403


class PersistenceError(AidServiceError):
    """The store was unreachable or rejected a write."""

    status_code = 503

    def __init__(self, message: str, allocation_id: Optional[str] = None):
        super().__init__(message)
        # Set when the allocation row was committed before the failure
        self.allocation_id = allocation_id
