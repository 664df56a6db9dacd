"""Custom exception classes for the application."""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "You don't have permission to access this resource"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
        )


# ── Domain errors (raised by services, mapped to HTTP by the API layer) ──


class RulesFileError(Exception):
    """The uploaded rules document is not valid JSON or violates the schema."""


class PersistenceError(Exception):
    """Saving a group of classified transactions failed.

    Groups saved before the failing one stay committed.
    """

    def __init__(self, message: str, saved_count: int = 0):
        super().__init__(message)
        self.saved_count = saved_count
