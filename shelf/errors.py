# shelf/errors.py
from typing import Optional

CONFLICT_MARKERS = ("409", "conflict", "already in library")
NOT_FOUND_MARKERS = ("404", "not found")


class ShelfError(Exception):
    """Base class for errors raised by this package"""
    pass


class ApiError(ShelfError):
    """A request to the library backend failed.

    Args:
        status_code: HTTP status of the response, None for network failures
        message: Human readable message, usually the backend's ``error`` field
    """

    def __init__(self, status_code: Optional[int], message: str = ""):
        self.status_code = status_code
        self.message = message
        if status_code is not None:
            super().__init__(f"{status_code} {message}".strip())
        else:
            super().__init__(message)

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409 or _message_has(self.message, CONFLICT_MARKERS)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or _message_has(self.message, NOT_FOUND_MARKERS)


def _message_has(message: Optional[str], markers) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in markers)


def is_conflict(error: BaseException) -> bool:
    """True if the error says the book is already in the library."""
    if isinstance(error, ApiError):
        return error.is_conflict
    return getattr(error, "status_code", None) == 409 or _message_has(str(error), CONFLICT_MARKERS)


def is_not_found(error: BaseException) -> bool:
    """True if the error says the library record no longer exists."""
    if isinstance(error, ApiError):
        return error.is_not_found
    return getattr(error, "status_code", None) == 404 or _message_has(str(error), NOT_FOUND_MARKERS)


def error_message(error: BaseException, fallback: str) -> str:
    if isinstance(error, ApiError):
        message = error.message
    else:
        message = str(error)
    message = (message or "").strip()
    return message or fallback
