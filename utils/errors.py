"""Error taxonomy and operation results"""

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import aiosqlite


class ErrorKind(str, Enum):
    """Machine-readable failure kinds returned by the core"""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_TRANSITION = "invalid_transition"
    SLOT_CONFLICT = "slot_conflict"
    INTERNAL = "internal"

    @property
    def retryable(self) -> bool:
        """Only storage/unexpected failures may be retried verbatim"""
        return self is ErrorKind.INTERNAL


class BookingError(Exception):
    """Base class for every failure the core reports"""

    kind = ErrorKind.INTERNAL
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request."


class NotFoundError(BookingError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found."


class ForbiddenError(BookingError):
    kind = ErrorKind.FORBIDDEN
    default_message = "You are not allowed to perform this action."


class InvalidTransitionError(BookingError):
    kind = ErrorKind.INVALID_TRANSITION
    default_message = "The appointment status does not allow this action."


class SlotConflictError(BookingError):
    kind = ErrorKind.SLOT_CONFLICT
    default_message = "This time slot is already booked. Please choose another time."


class InternalError(BookingError):
    kind = ErrorKind.INTERNAL


@dataclass
class OperationResult:
    """Typed outcome of a core operation"""

    success: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def ok(cls, value: Any = None, message: str = "") -> "OperationResult":
        return cls(success=True, value=value, message=message)

    @classmethod
    def fail(cls, error: BookingError) -> "OperationResult":
        return cls(success=False, error=error.kind, message=error.message)

    @property
    def retryable(self) -> bool:
        return bool(self.error and self.error.retryable)


def as_result(func):
    """Convert raised errors of a core coroutine into an OperationResult

    Domain errors keep their kind. Storage and unexpected exceptions are
    logged with traceback and reported as ``internal``.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> OperationResult:
        try:
            return OperationResult.ok(await func(*args, **kwargs))
        except BookingError as e:
            if e.kind is ErrorKind.INTERNAL:
                logging.error(f"{func.__name__} failed: {e.message}")
            else:
                logging.warning(f"{func.__name__} rejected ({e.kind.value}): {e.message}")
            return OperationResult.fail(e)
        except aiosqlite.Error:
            logging.exception(f"Database error in {func.__name__}")
            return OperationResult.fail(InternalError("Storage is unavailable. Please retry."))
        except Exception:
            logging.exception(f"Unexpected error in {func.__name__}")
            return OperationResult.fail(InternalError())

    return wrapper
