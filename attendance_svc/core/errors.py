from __future__ import annotations


class AttendanceError(Exception):
    """Base class for failures raised by the check-in core."""


class StorageError(AttendanceError):
    """The token or ledger store failed.

    ``retryable`` tells the caller whether backing off and trying again is
    meaningful (timeouts, dropped connections) or not (driver/programming
    errors). Issuance and redemption are idempotent, so a retry never
    produces a second token or a second check-in.
    """

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class InvariantViolation(AttendanceError):
    """A uniqueness conflict that the documented races cannot explain."""


class InvalidInstant(AttendanceError, ValueError):
    """Malformed instant or calendar date string."""
