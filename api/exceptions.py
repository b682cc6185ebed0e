"""Custom exception classes for structured API error handling.

Every error carries an HTTP ``status_code`` and a stable, machine-readable
``kind`` that is returned as the ``error`` field of failure responses.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base application error with an associated HTTP status code."""

    status_code: int = 500
    kind: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error", details: Any = None) -> None:
        super().__init__(message)
        self.details = details


class ValidationError(AppError):
    status_code = 400
    kind = "VALIDATION_ERROR"


class InvalidPeriodError(ValidationError):
    kind = "INVALID_PERIOD"


class AuthenticationError(AppError):
    status_code = 401
    kind = "UNAUTHENTICATED"


class AuthorizationError(AppError):
    status_code = 403
    kind = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    kind = "NOT_FOUND"


class BatchNotFoundError(NotFoundError):
    kind = "BATCH_NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    kind = "ORDER_NOT_FOUND"


class ProfitShareNotFoundError(NotFoundError):
    kind = "PROFIT_SHARE_NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    kind = "CONFLICT"


class DuplicateBatchError(ConflictError):
    kind = "DUPLICATE_BATCH"


class BatchInUseError(ConflictError):
    kind = "BATCH_IN_USE"


class OrderLockedError(ConflictError):
    kind = "ORDER_LOCKED"


class PeriodLockedError(ConflictError):
    kind = "PERIOD_LOCKED"


class AlreadyExecutedError(ConflictError):
    kind = "ALREADY_EXECUTED"


class ConcurrencyConflictError(ConflictError):
    """The write lock could not be acquired in time. Safe to retry once."""

    kind = "CONCURRENCY_CONFLICT"


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds what a batch has left."""

    kind = "INSUFFICIENT_STOCK"

    def __init__(self, batch_identifier: str, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for batch {batch_identifier}. "
            f"Available: {available}, Required: {requested}",
            details={
                "batchIdentifier": batch_identifier,
                "available": available,
                "requested": requested,
            },
        )
        self.batch_identifier = batch_identifier
        self.available = available
        self.requested = requested


class InventoryInvariantError(RuntimeError):
    """An internal caller tried to break a batch quantity invariant.

    Not an AppError: this is a programming error and surfaces as a 500.
    """
