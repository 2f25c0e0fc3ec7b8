"""Typed failures raised by the ledger core.

Every failure carries an :class:`ErrorKind` so callers can tell a conflict that
is safe to retry from a request that will never succeed.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    CONFLICT = "conflict"


class RetailLedgerError(RuntimeError):
    """Base class for all core failures."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, field: Optional[str] = None, payload: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.payload = payload

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.CONFLICT

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.payload or ())
        data["detail"] = self.message
        data["kind"] = self.kind.value
        data["error"] = type(self).__name__
        data["retryable"] = self.retryable
        if self.field:
            data["field"] = self.field
        return data


class ValidationFailed(RetailLedgerError):
    kind = ErrorKind.VALIDATION


class InvalidQuantity(ValidationFailed):
    """Raised when a quantity is not a positive integer."""


class MissingAdjustMode(ValidationFailed):
    """Raised when an ADJUST movement has no direction."""


class InsufficientStock(ValidationFailed):
    """Raised when a movement would take on-hand stock below zero."""


class UnitMismatch(ValidationFailed):
    """Raised when a unit has no conversion to the product's base unit."""


class ProductInactive(ValidationFailed):
    """Raised when stock is recorded against a disabled product."""


class InvalidReceipt(ValidationFailed):
    """Raised when received quantities do not match the purchase order."""


class NotFound(RetailLedgerError):
    kind = ErrorKind.NOT_FOUND


class InvalidTransition(RetailLedgerError):
    kind = ErrorKind.INVALID_TRANSITION


class ConcurrencyConflict(RetailLedgerError):
    kind = ErrorKind.CONFLICT
