"""
Domain exceptions for the booking engine.

Every rejection the engine can produce has a class here and a matching
``RejectionReason`` code, so callers can either catch the exception or
inspect the structured result returned by booking admission.
"""

import enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class RejectionReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    INVALID_DATE = "invalid_date"
    SLOT_CONFLICT = "slot_conflict"
    PAYMENT_METHOD_REQUIRED = "payment_method_required"
    TAX_CALCULATION_FAILED = "tax_calculation_failed"
    CANCELLATION_WINDOW_CLOSED = "cancellation_window_closed"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"
    PAYMENT_FAILED = "payment_failed"


class BookingEngineError(Exception):
    """Base exception for all booking engine errors."""

    reason: RejectionReason = RejectionReason.INVALID_INPUT
    status_code: int = status.HTTP_400_BAD_REQUEST
    retriable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.reason.value
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
                "retriable": self.retriable,
            },
        )


class NotFoundError(BookingEngineError):
    """Branch, settings, service, opening hours or appointment is missing."""

    reason = RejectionReason.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class InvalidInputError(BookingEngineError):
    """Malformed date, time or duration."""

    reason = RejectionReason.INVALID_INPUT
    status_code = HTTP_422_UNPROCESSABLE


class InvalidDateError(InvalidInputError):
    """A date could not be resolved to a weekday in the branch timezone."""

    reason = RejectionReason.INVALID_DATE


class SlotConflictError(BookingEngineError):
    """The requested slot is already taken (or was lost to a concurrent request)."""

    reason = RejectionReason.SLOT_CONFLICT
    status_code = status.HTTP_409_CONFLICT


class PaymentMethodRequiredError(BookingEngineError):
    reason = RejectionReason.PAYMENT_METHOD_REQUIRED
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class TaxCalculationFailedError(BookingEngineError):
    """The tax collaborator failed or timed out. Safe to retry the request."""

    reason = RejectionReason.TAX_CALCULATION_FAILED
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retriable = True


class CancellationWindowClosedError(BookingEngineError):
    reason = RejectionReason.CANCELLATION_WINDOW_CLOSED
    status_code = status.HTTP_409_CONFLICT


class InvalidStatusTransitionError(BookingEngineError):
    reason = RejectionReason.INVALID_STATUS_TRANSITION
    status_code = status.HTTP_409_CONFLICT


class PaymentFailedError(BookingEngineError):
    reason = RejectionReason.PAYMENT_FAILED
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    retriable = True
