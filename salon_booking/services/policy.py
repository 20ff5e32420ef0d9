"""
Cancellation and no-show fee rules.

Fees are computed once, at admission, from the branch's live settings and
frozen into the appointment's policy snapshot. Whether a cancellation is late
is re-derived from the clock on every attempt.
"""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from salon_booking.core.exceptions import InvalidInputError
from salon_booking.models.customer_info import CustomerInfo
from salon_booking.schemas.booking import (
    BookingPolicy,
    CancelFeeSnapshot,
    FeePolicy,
    FeeType,
    NoShowFeeSnapshot,
    PolicySnapshot,
)

CENTS = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Decimal rounded half-up to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_fee(
    fee_type: Union[FeeType, str], fee_value: Number, service_price: Number
) -> Decimal:
    """Fee owed for a cancellation or no-show.

    ``percent`` is a share of the service price, ``fixed`` is an absolute
    amount.
    """
    fee_type = FeeType(fee_type)
    value = Decimal(str(fee_value))
    if value < 0:
        raise InvalidInputError("Fee value cannot be negative", details={"fee": value})
    if fee_type == FeeType.PERCENT:
        return to_money(value / Decimal(100) * Decimal(str(service_price)))
    return to_money(value)


def _policy_fee(policy: FeePolicy, service_price: Number) -> Optional[Decimal]:
    if not policy.enabled:
        return None
    return compute_fee(policy.fee_type, policy.fee_value, service_price)


def snapshot_policy(policy: BookingPolicy, service_price: Number) -> PolicySnapshot:
    """Freeze the branch policy for one appointment.

    Disabled fees carry only ``enabled=False``; enabled fees carry the
    computed amount and, for cancellations, the notice window in hours.
    """
    cancel = policy.cancel_fee
    no_show = policy.no_show_fee
    return PolicySnapshot(
        cancel_fee=CancelFeeSnapshot(
            enabled=cancel.enabled,
            window=cancel.notice_window_hours if cancel.enabled else None,
            fee=_policy_fee(cancel, service_price),
        ),
        no_show_fee=NoShowFeeSnapshot(
            enabled=no_show.enabled,
            fee=_policy_fee(no_show, service_price),
        ),
    )


def cancellation_deadline(appointment_start: datetime, notice_hours: float) -> datetime:
    """Last instant at which cancelling is still free."""
    return appointment_start - timedelta(hours=notice_hours or 0)


def is_late_cancellation(
    appointment_start: datetime, notice_hours: float, now: datetime
) -> bool:
    """True when ``now`` is past the free-cancellation deadline.

    Both datetimes must be timezone-aware; the comparison is on absolute
    instants.
    """
    if appointment_start.tzinfo is None or now.tzinfo is None:
        raise InvalidInputError("Cancellation check requires aware datetimes")
    return now > cancellation_deadline(appointment_start, notice_hours)


def is_payment_method_required(
    policy: BookingPolicy, customer: Optional[CustomerInfo]
) -> bool:
    if not policy.collects_fees:
        return False
    return customer is None or not customer.has_stored_payment_method
