from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from salon_booking.core.exceptions import InvalidInputError, RejectionReason
from salon_booking.scheduling.intervals import parse_wall_clock
from salon_booking.schemas.scheduling import TimeRange


class FeeType(str, Enum):
    FIXED = "fixed"
    PERCENT = "percent"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no show"


# Branch booking policy (live settings)
class FeePolicy(BaseModel):
    enabled: bool = False
    fee_type: Optional[FeeType] = None
    fee_value: Decimal = Field(Decimal("0"), ge=0)

    @model_validator(mode="after")
    def validate_fee(self):
        if self.enabled and self.fee_type is None:
            raise ValueError("fee_type is required when the fee is enabled")
        if self.fee_type == FeeType.PERCENT and self.fee_value > 100:
            raise ValueError("Percent fee cannot exceed 100")
        return self


class CancelFeePolicy(FeePolicy):
    notice_window_hours: float = Field(0, ge=0)


class BookingPolicy(BaseModel):
    cancel_fee: CancelFeePolicy = Field(default_factory=CancelFeePolicy)
    no_show_fee: FeePolicy = Field(default_factory=FeePolicy)

    @property
    def collects_fees(self) -> bool:
        return self.cancel_fee.enabled or self.no_show_fee.enabled


class BookingSettingsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    branch_id: int
    lead_time_hours: float = Field(..., ge=0)
    booking_window_days: int = Field(..., ge=0)
    policy: BookingPolicy = Field(default_factory=BookingPolicy)


# Snapshot embedded in the appointment at admission time
class CancelFeeSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool
    window: Optional[float] = None
    fee: Optional[Decimal] = None


class NoShowFeeSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool
    fee: Optional[Decimal] = None


class PolicySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    cancel_fee: CancelFeeSnapshot
    no_show_fee: NoShowFeeSnapshot


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_fee: Decimal
    tax: Decimal
    tax_rate: Decimal
    total: Decimal


class TaxQuote(BaseModel):
    amount_tax: Decimal
    effective_rate: Decimal


# Requests
class BookingRequest(BaseModel):
    staff_id: int
    branch_id: int
    service_id: int
    customer_id: int
    date: date
    time: str

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        try:
            minutes = parse_wall_clock(v)
        except InvalidInputError as e:
            raise ValueError(str(e)) from e
        if minutes >= 24 * 60:
            raise ValueError("Booking time must be before 24:00")
        return v


# Responses
class AppointmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: UUID
    staff_id: int
    branch_id: int
    service_id: int
    customer_id: int
    date: date
    booked_time: TimeRange
    booked_time_with_buffer: TimeRange
    price: PriceBreakdown
    policy: PolicySnapshot
    status: AppointmentStatus
    created_at: Optional[datetime] = None


class BookingRejection(BaseModel):
    reason: RejectionReason
    message: str
    retriable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)


class BookingDecision(BaseModel):
    admitted: bool
    appointment: Optional[AppointmentRead] = None
    rejection: Optional[BookingRejection] = None


class CancellationQuote(BaseModel):
    appointment_id: int
    late: bool
    charge: bool
    fee: Optional[Decimal] = None
    free_until: datetime
    message: str


class CancellationResult(BaseModel):
    appointment_id: int
    cancelled: bool
    fee_charged: Optional[Decimal] = None
    message: str


class StatusChangeResult(BaseModel):
    appointment_id: int
    status: AppointmentStatus
    fee_charged: Optional[Decimal] = None


class BookingActions(BaseModel):
    cancellable: bool = False
    payable: bool = False


class CustomerBooking(AppointmentRead):
    actions: BookingActions


class CalendarEntry(AppointmentRead):
    is_past: bool


class CustomerBookingList(BaseModel):
    bookings: List[CustomerBooking]
    total_count: int
