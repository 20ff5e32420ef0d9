from pydantic import ValidationError
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salon_booking.core.database import Base
from salon_booking.core.exceptions import InvalidInputError
from salon_booking.schemas.booking import BookingPolicy


class BookingSettings(Base):
    """Per-branch booking window and cancellation / no-show fee policy."""

    __tablename__ = "booking_settings"

    id = Column(Integer, primary_key=True, index=True)
    branch_id = Column(
        Integer, ForeignKey("branches.id"), nullable=False, unique=True, index=True
    )

    # Booking window
    lead_time_hours = Column(Float, nullable=False, default=0)
    booking_window_days = Column(Integer, nullable=False)

    # Cancellation fee
    collect_cancel_fee = Column(Boolean, default=False, nullable=False)
    cancel_fee_type = Column(String(10), nullable=True)  # fixed, percent
    cancel_fee_value = Column(Numeric(10, 2), default=0, nullable=False)
    cancellation_notice_hours = Column(Float, default=0, nullable=False)

    # No-show fee
    collect_no_show_fee = Column(Boolean, default=False, nullable=False)
    no_show_fee_type = Column(String(10), nullable=True)
    no_show_fee_value = Column(Numeric(10, 2), default=0, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("lead_time_hours >= 0", name="check_non_negative_lead_time"),
        CheckConstraint(
            "booking_window_days >= 0", name="check_non_negative_booking_window"
        ),
        CheckConstraint("cancel_fee_value >= 0", name="check_non_negative_cancel_fee"),
        CheckConstraint(
            "no_show_fee_value >= 0", name="check_non_negative_no_show_fee"
        ),
        CheckConstraint(
            "collect_cancel_fee = false OR cancel_fee_type IS NOT NULL",
            name="check_cancel_fee_type_set",
        ),
        CheckConstraint(
            "collect_no_show_fee = false OR no_show_fee_type IS NOT NULL",
            name="check_no_show_fee_type_set",
        ),
        CheckConstraint(
            "cancel_fee_type IS NULL OR cancel_fee_type <> 'percent' "
            "OR cancel_fee_value <= 100",
            name="check_cancel_fee_percent",
        ),
        CheckConstraint(
            "no_show_fee_type IS NULL OR no_show_fee_type <> 'percent' "
            "OR no_show_fee_value <= 100",
            name="check_no_show_fee_percent",
        ),
    )

    branch = relationship("Branch", back_populates="booking_settings")

    @property
    def policy(self) -> BookingPolicy:
        """Live fee policy. Appointments keep their own snapshot of it."""
        try:
            return BookingPolicy.model_validate(
                {
                    "cancel_fee": {
                        "enabled": bool(self.collect_cancel_fee),
                        "fee_type": self.cancel_fee_type,
                        "fee_value": self.cancel_fee_value or 0,
                        "notice_window_hours": self.cancellation_notice_hours or 0,
                    },
                    "no_show_fee": {
                        "enabled": bool(self.collect_no_show_fee),
                        "fee_type": self.no_show_fee_type,
                        "fee_value": self.no_show_fee_value or 0,
                    },
                }
            )
        except ValidationError as e:
            raise InvalidInputError(
                f"Booking settings for branch {self.branch_id} are invalid",
                details={
                    "branch_id": self.branch_id,
                    "errors": [error["msg"] for error in e.errors()],
                },
            ) from e

    def __repr__(self):
        return (
            f"<BookingSettings(branch_id={self.branch_id}, "
            f"lead_time={self.lead_time_hours}h, window={self.booking_window_days}d)>"
        )
