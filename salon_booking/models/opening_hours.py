import enum

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import validates

from salon_booking.core.database import Base
from salon_booking.schemas.scheduling import WEEKDAYS, WeeklySchedule
from salon_booking.utils.validation import validate_weekly_schedule


class Availability(enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class OpeningHours(Base):
    """Recurring weekly opening hours of one staff member at one branch.

    Each weekday column holds a list of {"from": "HH:mm", "to": "HH:mm"}
    ranges in branch-local time.
    """

    __tablename__ = "opening_hours"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)

    monday = Column(JSON, nullable=False, default=list)
    tuesday = Column(JSON, nullable=False, default=list)
    wednesday = Column(JSON, nullable=False, default=list)
    thursday = Column(JSON, nullable=False, default=list)
    friday = Column(JSON, nullable=False, default=list)
    saturday = Column(JSON, nullable=False, default=list)
    sunday = Column(JSON, nullable=False, default=list)

    availability = Column(
        String(20), nullable=False, default=Availability.AVAILABLE.value
    )

    __table_args__ = (
        UniqueConstraint("staff_id", "branch_id", name="uq_opening_hours_owner"),
    )

    @validates(*WEEKDAYS)
    def validate_day(self, key, value):
        errors = validate_weekly_schedule({key: value or []})
        if errors:
            raise ValueError("; ".join(errors))
        ranges = WeeklySchedule.model_validate({key: value or []}).ranges_for(key)
        return [r.model_dump(by_alias=True) for r in ranges]

    @property
    def is_available(self) -> bool:
        return self.availability != Availability.UNAVAILABLE.value

    @property
    def weekly_schedule(self) -> WeeklySchedule:
        """Schedule used for slot generation; empty when the staff member is
        marked unavailable."""
        if not self.is_available:
            return WeeklySchedule()
        return WeeklySchedule.model_validate(
            {day: getattr(self, day) or [] for day in WEEKDAYS}
        )

    def __repr__(self):
        return (
            f"<OpeningHours(staff_id={self.staff_id}, branch_id={self.branch_id}, "
            f"availability={self.availability})>"
        )
