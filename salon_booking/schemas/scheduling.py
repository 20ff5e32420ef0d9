from datetime import date
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from salon_booking.core.exceptions import InvalidInputError
from salon_booking.scheduling.intervals import parse_wall_clock

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class TimeRange(BaseModel):
    """Wall-clock range in branch-local time, e.g. {"from": "09:00", "to": "17:00"}."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: str = Field(..., alias="from")
    to: str

    @field_validator("from_", "to")
    @classmethod
    def validate_wall_clock(cls, v):
        try:
            parse_wall_clock(v)
        except InvalidInputError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def validate_order(self):
        if parse_wall_clock(self.from_) >= parse_wall_clock(self.to):
            raise ValueError(f"Range start {self.from_} must be before end {self.to}")
        return self

    @property
    def start_minutes(self) -> int:
        return parse_wall_clock(self.from_)

    @property
    def end_minutes(self) -> int:
        return parse_wall_clock(self.to)


class WeeklySchedule(BaseModel):
    """Recurring opening hours keyed by lowercase weekday name."""

    monday: List[TimeRange] = Field(default_factory=list)
    tuesday: List[TimeRange] = Field(default_factory=list)
    wednesday: List[TimeRange] = Field(default_factory=list)
    thursday: List[TimeRange] = Field(default_factory=list)
    friday: List[TimeRange] = Field(default_factory=list)
    saturday: List[TimeRange] = Field(default_factory=list)
    sunday: List[TimeRange] = Field(default_factory=list)

    def ranges_for(self, weekday: str) -> List[TimeRange]:
        return list(getattr(self, weekday, None) or [])


class BookedInterval(BaseModel):
    """An existing appointment's buffered interval on one calendar date."""

    model_config = ConfigDict(populate_by_name=True)

    date: date
    from_: str = Field(..., alias="from")
    to: str


class AvailabilityDay(BaseModel):
    date: str
    slots: List[str] = Field(default_factory=list)


class AvailabilityResult(BaseModel):
    staff_id: int
    branch_id: int
    service_id: int
    timezone: str
    days: List[AvailabilityDay] = Field(default_factory=list)
