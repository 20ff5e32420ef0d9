from datetime import date
from typing import List, Optional

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.core.config import settings
from salon_booking.core.exceptions import NotFoundError
from salon_booking.models.appointment import Appointment
from salon_booking.models.booking_settings import BookingSettings
from salon_booking.models.branch import Branch
from salon_booking.models.opening_hours import OpeningHours
from salon_booking.models.service import Service
from salon_booking.scheduling.intervals import Clock, utc_now
from salon_booking.scheduling.planner import plan_availability
from salon_booking.schemas.booking import AppointmentStatus
from salon_booking.schemas.scheduling import AvailabilityResult, BookedInterval

logger = structlog.get_logger(__name__)


class SchedulingEngineService:
    """Availability of one staff member for one service at one branch."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def get_availability(
        self,
        staff_id: int,
        branch_id: int,
        service_id: int,
        step_minutes: Optional[int] = None,
    ) -> AvailabilityResult:
        """
        Bookable start times for every day of the branch booking window.

        Args:
            staff_id: Staff member whose calendar is computed
            branch_id: Branch providing the timezone and booking settings
            service_id: Service whose duration sizes the slots
            step_minutes: Spacing between candidate start times

        Returns:
            AvailabilityResult with one entry per day, possibly without slots
        """
        branch = await self.get_branch(branch_id)
        booking_settings = await self.get_booking_settings(branch_id)
        opening_hours = await self.get_opening_hours(staff_id, branch_id)
        service = await self.get_active_service(service_id, branch_id)

        # "now" is read on every call, never cached
        now = self.clock()
        booked = await self.get_booked_intervals(staff_id, now.date())

        days = plan_availability(
            schedule=opening_hours.weekly_schedule,
            booked=booked,
            duration_minutes=service.duration_minutes,
            lead_time_hours=booking_settings.lead_time_hours,
            booking_window_days=booking_settings.booking_window_days,
            tz_name=branch.timezone,
            now=now,
            step_minutes=step_minutes or settings.SLOT_STEP_MINUTES,
        )

        logger.info(
            "Availability computed",
            staff_id=staff_id,
            branch_id=branch_id,
            service_id=service_id,
            days=len(days),
            slots=sum(len(d.slots) for d in days),
        )
        return AvailabilityResult(
            staff_id=staff_id,
            branch_id=branch_id,
            service_id=service_id,
            timezone=branch.timezone,
            days=days,
        )

    async def get_branch(self, branch_id: int) -> Branch:
        branch = await self.db.get(Branch, branch_id)
        if not branch:
            raise NotFoundError(
                f"Branch {branch_id} not found", details={"branch_id": branch_id}
            )
        return branch

    async def get_booking_settings(self, branch_id: int) -> BookingSettings:
        result = await self.db.execute(
            select(BookingSettings).where(BookingSettings.branch_id == branch_id)
        )
        booking_settings = result.scalar_one_or_none()
        if not booking_settings:
            raise NotFoundError(
                f"Booking settings for branch {branch_id} not found",
                details={"branch_id": branch_id},
            )
        return booking_settings

    async def get_opening_hours(self, staff_id: int, branch_id: int) -> OpeningHours:
        result = await self.db.execute(
            select(OpeningHours).where(
                and_(
                    OpeningHours.staff_id == staff_id,
                    OpeningHours.branch_id == branch_id,
                )
            )
        )
        opening_hours = result.scalar_one_or_none()
        if not opening_hours:
            raise NotFoundError(
                f"Opening hours for staff {staff_id} not found",
                details={"staff_id": staff_id, "branch_id": branch_id},
            )
        return opening_hours

    async def get_active_service(self, service_id: int, branch_id: int) -> Service:
        service = await self.db.get(Service, service_id)
        if not service or service.branch_id != branch_id or not service.is_active:
            raise NotFoundError(
                f"Service {service_id} not found", details={"service_id": service_id}
            )
        return service

    async def get_booked_intervals(
        self, staff_id: int, from_date: date, until_date: Optional[date] = None
    ) -> List[BookedInterval]:
        """Buffered intervals of the staff member's live appointments."""
        # One day of slack covers branches ahead of UTC
        query = select(Appointment).where(
            and_(
                Appointment.staff_id == staff_id,
                Appointment.status != AppointmentStatus.CANCELLED.value,
                Appointment.date >= date.fromordinal(from_date.toordinal() - 1),
            )
        )
        if until_date is not None:
            query = query.where(Appointment.date <= until_date)

        result = await self.db.execute(query)
        return [
            BookedInterval(
                date=appointment.date,
                **{
                    "from": appointment.buffered_from,
                    "to": appointment.buffered_to,
                },
            )
            for appointment in result.scalars().all()
        ]
