from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union

import structlog
from redis import RedisError
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salon_booking.core.exceptions import (
    BookingEngineError,
    CancellationWindowClosedError,
    InvalidInputError,
    NotFoundError,
    PaymentMethodRequiredError,
    SlotConflictError,
)
from salon_booking.core.redis import RedisClient
from salon_booking.models.appointment import Appointment
from salon_booking.models.branch import Branch
from salon_booking.scheduling.intervals import (
    Clock,
    TimeWindow,
    get_zone,
    local_datetime,
    parse_iso_date,
    parse_wall_clock,
    shift_wall_clock,
    utc_now,
)
from salon_booking.schemas.booking import (
    AppointmentRead,
    AppointmentStatus,
    BookingActions,
    BookingDecision,
    BookingRejection,
    BookingRequest,
    CalendarEntry,
    CancellationQuote,
    CancellationResult,
    CustomerBooking,
    CustomerBookingList,
    StatusChangeResult,
)
from salon_booking.services.customer import CustomerInfoService
from salon_booking.services.payments import PaymentGateway
from salon_booking.services.policy import (
    cancellation_deadline,
    is_late_cancellation,
    is_payment_method_required,
    snapshot_policy,
)
from salon_booking.services.scheduling import SchedulingEngineService
from salon_booking.services.tax import TaxCalculator, price_breakdown

logger = structlog.get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


class BookingService:
    """Booking admission and the lifecycle of admitted appointments."""

    def __init__(
        self,
        db: AsyncSession,
        tax_calculator: TaxCalculator,
        payment_gateway: PaymentGateway,
        slot_lock: Optional[RedisClient] = None,
        clock: Clock = utc_now,
        lock_wait_seconds: float = 5.0,
    ):
        self.db = db
        self.tax_calculator = tax_calculator
        self.payment_gateway = payment_gateway
        self.slot_lock = slot_lock
        self.clock = clock
        self.lock_wait_seconds = lock_wait_seconds
        self.scheduling = SchedulingEngineService(db, clock)
        self.customers = CustomerInfoService(db)

    # Admission

    async def request_booking(self, request: BookingRequest) -> BookingDecision:
        """
        Admit or reject a booking request.

        Checks run in a fixed order: referenced entities exist, a payment
        method is on file when the branch collects fees, tax is quoted, and
        the slot is still free. Only then is the appointment stored.

        Returns:
            BookingDecision carrying either the stored appointment or the
            first rejection reason encountered
        """
        try:
            appointment = await self._admit(request)
        except BookingEngineError as e:
            logger.warning(
                "Booking rejected",
                reason=e.reason.value,
                staff_id=request.staff_id,
                date=request.date.isoformat(),
                time=request.time,
                customer_id=request.customer_id,
            )
            return BookingDecision(
                admitted=False,
                rejection=BookingRejection(
                    reason=e.reason,
                    message=e.message,
                    retriable=e.retriable,
                    details=e.details,
                ),
            )

        result = AppointmentRead.model_validate(appointment)
        await self.customers.increment_counter(
            request.customer_id, "total_appointments"
        )

        logger.info(
            "Booking admitted",
            appointment_id=result.id,
            staff_id=request.staff_id,
            date=request.date.isoformat(),
            time=request.time,
        )
        return BookingDecision(admitted=True, appointment=result)

    async def _admit(self, request: BookingRequest) -> Appointment:
        # 1. Referenced entities
        branch = await self.scheduling.get_branch(request.branch_id)
        booking_settings = await self.scheduling.get_booking_settings(
            request.branch_id
        )
        service = await self.scheduling.get_active_service(
            request.service_id, request.branch_id
        )
        tz = get_zone(branch.timezone)

        # 2. Payment method
        policy = booking_settings.policy
        customer = await self.customers.get_by_customer_id(request.customer_id)
        if is_payment_method_required(policy, customer):
            raise PaymentMethodRequiredError(
                "A payment method is required to book at this branch",
                details={"customer_id": request.customer_id},
            )

        # 3. Tax
        tax = await self.tax_calculator.calculate(
            service.price_amount,
            branch.tax_address,
            tax_code=service.tax_code,
            reference=str(service.uuid),
        )
        price = price_breakdown(service.price_amount, tax)

        # 4. Slot re-check and 5. persist
        start_minutes = parse_wall_clock(request.time)
        if start_minutes + service.duration_minutes > MINUTES_PER_DAY:
            raise InvalidInputError(
                "Service would end after midnight",
                details={"time": request.time, "duration": service.duration_minutes},
            )
        booked_to = shift_wall_clock(request.time, service.duration_minutes)
        appointment = Appointment(
            staff_id=request.staff_id,
            branch_id=request.branch_id,
            service_id=request.service_id,
            customer_id=request.customer_id,
            date=request.date,
            booked_from=request.time,
            booked_to=booked_to,
            buffered_from=shift_wall_clock(
                request.time, -(service.buffer_before_minutes or 0)
            ),
            buffered_to=shift_wall_clock(booked_to, service.buffer_after_minutes or 0),
            service_fee=price.service_fee,
            tax=price.tax,
            tax_rate=price.tax_rate,
            total_price=price.total,
            policy=snapshot_policy(policy, service.price_amount).model_dump(
                mode="json"
            ),
            status=AppointmentStatus.PENDING.value,
        )

        date_key = request.date.isoformat()
        token = await self._acquire_lock(request.staff_id, date_key)
        try:
            await self._ensure_slot_free(appointment, tz)
            self.db.add(appointment)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise SlotConflictError(
                "This time slot has just been booked",
                details={"date": date_key, "time": request.time},
            ) from e
        finally:
            if token:
                await self.slot_lock.release_slot_lock(
                    request.staff_id, date_key, token
                )

        await self.db.refresh(appointment)
        return appointment

    async def _acquire_lock(self, staff_id: int, date_key: str) -> Optional[str]:
        if self.slot_lock is None:
            return None
        try:
            token = await self.slot_lock.acquire_slot_lock(
                staff_id, date_key, wait_seconds=self.lock_wait_seconds
            )
        except RedisError as e:
            # The unique index still guards identical start times
            logger.warning(
                "Slot lock unavailable, continuing without it",
                staff_id=staff_id,
                date=date_key,
                error=str(e),
            )
            return None
        if token is None:
            raise SlotConflictError(
                "This time slot is being booked by another request",
                details={"date": date_key},
            )
        return token

    async def _ensure_slot_free(self, candidate: Appointment, tz) -> None:
        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.staff_id == candidate.staff_id,
                    Appointment.date == candidate.date,
                    Appointment.status != AppointmentStatus.CANCELLED.value,
                )
            )
        )
        wanted = TimeWindow.from_wall_clock(
            candidate.date, candidate.buffered_from, candidate.buffered_to, tz
        )
        for existing in result.scalars().all():
            taken = TimeWindow.from_wall_clock(
                existing.date, existing.buffered_from, existing.buffered_to, tz
            )
            if existing.booked_from == candidate.booked_from or wanted.overlaps(taken):
                raise SlotConflictError(
                    "This time slot is no longer available",
                    details={
                        "date": candidate.date.isoformat(),
                        "time": candidate.booked_from,
                        "conflicts_with": existing.id,
                    },
                )

    # Cancellation

    async def check_cancellation(self, appointment_id: int) -> CancellationQuote:
        """Whether cancelling now is free, and the fee owed if it is not."""
        appointment = await self._get_appointment(appointment_id)
        appointment.ensure_can_transition_to(AppointmentStatus.CANCELLED)
        return self._quote(appointment, self.clock())

    def _quote(self, appointment: Appointment, now: datetime) -> CancellationQuote:
        start = self._start_of(appointment)
        cancel_fee = appointment.policy_snapshot.cancel_fee
        window = (cancel_fee.window or 0) if cancel_fee.enabled else 0
        late = is_late_cancellation(start, window, now)
        charge = cancel_fee.enabled and late and bool(cancel_fee.fee)

        if charge:
            message = f"Cancelling now incurs a fee of {cancel_fee.fee}"
        elif late:
            message = "The free cancellation window has closed, no fee applies"
        else:
            message = "Cancellation is free"

        return CancellationQuote(
            appointment_id=appointment.id,
            late=late,
            charge=charge,
            fee=cancel_fee.fee if charge else None,
            free_until=cancellation_deadline(start, window),
            message=message,
        )

    async def cancel_booking(
        self, appointment_id: int, confirmed_charge: bool = False
    ) -> CancellationResult:
        """
        Cancel a pending appointment.

        A late cancellation under an enabled cancel fee is only accepted when
        the caller has confirmed the charge; the fee is collected before the
        status changes.
        """
        appointment = await self._get_appointment(appointment_id)
        appointment.ensure_can_transition_to(AppointmentStatus.CANCELLED)
        now = self.clock()
        quote = self._quote(appointment, now)

        fee_charged = None
        if quote.charge:
            if not confirmed_charge:
                raise CancellationWindowClosedError(
                    "The free cancellation window has just closed",
                    details={
                        "fee": str(quote.fee),
                        "free_until": quote.free_until.isoformat(),
                    },
                )
            fee_charged = await self._charge(
                appointment, quote.fee, "Cancellation fee"
            )

        appointment.transition_to(AppointmentStatus.CANCELLED, now)
        appointment.fee_charged = fee_charged
        await self.db.commit()

        await self.customers.increment_counter(
            appointment.customer_id, "cancelled_appointments"
        )
        logger.info(
            "Appointment cancelled",
            appointment_id=appointment_id,
            fee_charged=str(fee_charged) if fee_charged else None,
        )
        return CancellationResult(
            appointment_id=appointment_id,
            cancelled=True,
            fee_charged=fee_charged,
            message=(
                f"Appointment cancelled, {fee_charged} charged"
                if fee_charged
                else "Appointment cancelled"
            ),
        )

    # Status lifecycle

    async def mark_completed(self, appointment_id: int) -> StatusChangeResult:
        appointment = await self._get_appointment(appointment_id)
        appointment.transition_to(AppointmentStatus.COMPLETED, self.clock())
        await self.db.commit()

        await self.customers.increment_counter(
            appointment.customer_id, "completed_appointments", first_transaction=False
        )
        logger.info("Appointment completed", appointment_id=appointment_id)
        return StatusChangeResult(
            appointment_id=appointment_id, status=AppointmentStatus.COMPLETED
        )

    async def mark_no_show(self, appointment_id: int) -> StatusChangeResult:
        """Record a no-show, charging the snapshotted no-show fee if enabled."""
        appointment = await self._get_appointment(appointment_id)
        appointment.ensure_can_transition_to(AppointmentStatus.NO_SHOW)

        fee_charged = None
        no_show_fee = appointment.policy_snapshot.no_show_fee
        if no_show_fee.enabled and no_show_fee.fee:
            fee_charged = await self._charge(
                appointment, no_show_fee.fee, "No-show fee"
            )

        appointment.transition_to(AppointmentStatus.NO_SHOW, self.clock())
        appointment.fee_charged = fee_charged
        await self.db.commit()

        await self.customers.increment_counter(
            appointment.customer_id, "no_show_appointments"
        )
        logger.info(
            "Appointment marked as no-show",
            appointment_id=appointment_id,
            fee_charged=str(fee_charged) if fee_charged else None,
        )
        return StatusChangeResult(
            appointment_id=appointment_id,
            status=AppointmentStatus.NO_SHOW,
            fee_charged=fee_charged,
        )

    async def _charge(
        self, appointment: Appointment, amount: Decimal, description: str
    ) -> Decimal:
        customer = await self.customers.get_by_customer_id(appointment.customer_id)
        if customer is None:
            raise PaymentMethodRequiredError(
                "Customer has no stored payment method",
                details={"customer_id": appointment.customer_id},
            )
        await self.payment_gateway.charge(
            customer,
            amount,
            description,
            metadata={"appointment_id": str(appointment.uuid)},
        )
        return amount

    # Listings

    async def list_customer_bookings(
        self, customer_id: int, limit: int = 20
    ) -> CustomerBookingList:
        """Most recent bookings of a customer with the actions open to them."""
        if limit <= 0:
            raise InvalidInputError("Limit must be positive", details={"limit": limit})

        total_count = (
            await self.db.execute(
                select(func.count(Appointment.id)).where(
                    Appointment.customer_id == customer_id
                )
            )
        ).scalar()

        result = await self.db.execute(
            select(Appointment)
            .options(selectinload(Appointment.branch))
            .where(Appointment.customer_id == customer_id)
            .order_by(
                Appointment.date.desc(),
                Appointment.booked_from.desc(),
                Appointment.id.desc(),
            )
            .limit(limit)
        )

        now = self.clock()
        bookings = []
        for appointment in result.scalars().all():
            pending = appointment.status == AppointmentStatus.PENDING.value
            started = self._start_of(appointment) <= now
            bookings.append(
                CustomerBooking(
                    **AppointmentRead.model_validate(appointment).model_dump(
                        by_alias=True
                    ),
                    actions=BookingActions(
                        cancellable=pending and not started,
                        payable=pending and started,
                    ),
                )
            )
        return CustomerBookingList(bookings=bookings, total_count=total_count or 0)

    async def get_staff_calendar(
        self,
        staff_id: int,
        branch_id: int,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> List[CalendarEntry]:
        """Live appointments of a staff member between two dates, inclusive."""
        start_date = parse_iso_date(start_date)
        end_date = parse_iso_date(end_date)
        if end_date < start_date:
            raise InvalidInputError(
                "End date precedes start date",
                details={
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                },
            )
        await self.scheduling.get_branch(branch_id)

        result = await self.db.execute(
            select(Appointment)
            .options(selectinload(Appointment.branch))
            .where(
                and_(
                    Appointment.staff_id == staff_id,
                    Appointment.branch_id == branch_id,
                    Appointment.date >= start_date,
                    Appointment.date <= end_date,
                    Appointment.status != AppointmentStatus.CANCELLED.value,
                )
            )
            .order_by(Appointment.date, Appointment.booked_from)
        )

        now = self.clock()
        return [
            CalendarEntry(
                **AppointmentRead.model_validate(appointment).model_dump(
                    by_alias=True
                ),
                is_past=self._start_of(appointment) < now,
            )
            for appointment in result.scalars().all()
        ]

    # Helpers

    async def _get_appointment(self, appointment_id: int) -> Appointment:
        result = await self.db.execute(
            select(Appointment)
            .options(selectinload(Appointment.branch))
            .where(Appointment.id == appointment_id)
        )
        appointment = result.scalar_one_or_none()
        if not appointment:
            raise NotFoundError(
                f"Appointment {appointment_id} not found",
                details={"appointment_id": appointment_id},
            )
        return appointment

    @staticmethod
    def _start_of(appointment: Appointment) -> datetime:
        branch: Branch = appointment.branch
        return local_datetime(
            appointment.date, appointment.booked_from, get_zone(branch.timezone)
        )
