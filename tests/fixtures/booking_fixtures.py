from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.models.appointment import Appointment
from salon_booking.models.booking_settings import BookingSettings
from salon_booking.models.branch import Branch
from salon_booking.models.customer_info import CustomerInfo
from salon_booking.models.opening_hours import OpeningHours
from salon_booking.models.service import Service

# Monday 2024-03-04 10:00 in America/New_York (EST, before the DST change)
FIXED_NOW = datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc)

STAFF_ID = 7
CUSTOMER_ID = 42

WORKING_DAY = [{"from": "09:00", "to": "17:00"}]


def fixed_clock(now: datetime = FIXED_NOW):
    """Clock returning a constant instant."""
    return lambda: now


@pytest.fixture
async def branch(db: AsyncSession) -> Branch:
    """Create a branch in New York."""
    branch = Branch(
        name="Downtown Salon",
        address_line1="1 Main St",
        city="New York",
        state_code="NY",
        postal_code="10001",
        country_code="US",
        timezone="America/New_York",
        is_active=True,
    )
    db.add(branch)
    await db.commit()
    await db.refresh(branch)
    return branch


@pytest.fixture
async def booking_settings(db: AsyncSession, branch: Branch) -> BookingSettings:
    """Booking settings with no lead time, a week-long window and no fees."""
    booking_settings = BookingSettings(
        branch_id=branch.id,
        lead_time_hours=0,
        booking_window_days=7,
    )
    db.add(booking_settings)
    await db.commit()
    await db.refresh(booking_settings)
    return booking_settings


@pytest.fixture
async def fee_settings(db: AsyncSession, branch: Branch) -> BookingSettings:
    """Booking settings collecting a 50% cancel fee (24h notice) and a $30 no-show fee."""
    booking_settings = BookingSettings(
        branch_id=branch.id,
        lead_time_hours=0,
        booking_window_days=7,
        collect_cancel_fee=True,
        cancel_fee_type="percent",
        cancel_fee_value=Decimal("50"),
        cancellation_notice_hours=24,
        collect_no_show_fee=True,
        no_show_fee_type="fixed",
        no_show_fee_value=Decimal("30"),
    )
    db.add(booking_settings)
    await db.commit()
    await db.refresh(booking_settings)
    return booking_settings


@pytest.fixture
async def service(db: AsyncSession, branch: Branch) -> Service:
    """One hour haircut with a 15 minute cleanup buffer."""
    service = Service(
        branch_id=branch.id,
        name="Haircut",
        duration_minutes=60,
        price_amount=Decimal("100.00"),
        buffer_before_minutes=0,
        buffer_after_minutes=15,
        tax_code="txcd_20030000",
    )
    db.add(service)
    await db.commit()
    await db.refresh(service)
    return service


@pytest.fixture
async def opening_hours(db: AsyncSession, branch: Branch) -> OpeningHours:
    """Staff member working 09:00-17:00 on weekdays."""
    opening_hours = OpeningHours(
        staff_id=STAFF_ID,
        branch_id=branch.id,
        monday=WORKING_DAY,
        tuesday=WORKING_DAY,
        wednesday=WORKING_DAY,
        thursday=WORKING_DAY,
        friday=WORKING_DAY,
    )
    db.add(opening_hours)
    await db.commit()
    await db.refresh(opening_hours)
    return opening_hours


@pytest.fixture
async def customer(db: AsyncSession) -> CustomerInfo:
    """Customer with a stored card."""
    customer = CustomerInfo(
        customer_id=CUSTOMER_ID,
        stripe_customer_id="cus_test",
        stripe_payment_method_id="pm_test",
    )
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


@pytest.fixture
def tax_calculator():
    calculator = AsyncMock()
    calculator.calculate.return_value = Decimal("8.88")
    return calculator


@pytest.fixture
def payment_gateway():
    gateway = AsyncMock()
    gateway.charge.return_value = "pi_test"
    return gateway


NO_FEE_POLICY = {
    "cancel_fee": {"enabled": False, "window": None, "fee": None},
    "no_show_fee": {"enabled": False, "fee": None},
}


async def create_appointment(
    db: AsyncSession,
    branch: Branch,
    service: Service,
    day: date,
    booked_from: str,
    booked_to: str,
    buffered_to: Optional[str] = None,
    status: str = "pending",
    customer_id: int = CUSTOMER_ID,
    policy: Optional[dict] = None,
) -> Appointment:
    """Insert an appointment directly, bypassing admission."""
    appointment = Appointment(
        staff_id=STAFF_ID,
        branch_id=branch.id,
        service_id=service.id,
        customer_id=customer_id,
        date=day,
        booked_from=booked_from,
        booked_to=booked_to,
        buffered_from=booked_from,
        buffered_to=buffered_to or booked_to,
        service_fee=Decimal("100.00"),
        tax=Decimal("8.88"),
        tax_rate=Decimal("8.88"),
        total_price=Decimal("108.88"),
        policy=policy or NO_FEE_POLICY,
        status=status,
    )
    db.add(appointment)
    await db.commit()
    await db.refresh(appointment)
    return appointment
