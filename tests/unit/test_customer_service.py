"""Test customer counters."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.models.customer_info import CustomerInfo
from salon_booking.services.customer import CustomerInfoService
from tests.fixtures.booking_fixtures import CUSTOMER_ID, customer


class TestIncrementCounter:
    """Test best-effort counter updates."""

    @pytest.mark.asyncio
    async def test_increments_counter(self, db: AsyncSession, customer: CustomerInfo):
        service = CustomerInfoService(db)

        assert await service.increment_counter(CUSTOMER_ID, "total_appointments")
        assert await service.increment_counter(CUSTOMER_ID, "total_appointments")

        await db.refresh(customer)
        assert customer.total_appointments == 2
        assert customer.first_transaction is True

    @pytest.mark.asyncio
    async def test_clears_first_transaction(
        self, db: AsyncSession, customer: CustomerInfo
    ):
        service = CustomerInfoService(db)

        await service.increment_counter(
            CUSTOMER_ID, "completed_appointments", first_transaction=False
        )

        await db.refresh(customer)
        assert customer.completed_appointments == 1
        assert customer.first_transaction is False

    @pytest.mark.asyncio
    async def test_unknown_customer(self, db: AsyncSession):
        service = CustomerInfoService(db)

        assert await service.increment_counter(999, "no_show_appointments") is False

    @pytest.mark.asyncio
    async def test_unknown_counter(self, db: AsyncSession):
        service = CustomerInfoService(db)

        with pytest.raises(ValueError):
            await service.increment_counter(CUSTOMER_ID, "loyalty_points")

    @pytest.mark.asyncio
    async def test_database_error_is_not_fatal(
        self, db: AsyncSession, customer: CustomerInfo
    ):
        service = CustomerInfoService(db)

        with patch.object(
            db, "execute", AsyncMock(side_effect=SQLAlchemyError("database is locked"))
        ):
            updated = await service.increment_counter(
                CUSTOMER_ID, "cancelled_appointments"
            )

        assert updated is False
        found = await service.get_by_customer_id(CUSTOMER_ID)
        assert found.cancelled_appointments == 0
