from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_booking.models.customer_info import CustomerInfo

logger = structlog.get_logger(__name__)

COUNTERS = frozenset(
    {
        "total_appointments",
        "cancelled_appointments",
        "completed_appointments",
        "no_show_appointments",
    }
)


class CustomerInfoService:
    """Payment details and appointment counters of customers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_customer_id(self, customer_id: int) -> Optional[CustomerInfo]:
        result = await self.db.execute(
            select(CustomerInfo).where(CustomerInfo.customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def increment_counter(
        self, customer_id: int, counter: str, first_transaction: Optional[bool] = None
    ) -> bool:
        """Atomically bump one appointment counter.

        Best-effort: a failure is logged and reported as ``False`` without
        affecting the appointment already committed by the caller.
        """
        if counter not in COUNTERS:
            raise ValueError(f"Unknown customer counter: {counter}")

        values = {counter: getattr(CustomerInfo, counter) + 1}
        if first_transaction is not None:
            values["first_transaction"] = first_transaction

        try:
            result = await self.db.execute(
                update(CustomerInfo)
                .where(CustomerInfo.customer_id == customer_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to update customer counter",
                customer_id=customer_id,
                counter=counter,
                exc_info=e,
            )
            return False

        if not result.rowcount:
            logger.warning(
                "Customer info not found for counter update",
                customer_id=customer_id,
                counter=counter,
            )
            return False
        return True
