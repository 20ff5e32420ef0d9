from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from salon_booking.core.database import Base


class CustomerInfo(Base):
    """Payment identifiers and appointment counters of a customer."""

    __tablename__ = "customer_info"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, nullable=False, unique=True, index=True)

    # Payments
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_payment_method_id = Column(String(255), nullable=True)
    first_transaction = Column(Boolean, default=True, nullable=False)

    # Counters
    total_appointments = Column(Integer, default=0, nullable=False)
    cancelled_appointments = Column(Integer, default=0, nullable=False)
    completed_appointments = Column(Integer, default=0, nullable=False)
    no_show_appointments = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def has_stored_payment_method(self) -> bool:
        return bool(self.stripe_customer_id and self.stripe_payment_method_id)

    def __repr__(self):
        return (
            f"<CustomerInfo(customer_id={self.customer_id}, "
            f"total={self.total_appointments})>"
        )
