import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salon_booking.core.database import Base


class ServiceStatus(enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class Service(Base):
    """Service model with duration, pricing, and buffer management."""

    __tablename__ = "services"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Service details
    duration_minutes = Column(Integer, nullable=False)
    price_amount = Column(Numeric(10, 2), nullable=False)

    # Buffer management
    buffer_before_minutes = Column(Integer, default=0, nullable=False)  # Setup
    buffer_after_minutes = Column(Integer, default=0, nullable=False)  # Cleanup

    status = Column(String(20), nullable=False, default=ServiceStatus.ACTIVE.value)

    # Tax
    tax_code = Column(String(50), nullable=True)
    stripe_product_id = Column(String(255), nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_positive_duration"),
        CheckConstraint("price_amount >= 0", name="check_non_negative_price"),
        CheckConstraint(
            "buffer_before_minutes >= 0 AND buffer_after_minutes >= 0",
            name="check_non_negative_buffers",
        ),
    )

    branch = relationship("Branch", back_populates="services")

    @property
    def is_active(self) -> bool:
        return self.status == ServiceStatus.ACTIVE.value

    @property
    def total_duration_minutes(self):
        """Total time including buffers."""
        return (
            self.duration_minutes
            + (self.buffer_before_minutes or 0)
            + (self.buffer_after_minutes or 0)
        )

    def __repr__(self):
        return (
            f"<Service(id={self.id}, name='{self.name}', "
            f"duration={self.duration_minutes}min, price=${self.price_amount})>"
        )
