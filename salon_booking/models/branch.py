import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from salon_booking.core.database import Base
from salon_booking.utils.validation import validate_timezone_name


class Branch(Base):
    """Physical business location with its own timezone and tax address."""

    __tablename__ = "branches"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)
    name = Column(String(255), nullable=False)

    # Address used for tax quotes
    address_line1 = Column(String(255), nullable=False)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state_code = Column(String(10), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country_code = Column(String(2), nullable=False, default="US")

    # Location & timezone
    timezone = Column(String(50), nullable=False, default="UTC")

    # Status
    is_opened = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    booking_settings = relationship(
        "BookingSettings", back_populates="branch", uselist=False
    )
    services = relationship("Service", back_populates="branch")

    @validates("timezone")
    def validate_timezone(self, key, value):
        if not validate_timezone_name(value):
            raise ValueError(f"{value} is not a valid time zone")
        return value

    @property
    def tax_address(self) -> dict:
        """Address in the shape the tax collaborator expects."""
        address = {
            "line1": self.address_line1,
            "city": self.city,
            "state": self.state_code,
            "postal_code": self.postal_code,
            "country": self.country_code,
        }
        if self.address_line2:
            address["line2"] = self.address_line2
        return address

    def __repr__(self):
        return f"<Branch(id={self.id}, name='{self.name}', timezone='{self.timezone}')>"
