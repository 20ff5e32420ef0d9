import uuid

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
    event,
    inspect,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from salon_booking.core.database import Base
from salon_booking.core.exceptions import InvalidStatusTransitionError
from salon_booking.schemas.booking import (
    AppointmentStatus,
    PolicySnapshot,
    PriceBreakdown,
)
from salon_booking.schemas.scheduling import TimeRange

# Only pending appointments may change state
ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
}

# Columns that may change after admission
MUTABLE_COLUMNS = frozenset(
    {"status", "status_changed_at", "cancelled_at", "fee_charged", "updated_at"}
)

_ACTIVE_ONLY = text("status <> 'cancelled'")


class Appointment(Base):
    """Admitted booking of one service with one staff member at one branch.

    Times are branch-local "HH:mm" strings on ``date``; the price and fee
    policy are frozen at admission.
    """

    __tablename__ = "appointments"

    # Core identity
    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(Uuid, unique=True, nullable=False, default=uuid.uuid4, index=True)

    # Parties
    staff_id = Column(Integer, nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    customer_id = Column(Integer, nullable=False, index=True)

    # Timing
    date = Column(Date, nullable=False)
    booked_from = Column(String(5), nullable=False)
    booked_to = Column(String(5), nullable=False)
    buffered_from = Column(String(5), nullable=False)
    buffered_to = Column(String(5), nullable=False)

    # Price
    service_fee = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(6, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Fee policy snapshot
    policy = Column(JSON, nullable=False)

    # Status tracking
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    fee_charged = Column(Numeric(10, 2), nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        # At most one live appointment per staff member per start time
        Index(
            "uq_appointments_staff_slot",
            "staff_id",
            "date",
            "booked_from",
            unique=True,
            postgresql_where=_ACTIVE_ONLY,
            sqlite_where=_ACTIVE_ONLY,
        ),
        Index("idx_appointments_staff_date", "staff_id", "date"),
    )

    service = relationship("Service")
    branch = relationship("Branch")

    @property
    def booked_time(self) -> TimeRange:
        return TimeRange(**{"from": self.booked_from, "to": self.booked_to})

    @property
    def booked_time_with_buffer(self) -> TimeRange:
        return TimeRange(**{"from": self.buffered_from, "to": self.buffered_to})

    @property
    def price(self) -> PriceBreakdown:
        return PriceBreakdown(
            service_fee=self.service_fee,
            tax=self.tax,
            tax_rate=self.tax_rate,
            total=self.total_price,
        )

    @property
    def policy_snapshot(self) -> PolicySnapshot:
        return PolicySnapshot.model_validate(self.policy)

    @property
    def current_status(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS.get(self.current_status, set())

    def ensure_can_transition_to(self, new_status: AppointmentStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidStatusTransitionError(
                f"Cannot change appointment from {self.status} to {new_status.value}",
                details={"from": self.status, "to": new_status.value},
            )

    def transition_to(self, new_status: AppointmentStatus, at) -> None:
        self.ensure_can_transition_to(new_status)
        self.status = new_status.value
        self.status_changed_at = at
        if new_status == AppointmentStatus.CANCELLED:
            self.cancelled_at = at

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, staff_id={self.staff_id}, date={self.date}, "
            f"time={self.booked_from}-{self.booked_to}, status={self.status})>"
        )


@event.listens_for(Appointment, "before_update")
def _freeze_admitted_fields(mapper, connection, target):
    state = inspect(target)
    changed = [
        prop.key
        for prop in mapper.column_attrs
        if prop.key not in MUTABLE_COLUMNS
        and state.attrs[prop.key].history.has_changes()
    ]
    if changed:
        raise ValueError(
            f"Appointment fields are immutable after admission: {', '.join(changed)}"
        )
