# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    booking_settings,
    branch,
    customer_info,
    opening_hours,
    service,
)

__all__ = [
    "appointment",
    "booking_settings",
    "branch",
    "customer_info",
    "opening_hours",
    "service",
]
