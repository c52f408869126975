# backend/bookati/models/service.py
"""
Bookable service offered by a tenant.

Only the attributes the capacity core needs are modelled here: the default
slot length and capacity used when a shift is expanded into slots, and the
unit price used to charge the paid portion of a booking.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Service(Base):
    """A bookable offering (tour, session, ticketed visit)."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    capacity_per_slot = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("capacity_per_slot >= 0", name="ck_services_capacity_non_negative"),
        CheckConstraint(
            "duration_minutes IS NULL OR duration_minutes > 0",
            name="ck_services_duration_positive",
        ),
    )

    def __repr__(self) -> str:
        return f"<Service {self.id} {self.name!r}>"
