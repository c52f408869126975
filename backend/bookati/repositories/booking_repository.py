# backend/bookati/repositories/booking_repository.py
"""
Booking repository.

The active-visitor aggregate here is the ground truth that reconciliation
rebuilds slot counters from.
"""

from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking
from .base_repository import BaseRepository


class BookingRepository(BaseRepository[Booking]):
    """Data access for bookings."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_for_tenant(
        self, booking_id: str, tenant_id: Optional[str] = None, *, for_update: bool = False
    ) -> Optional[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.id == booking_id)
            if tenant_id is not None:
                query = query.filter(Booking.tenant_id == tenant_id)
            if for_update:
                query = self._locked(query).populate_existing()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def active_visitor_stats(self, slot_id: str) -> Tuple[int, int]:
        """(booking count, visitor total) over the slot's pending and confirmed bookings."""
        count, total = (
            self.db.query(
                func.count(Booking.id),
                func.coalesce(func.sum(Booking.visitor_count), 0),
            )
            .filter(
                Booking.slot_id == slot_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .one()
        )
        return int(count or 0), int(total or 0)
