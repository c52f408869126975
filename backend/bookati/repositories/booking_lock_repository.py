# backend/bookati/repositories/booking_lock_repository.py
"""
Booking lock repository.

An "active" lock is one whose ``lock_expires_at`` lies strictly in the
future. Expiry is evaluated in SQL against the caller's clock so that no
naive/aware datetime comparison happens in Python.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking_lock import BookingLock
from .base_repository import BaseRepository


class BookingLockRepository(BaseRepository[BookingLock]):
    """Data access for booking locks."""

    def __init__(self, db: Session):
        super().__init__(db, BookingLock)

    def sum_active_reserved(
        self, slot_id: str, now: datetime, exclude_session_id: Optional[str] = None
    ) -> int:
        """
        Total capacity held by unexpired locks on a slot.

        Locks held by ``exclude_session_id`` are left out, so a requester
        moving its own booking does not compete with its own reservations.
        """
        try:
            query = self.db.query(
                func.coalesce(func.sum(BookingLock.reserved_capacity), 0)
            ).filter(BookingLock.slot_id == slot_id, BookingLock.lock_expires_at > now)
            if exclude_session_id is not None:
                query = query.filter(
                    or_(
                        BookingLock.reserved_by_session_id.is_(None),
                        BookingLock.reserved_by_session_id != exclude_session_id,
                    )
                )
            return int(query.scalar() or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error summing locks for slot {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to sum active locks: {str(e)}")

    def active_totals(
        self, slot_ids: Iterable[str], now: datetime, tenant_id: Optional[str] = None
    ) -> Dict[str, int]:
        """Map each requested slot id to the capacity held by its unexpired locks."""
        ids = list(dict.fromkeys(slot_ids))
        totals: Dict[str, int] = {slot_id: 0 for slot_id in ids}
        if not ids:
            return totals
        query = self.db.query(BookingLock.slot_id, func.sum(BookingLock.reserved_capacity)).filter(
            BookingLock.slot_id.in_(ids), BookingLock.lock_expires_at > now
        )
        if tenant_id is not None:
            query = query.filter(BookingLock.tenant_id == tenant_id)
        rows = query.group_by(BookingLock.slot_id).all()
        for slot_id, total in rows:
            totals[slot_id] = int(total or 0)
        return totals

    def get_for_update(self, lock_id: str) -> Optional[BookingLock]:
        return self.get_by_id(lock_id, for_update=True)

    def is_active(self, lock_id: str, now: datetime) -> bool:
        return (
            self.db.query(BookingLock.id)
            .filter(BookingLock.id == lock_id, BookingLock.lock_expires_at > now)
            .first()
            is not None
        )

    def delete_lock(self, lock_id: str) -> bool:
        """Delete by id without loading; True when a row was removed."""
        result = self.db.execute(delete(BookingLock).where(BookingLock.id == lock_id))
        return bool(result.rowcount)

    def delete_expired(self, now: datetime, tenant_id: Optional[str] = None) -> int:
        """Delete every lock whose expiry is at or before ``now``."""
        try:
            stmt = delete(BookingLock).where(BookingLock.lock_expires_at <= now)
            if tenant_id is not None:
                stmt = stmt.where(BookingLock.tenant_id == tenant_id)
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting expired locks: {str(e)}")
            raise RepositoryException(f"Failed to delete expired locks: {str(e)}")
