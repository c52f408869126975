# backend/bookati/repositories/slot_repository.py
"""
Slot repository.

Owns every read of the capacity counters. Writers must go through
``get_for_update`` so that concurrent capacity changes on the same slot are
serialised by the database.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.shift import Shift
from ..models.slot import Slot
from .base_repository import BaseRepository


class SlotRepository(BaseRepository[Slot]):
    """Data access for slots and their capacity counters."""

    def __init__(self, db: Session):
        super().__init__(db, Slot)

    def get_for_tenant(
        self, slot_id: str, tenant_id: Optional[str] = None, *, for_update: bool = False
    ) -> Optional[Slot]:
        """
        Fetch a slot, optionally scoped to a tenant and row-locked.

        A slot owned by another tenant is reported as missing.
        """
        try:
            query = self.db.query(Slot).filter(Slot.id == slot_id)
            if tenant_id is not None:
                query = query.filter(Slot.tenant_id == tenant_id)
            if for_update:
                query = self._locked(query).populate_existing()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading slot {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to load slot: {str(e)}")

    def get_for_update(self, slot_id: str, tenant_id: Optional[str] = None) -> Optional[Slot]:
        return self.get_for_tenant(slot_id, tenant_id, for_update=True)

    def list_for_shift(
        self, shift_id: str, start_date: date, end_date: date
    ) -> List[Slot]:
        return (
            self.db.query(Slot)
            .filter(
                Slot.shift_id == shift_id,
                Slot.slot_date >= start_date,
                Slot.slot_date <= end_date,
            )
            .order_by(Slot.slot_date, Slot.start_time)
            .all()
        )

    def list_for_tenant(
        self,
        tenant_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 500,
    ) -> List[Slot]:
        query = self.db.query(Slot).filter(Slot.tenant_id == tenant_id)
        if start_date is not None:
            query = query.filter(Slot.slot_date >= start_date)
        if end_date is not None:
            query = query.filter(Slot.slot_date <= end_date)
        return query.order_by(Slot.slot_date, Slot.start_time).limit(limit).all()

    def list_following_service_capacity(
        self, service_id: str, from_date: date, *, for_update: bool = False
    ) -> List[Slot]:
        """
        Slots on or after ``from_date`` whose capacity comes from the service.

        Slots of shifts with their own ``capacity_per_slot`` are excluded.
        Rows come back in id order so concurrent writers lock them in the
        same sequence.
        """
        try:
            query = (
                self.db.query(Slot)
                .join(Shift, Slot.shift_id == Shift.id)
                .filter(
                    Shift.service_id == service_id,
                    Shift.capacity_per_slot.is_(None),
                    Slot.slot_date >= from_date,
                )
                .order_by(Slot.id)
            )
            if for_update:
                query = self._locked(query).populate_existing()
            return query.all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading slots for service {service_id}: {str(e)}")
            raise RepositoryException(f"Failed to load service slots: {str(e)}")

    def list_ids(self, tenant_id: Optional[str] = None) -> List[str]:
        query = self.db.query(Slot.id)
        if tenant_id is not None:
            query = query.filter(Slot.tenant_id == tenant_id)
        return [row[0] for row in query.order_by(Slot.id).all()]

    def insert_ignoring_duplicates(self, rows: List[Dict[str, Any]]) -> int:
        """
        Insert slot rows, skipping any that collide on (shift, date, start).

        Returns the number of rows actually inserted.
        """
        if not rows:
            return 0
        try:
            if self.dialect_name == "postgresql":
                stmt = (
                    pg_insert(Slot)
                    .values(rows)
                    .on_conflict_do_nothing(constraint="uq_slots_shift_date_start")
                )
                result = self.db.execute(stmt)
                return int(result.rowcount or 0)

            inserted = 0
            for row in rows:
                stmt = insert(Slot).values(**row)
                if self.dialect_name == "sqlite":
                    stmt = stmt.prefix_with("OR IGNORE")
                result = self.db.execute(stmt)
                inserted += int(result.rowcount or 0)
            return inserted
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting generated slots: {str(e)}")
            raise RepositoryException(f"Failed to insert slots: {str(e)}")
