# backend/bookati/repositories/shift_repository.py
"""Repositories for shifts and the services they belong to."""

from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..models.service import Service
from ..models.shift import Shift
from .base_repository import BaseRepository


class ServiceRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_for_tenant(
        self, service_id: str, tenant_id: Optional[str] = None, *, for_update: bool = False
    ) -> Optional[Service]:
        query = self.db.query(Service).filter(Service.id == service_id)
        if tenant_id is not None:
            query = query.filter(Service.tenant_id == tenant_id)
        if for_update:
            query = self._locked(query).populate_existing()
        return query.first()

    def list_ids(self, tenant_id: Optional[str] = None) -> List[str]:
        query = self.db.query(Service.id)
        if tenant_id is not None:
            query = query.filter(Service.tenant_id == tenant_id)
        return [row[0] for row in query.order_by(Service.id).all()]


class ShiftRepository(BaseRepository[Shift]):
    def __init__(self, db: Session):
        super().__init__(db, Shift)

    def get_with_service(self, shift_id: str, tenant_id: Optional[str] = None) -> Optional[Shift]:
        """Load a shift together with its service defaults."""
        query = (
            self.db.query(Shift)
            .options(joinedload(Shift.service))
            .filter(Shift.id == shift_id)
        )
        if tenant_id is not None:
            query = query.filter(Shift.tenant_id == tenant_id)
        return query.first()
