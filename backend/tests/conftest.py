"""
Shared fixtures.

Each test gets its own file-backed SQLite database. The engine issues
BEGIN IMMEDIATE for every transaction, so a session that has read anything
holds the write lock until it commits or rolls back. Tests that hand work to
another session (threads, Celery tasks) must end the ``db`` transaction
first.
"""

from datetime import date, time
from decimal import Decimal
from typing import Callable, Iterator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from bookati.api.dependencies import get_db
from bookati.database import Base, build_engine
from bookati.main import app
import bookati.models  # noqa: F401
from bookati.models.package import PackageSubscription
from bookati.models.slot import Slot
from bookati.services.package_quota_service import PackageQuotaService
from bookati.services.shift_service import ShiftService
from bookati.services.slot_service import SlotService
from tests.helpers import ALL_DAYS, SLOT_DATE, TENANT_ID


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'bookati_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory: sessionmaker) -> Iterator[Session]:
    """Create a new database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Create a test client bound to the test database session."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def tenant_headers() -> dict:
    return {"X-Tenant-ID": TENANT_ID}


@pytest.fixture
def make_slot(db: Session) -> Callable[..., Slot]:
    """
    Factory creating service -> shift -> one 09:00-10:00 slot on SLOT_DATE.

    The ``db`` transaction is committed before the slot is returned.
    """

    def _make(
        capacity: int = 5,
        price: Decimal = Decimal("25.00"),
        tenant_id: str = TENANT_ID,
        slot_date: date = SLOT_DATE,
    ) -> Slot:
        shifts = ShiftService(db)
        service = shifts.create_service(
            tenant_id=tenant_id, name="Harbour tour", capacity_per_slot=capacity, price=price
        )
        shift = shifts.create_shift(
            tenant_id=tenant_id,
            service_id=service.id,
            days_of_week=ALL_DAYS,
            start_time=time(9, 0),
            end_time=time(10, 0),
            slot_duration_minutes=60,
        )
        SlotService(db).create_slots_for_shift(shift.id, slot_date, slot_date, tenant_id=tenant_id)
        slot = db.query(Slot).filter(Slot.shift_id == shift.id).one()
        db.commit()
        return slot

    return _make


@pytest.fixture
def slot(make_slot: Callable[..., Slot]) -> Slot:
    return make_slot()


@pytest.fixture
def make_subscription(db: Session) -> Callable[..., PackageSubscription]:
    def _make(
        service_id: str,
        quantity: int,
        customer_id: str = "cust-1",
        tenant_id: str = TENANT_ID,
        extra: Optional[dict] = None,
    ) -> PackageSubscription:
        entitlements = {service_id: quantity}
        entitlements.update(extra or {})
        subscription = PackageQuotaService(db).activate_subscription(
            tenant_id=tenant_id,
            customer_id=customer_id,
            package_id="pkg-10",
            entitlements=entitlements,
        )
        db.commit()
        return subscription

    return _make
