"""BaseService transaction handling and metrics, with a mocked session."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from bookati.core.exceptions import ConflictException, NotFoundException, ServiceException
from bookati.services.base import BaseService, is_lock_conflict


class _PgError(Exception):
    def __init__(self, pgcode: str):
        super().__init__("pg error")
        self.pgcode = pgcode


class DummyService(BaseService):
    @BaseService.measure_operation("do_work")
    def do_work(self, fail: bool = False) -> str:
        if fail:
            raise NotFoundException("nope")
        return "done"


class TestTransaction:
    def test_commits_on_success(self):
        db = MagicMock()
        service = BaseService(db)

        with service.transaction():
            db.add("row")

        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_rolls_back_and_reraises_domain_errors(self):
        db = MagicMock()
        service = BaseService(db)

        with pytest.raises(NotFoundException):
            with service.transaction():
                raise NotFoundException("missing")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_lock_conflict_becomes_retryable_conflict(self):
        db = MagicMock()
        service = BaseService(db)
        error = OperationalError("UPDATE slots", {}, Exception("database is locked"))

        with pytest.raises(ConflictException) as exc_info:
            with service.transaction():
                raise error

        assert exc_info.value.code == "CONCURRENT_UPDATE"
        assert exc_info.value.details == {"retryable": True}
        db.rollback.assert_called_once()

    def test_other_database_errors_become_service_errors(self):
        db = MagicMock()
        service = BaseService(db)

        with pytest.raises(ServiceException):
            with service.transaction():
                raise IntegrityError("INSERT", {}, Exception("constraint failed"))

        db.rollback.assert_called_once()


class TestIsLockConflict:
    def test_postgres_deadlock_code(self):
        error = OperationalError("SELECT", {}, _PgError("40P01"))
        assert is_lock_conflict(error) is True

    def test_serialization_failure_code(self):
        error = OperationalError("SELECT", {}, _PgError("40001"))
        assert is_lock_conflict(error) is True

    def test_unrelated_error(self):
        error = OperationalError("SELECT", {}, Exception("no such table: slots"))
        assert is_lock_conflict(error) is False


class TestMeasureOperation:
    def test_records_success_and_failure(self):
        service = DummyService(MagicMock())

        assert service.do_work() == "done"
        with pytest.raises(NotFoundException):
            service.do_work(fail=True)

        stats = service.get_metrics()["do_work"]
        assert stats["count"] >= 2
        assert stats["success_count"] >= 1
        assert stats["failure_count"] >= 1
        assert 0.0 < stats["success_rate"] < 1.0

    def test_logger_named_after_class(self):
        assert DummyService(MagicMock()).logger.name == "DummyService"
