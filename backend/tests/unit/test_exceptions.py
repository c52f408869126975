"""Status codes and HTTP payloads of the domain exception hierarchy."""

import pytest

from bookati.core.exceptions import (
    BusinessRuleException,
    CapacityExceededException,
    CapacityInvariantViolation,
    ConflictException,
    InsufficientQuotaException,
    InvalidTransitionException,
    LockExpiredOrInvalidException,
    NotFoundException,
    QuotaExhaustedException,
    SlotUnavailableException,
    ValidationException,
    is_db_pool_exhaustion,
)


@pytest.mark.parametrize(
    "exc, expected_status",
    [
        (NotFoundException("missing"), 404),
        (ValidationException("bad"), 400),
        (CapacityExceededException(3, 1, slot_id="s1"), 409),
        (SlotUnavailableException("s1"), 409),
        (LockExpiredOrInvalidException("l1", "expired"), 410),
        (InvalidTransitionException("b1", "cancelled", "confirmed"), 409),
        (InsufficientQuotaException("sub", "svc", 3, 1), 422),
        (QuotaExhaustedException("sub", "svc", 3, 1), 422),
        (CapacityInvariantViolation("broken"), 500),
    ],
)
def test_status_codes(exc, expected_status):
    assert exc.status_code == expected_status
    assert exc.to_http_exception().status_code == expected_status


def test_capacity_exceeded_reports_non_negative_claimable():
    exc = CapacityExceededException(2, -3, slot_id="slot-1")

    assert exc.code == "CAPACITY_EXCEEDED"
    assert exc.details == {"slot_id": "slot-1", "requested": 2, "claimable": 0}
    assert "Only 0 available" in exc.message


def test_lock_expired_message_asks_client_to_retry():
    exc = LockExpiredOrInvalidException("lock-1", "session_mismatch")

    assert isinstance(exc, ConflictException)
    assert exc.message == "Reservation expired, please retry"
    assert exc.details["reason"] == "session_mismatch"


def test_quota_exhausted_is_insufficient_quota_with_own_code():
    exc = QuotaExhaustedException("sub-1", "svc-1", 4, 1)

    assert isinstance(exc, InsufficientQuotaException)
    assert isinstance(exc, BusinessRuleException)
    assert exc.code == "QUOTA_EXHAUSTED"
    assert exc.details["remaining"] == 1


def test_to_http_exception_carries_code_and_details():
    http_exc = InvalidTransitionException("b1", "completed", "pending").to_http_exception()

    assert http_exc.detail["code"] == "INVALID_TRANSITION"
    assert http_exc.detail["details"]["current_status"] == "completed"


def test_default_code_is_class_name():
    assert NotFoundException("x").code == "NotFoundException"


@pytest.mark.parametrize(
    "message, expected",
    [
        ("QueuePool limit of size 5 overflow 10 reached", True),
        ("connection timeout expired", True),
        ("database is locked", False),
    ],
)
def test_is_db_pool_exhaustion(message, expected):
    assert is_db_pool_exhaustion(Exception(message)) is expected
