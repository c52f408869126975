# backend/bookati/core/exceptions.py
"""
Domain-specific exceptions for the Bookati booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class CapacityExceededException(ConflictException):
    """Raised when a slot cannot hold the requested number of visitors."""

    def __init__(
        self,
        requested: int,
        claimable: int,
        *,
        slot_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message
            or f"Not enough tickets available. Only {max(claimable, 0)} available, "
            f"but {requested} requested.",
            code="CAPACITY_EXCEEDED",
            details={"slot_id": slot_id, "requested": requested, "claimable": max(claimable, 0)},
        )


class SlotUnavailableException(ConflictException):
    """Raised when a slot has been disabled by its owner."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="Slot is not available",
            code="SLOT_UNAVAILABLE",
            details={"slot_id": slot_id},
        )


class LockExpiredOrInvalidException(ConflictException):
    """Raised when a booking references a lock that is gone, expired or mismatched."""

    status_code = status.HTTP_410_GONE

    def __init__(self, lock_id: Optional[str], reason: str):
        super().__init__(
            message="Reservation expired, please retry",
            code="LOCK_EXPIRED_OR_INVALID",
            details={"lock_id": lock_id, "reason": reason},
        )


class InsufficientQuotaException(BusinessRuleException):
    """Raised when a package ledger entry cannot cover the requested quantity."""

    def __init__(
        self,
        subscription_id: str,
        service_id: str,
        requested: int,
        remaining: int,
        *,
        code: str = "INSUFFICIENT_QUOTA",
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message
            or f"Package quota exhausted: {remaining} remaining, {requested} requested",
            code=code,
            details={
                "subscription_id": subscription_id,
                "service_id": service_id,
                "requested": requested,
                "remaining": remaining,
            },
        )


class QuotaExhaustedException(InsufficientQuotaException):
    """Raised when a booking insists on package coverage the ledger cannot give."""

    def __init__(self, subscription_id: str, service_id: str, requested: int, remaining: int):
        super().__init__(
            subscription_id,
            service_id,
            requested,
            remaining,
            code="QUOTA_EXHAUSTED",
            message="Package quota exhausted and paid fallback is not allowed",
        )


class InvalidTransitionException(ConflictException):
    """Raised when a booking status change is not permitted."""

    def __init__(self, booking_id: str, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot change booking status from {current_status} to {requested_status}",
            code="INVALID_TRANSITION",
            details={
                "booking_id": booking_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class CapacityInvariantViolation(ServiceException):
    """
    Raised when a capacity or quota adjustment would break a counter invariant.

    This never happens under correct lock discipline, so it signals a defect
    rather than a condition a client can retry.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="CAPACITY_INVARIANT_VIOLATION", details=details)


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_db_pool_exhaustion(exc: Exception) -> bool:
    """
    Check if an exception indicates DB connection pool exhaustion.

    This is a common failure mode under high load when all database
    connections are in use and new requests time out waiting.
    """
    error_str = str(exc).lower()
    return "queuepool" in error_str or (
        "timeout" in error_str and ("connection" in error_str or "pool" in error_str)
    )
