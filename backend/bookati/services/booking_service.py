# backend/bookati/services/booking_service.py
"""
Booking Lifecycle service.

States:

    pending   -> confirmed | cancelled | completed
    confirmed -> cancelled | completed
    cancelled, completed: terminal

Capacity and quota effects key off membership of the active set
{pending, confirmed}: entering it on creation takes capacity and quota,
leaving it gives both back. Repeating a transition to the current status is
a no-op. An active booking may also move to another slot, which releases
the old slot and claims the new one in the same transaction.

Every capacity-affecting path locks rows in the same order:
slot -> booking lock / booking -> quota ledger. Paths that touch several
slots lock them in slot id order first.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BusinessRuleException,
    CapacityExceededException,
    ConflictException,
    DomainException,
    InvalidTransitionException,
    LockExpiredOrInvalidException,
    NotFoundException,
    QuotaExhaustedException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, now_utc
from ..core.ulid_helper import generate_ulid
from ..events.booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
    BookingFact,
    BookingRescheduled,
)
from ..events.publisher import EventPublisher
from ..models.booking import (
    ACTIVE_BOOKING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from ..models.booking_lock import BookingLock
from ..models.package import PackageSubscription
from ..models.slot import Slot
from ..monitoring.prometheus_metrics import PrometheusMetrics
from ..repositories.booking_lock_repository import BookingLockRepository
from ..repositories.booking_repository import BookingRepository
from ..repositories.event_outbox_repository import EventOutboxRepository
from ..repositories.package_repository import PackageRepository
from ..repositories.slot_repository import SlotRepository
from .base import BaseService
from .booking_lock_service import BookingLockService
from .package_quota_service import PackageQuotaService
from .slot_service import SlotService

_VALID_STATUSES = {status.value for status in BookingStatus}


@dataclass
class BulkBookingItem:
    """One lock to convert in a bulk booking."""

    lock_id: str
    slot_id: str
    visitor_count: int = 1


@dataclass
class BulkBookingResult:
    booking_group_id: str
    bookings: List[Booking]

    @property
    def package_covered_total(self) -> int:
        return sum(b.package_covered_quantity for b in self.bookings)

    @property
    def paid_total(self) -> int:
        return sum(b.paid_quantity for b in self.bookings)


class BookingService(BaseService):
    """Booking creation from locks, rescheduling and status transitions."""

    def __init__(
        self,
        db: Session,
        slot_service: Optional[SlotService] = None,
        lock_service: Optional[BookingLockService] = None,
        quota_service: Optional[PackageQuotaService] = None,
    ):
        super().__init__(db)
        self.booking_repository = BookingRepository(db)
        self.slot_repository = SlotRepository(db)
        self.lock_repository = BookingLockRepository(db)
        self.package_repository = PackageRepository(db)
        self.slot_service = slot_service or SlotService(db)
        self.lock_service = lock_service or BookingLockService(db)
        self.quota_service = quota_service or PackageQuotaService(db)
        self.event_publisher = EventPublisher(EventOutboxRepository(db))

    # ---------------------------------------------------------------- create
    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        lock_id: str,
        slot_id: str,
        visitor_count: int,
        *,
        tenant_id: Optional[str] = None,
        package_subscription_id: Optional[str] = None,
        session_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
        allow_paid_fallback: bool = True,
    ) -> Booking:
        """
        Convert a lock into a pending booking.

        Inserting the booking, taking slot capacity, reserving package quota
        and deleting the lock happen in one transaction. If anything fails
        after the lock was verified as the caller's, the lock is released
        right away instead of waiting for its TTL.
        """
        if visitor_count < 1:
            raise ValidationException("visitor_count must be at least 1")

        contact = {
            "customer_id": customer_id,
            "customer_name": customer_name,
            "customer_email": customer_email,
            "customer_phone": customer_phone,
            "notes": notes,
        }
        lock_verified = False
        try:
            with self.transaction():
                slot = self.slot_repository.get_for_update(slot_id, tenant_id)
                if slot is None:
                    raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")

                lock = self._validate_lock(
                    self.lock_repository.get_for_update(lock_id),
                    lock_id,
                    slot,
                    visitor_count,
                    session_id,
                )
                lock_verified = True

                if not slot.is_available:
                    raise SlotUnavailableException(slot.id)

                subscription = self._active_subscription(package_subscription_id, slot.tenant_id)
                booking = self._book_from_lock(
                    slot,
                    lock,
                    visitor_count,
                    subscription,
                    allow_paid_fallback=allow_paid_fallback,
                    contact=contact,
                )
        except Exception:
            if lock_verified:
                self._release_after_failure(lock_id)
            raise

        PrometheusMetrics.record_booking_transition("none", BookingStatus.PENDING.value)
        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            slot_id=slot_id,
            visitor_count=visitor_count,
            package_covered_quantity=booking.package_covered_quantity,
            paid_quantity=booking.paid_quantity,
        )
        return booking

    @BaseService.measure_operation("create_bulk_booking")
    def create_bulk_booking(
        self,
        items: Sequence[BulkBookingItem],
        *,
        tenant_id: Optional[str] = None,
        package_subscription_id: Optional[str] = None,
        session_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
        allow_paid_fallback: bool = True,
    ) -> BulkBookingResult:
        """
        Convert several locks into bookings that share a booking group.

        Either every booking is created or none is. Package quota covers the
        items in request order until it runs out; the rest is paid, or the
        whole request fails when ``allow_paid_fallback`` is False. On failure
        every lock already verified as the caller's is released.
        """
        if not items:
            raise ValidationException("At least one lock must be provided")
        if len(items) > settings.bulk_booking_max_items:
            raise ValidationException(
                f"At most {settings.bulk_booking_max_items} locks per bulk booking",
                code="TOO_MANY_ITEMS",
                details={"items": len(items)},
            )
        lock_ids = [item.lock_id for item in items]
        if len(set(lock_ids)) != len(lock_ids):
            raise ValidationException("Each lock may be used only once", code="DUPLICATE_LOCK")
        if any(item.visitor_count < 1 for item in items):
            raise ValidationException("visitor_count must be at least 1")

        contact = {
            "customer_id": customer_id,
            "customer_name": customer_name,
            "customer_email": customer_email,
            "customer_phone": customer_phone,
            "notes": notes,
        }
        group_id = generate_ulid()
        verified: List[str] = []
        bookings: List[Booking] = []
        try:
            with self.transaction():
                slots: Dict[str, Slot] = {}
                for slot_id in sorted({item.slot_id for item in items}):
                    slot = self.slot_repository.get_for_update(slot_id, tenant_id)
                    if slot is None:
                        raise NotFoundException(f"Slot {slot_id} not found", code="SLOT_NOT_FOUND")
                    slots[slot_id] = slot
                tenants = {slot.tenant_id for slot in slots.values()}
                if len(tenants) > 1:
                    raise ValidationException("All slots must belong to the same tenant")

                locks: List[BookingLock] = []
                for item in items:
                    lock = self._validate_lock(
                        self.lock_repository.get_for_update(item.lock_id),
                        item.lock_id,
                        slots[item.slot_id],
                        item.visitor_count,
                        session_id,
                    )
                    verified.append(item.lock_id)
                    locks.append(lock)

                for slot in slots.values():
                    if not slot.is_available:
                        raise SlotUnavailableException(slot.id)

                subscription = self._active_subscription(package_subscription_id, tenants.pop())
                for item, lock in zip(items, locks):
                    bookings.append(
                        self._book_from_lock(
                            slots[item.slot_id],
                            lock,
                            item.visitor_count,
                            subscription,
                            allow_paid_fallback=allow_paid_fallback,
                            contact=contact,
                            booking_group_id=group_id,
                        )
                    )
        except Exception:
            for lock_id in verified:
                self._release_after_failure(lock_id)
            raise

        result = BulkBookingResult(booking_group_id=group_id, bookings=bookings)
        for _ in bookings:
            PrometheusMetrics.record_booking_transition("none", BookingStatus.PENDING.value)
        self.log_operation(
            "create_bulk_booking",
            booking_group_id=group_id,
            bookings=len(bookings),
            package_covered_total=result.package_covered_total,
            paid_total=result.paid_total,
        )
        return result

    def _active_subscription(
        self, subscription_id: Optional[str], tenant_id: str
    ) -> Optional[PackageSubscription]:
        if not subscription_id:
            return None
        subscription = self.package_repository.get_subscription(subscription_id, tenant_id)
        if subscription is None:
            raise NotFoundException(
                f"Package subscription {subscription_id} not found",
                code="SUBSCRIPTION_NOT_FOUND",
            )
        if not subscription.is_active:
            raise BusinessRuleException(
                "Package subscription is not active",
                code="SUBSCRIPTION_INACTIVE",
                details={"subscription_id": subscription.id},
            )
        return subscription

    def _book_from_lock(
        self,
        slot: Slot,
        lock: BookingLock,
        visitor_count: int,
        subscription: Optional[PackageSubscription],
        *,
        allow_paid_fallback: bool,
        contact: Dict[str, Any],
        booking_group_id: Optional[str] = None,
    ) -> Booking:
        """Insert one booking for a verified lock. Caller holds slot and lock rows."""
        service = slot.shift.service
        covered, paid = 0, visitor_count
        if subscription is not None:
            usage = self.quota_service.lock_usage(subscription.id, service.id)
            covered = min(visitor_count, usage.remaining_quantity)
            if covered < visitor_count and not allow_paid_fallback:
                raise QuotaExhaustedException(
                    subscription.id, service.id, visitor_count, usage.remaining_quantity
                )
            paid = visitor_count - covered

        booking = self.booking_repository.create(
            tenant_id=slot.tenant_id,
            service_id=service.id,
            slot_id=slot.id,
            visitor_count=visitor_count,
            booking_group_id=booking_group_id,
            package_subscription_id=subscription.id if subscription is not None else None,
            package_covered_quantity=covered,
            paid_quantity=paid,
            total_price=Decimal(paid) * Decimal(service.price or 0),
            payment_status=(
                PaymentStatus.PAID.value if paid == 0 else PaymentStatus.UNPAID.value
            ),
            status=BookingStatus.PENDING.value,
            **contact,
        )

        self.slot_service.apply_capacity_delta(slot, -visitor_count, visitor_count)
        if subscription is not None and covered:
            self.quota_service.reserve(subscription.id, service.id, covered, booking_id=booking.id)

        # Consumed in the same transaction so a retried create cannot reuse it
        self.lock_repository.delete_lock(lock.id)
        self.event_publisher.publish(self._fact(BookingCreated, booking, slot))
        return booking

    def _validate_lock(
        self,
        lock: Optional[BookingLock],
        lock_id: str,
        slot: Slot,
        visitor_count: int,
        session_id: Optional[str],
    ) -> BookingLock:
        if lock is None:
            raise LockExpiredOrInvalidException(lock_id, "not_found")
        if ensure_utc(lock.lock_expires_at) <= now_utc():
            raise LockExpiredOrInvalidException(lock_id, "expired")
        if lock.slot_id != slot.id:
            raise LockExpiredOrInvalidException(lock_id, "slot_mismatch")
        if lock.reserved_by_session_id and lock.reserved_by_session_id != session_id:
            raise LockExpiredOrInvalidException(lock_id, "session_mismatch")
        if lock.reserved_capacity < visitor_count:
            raise LockExpiredOrInvalidException(lock_id, "insufficient_reservation")
        return lock

    def _release_after_failure(self, lock_id: str) -> None:
        try:
            self.lock_service.release_lock(lock_id)
        except DomainException:
            # The TTL sweep is the backstop when the early release fails
            self.logger.exception("Could not release lock %s after failed booking", lock_id)

    # ------------------------------------------------------------ reschedule
    @BaseService.measure_operation("edit_booking_time")
    def edit_booking_time(
        self,
        booking_id: str,
        new_slot_id: str,
        *,
        tenant_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Booking:
        """
        Move an active booking to another slot.

        Both slot rows are locked in id order before the booking row. The old
        slot gets the party's capacity back and the new slot must have room
        for the whole party net of active locks; locks held by ``session_id``
        do not count against it. The package/paid split is kept and the price
        is recomputed from the new slot's service.
        """
        with self.transaction():
            existing = self.booking_repository.get_for_tenant(booking_id, tenant_id)
            if existing is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            self._ensure_movable(existing)
            old_slot_id = existing.slot_id
            if old_slot_id == new_slot_id:
                self.logger.debug("Booking %s already on slot %s", booking_id, new_slot_id)
                return existing

            locked: Dict[str, Optional[Slot]] = {}
            for slot_id in sorted((old_slot_id, new_slot_id)):
                scope = tenant_id if slot_id == new_slot_id else None
                locked[slot_id] = self.slot_repository.get_for_update(slot_id, scope)
            old_slot, new_slot = locked[old_slot_id], locked[new_slot_id]
            if new_slot is None:
                raise NotFoundException(f"Slot {new_slot_id} not found", code="SLOT_NOT_FOUND")

            booking = self.booking_repository.get_for_tenant(booking_id, tenant_id, for_update=True)
            if old_slot is None or booking is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
            if booking.slot_id != old_slot_id:
                raise ConflictException(
                    "Booking was moved concurrently, please retry",
                    code="CONCURRENT_UPDATE",
                    details={"retryable": True},
                )
            self._ensure_movable(booking)
            if new_slot.tenant_id != booking.tenant_id:
                raise NotFoundException(f"Slot {new_slot_id} not found", code="SLOT_NOT_FOUND")
            if not new_slot.is_available:
                raise SlotUnavailableException(new_slot.id)

            new_service = new_slot.shift.service
            if new_service.id != booking.service_id and booking.package_covered_quantity:
                raise BusinessRuleException(
                    "Package-covered bookings cannot move to a slot of another service",
                    code="SERVICE_CHANGE_NOT_ALLOWED",
                    details={"booking_id": booking.id, "service_id": new_service.id},
                )

            visitors = booking.visitor_count
            active = self.lock_repository.sum_active_reserved(
                new_slot.id, now_utc(), exclude_session_id=session_id
            )
            claimable = new_slot.original_capacity - new_slot.booked_count - active
            if visitors > claimable:
                raise CapacityExceededException(visitors, claimable, slot_id=new_slot.id)

            self.slot_service.apply_capacity_delta(old_slot, visitors, -visitors)
            self.slot_service.apply_capacity_delta(new_slot, -visitors, visitors)
            booking.slot_id = new_slot.id
            booking.service_id = new_service.id
            booking.total_price = Decimal(booking.paid_quantity) * Decimal(new_service.price or 0)
            self.db.flush()

            # Every move is its own fact, so the key carries a fresh id
            self.event_publisher.publish(
                self._fact(BookingRescheduled, booking, new_slot, previous_slot_id=old_slot_id),
                idempotency_key=f"{BookingRescheduled.event_type}:{booking.id}:{generate_ulid()}",
            )

        self.log_operation(
            "edit_booking_time",
            booking_id=booking_id,
            from_slot_id=old_slot_id,
            to_slot_id=new_slot_id,
            visitor_count=visitors,
        )
        return booking

    @staticmethod
    def _ensure_movable(booking: Booking) -> None:
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            raise ConflictException(
                f"Cannot change the time of a {booking.status} booking",
                code="BOOKING_NOT_ACTIVE",
                details={"booking_id": booking.id, "status": booking.status},
            )

    # ------------------------------------------------------------ transitions
    @BaseService.measure_operation("transition_status")
    def transition_status(
        self,
        booking_id: str,
        new_status: str,
        *,
        tenant_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to ``new_status`` and apply the capacity/quota effects.

        Leaving the active set restores slot capacity and, for package-covered
        bookings, the ledger quota. Cancelling an already-cancelled booking
        changes nothing.
        """
        if new_status not in _VALID_STATUSES:
            raise ValidationException(
                f"Unknown booking status: {new_status}",
                details={"allowed": sorted(_VALID_STATUSES)},
            )

        with self.transaction():
            existing = self.booking_repository.get_for_tenant(booking_id, tenant_id)
            if existing is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")

            slot = self.slot_repository.get_for_update(existing.slot_id)
            booking = self.booking_repository.get_for_tenant(booking_id, tenant_id, for_update=True)
            if slot is None or booking is None:
                raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")

            current = booking.status
            if current == new_status:
                self.logger.debug("Booking %s already %s; nothing to do", booking_id, current)
                return booking

            if (
                current == BookingStatus.PENDING.value
                and new_status == BookingStatus.CONFIRMED.value
            ):
                booking.mark_confirmed()
                event_cls = BookingConfirmed
            elif current in ACTIVE_BOOKING_STATUSES and new_status in TERMINAL_BOOKING_STATUSES:
                self.slot_service.apply_capacity_delta(
                    slot, booking.visitor_count, -booking.visitor_count
                )
                if self._should_restore_quota(booking, new_status):
                    self.quota_service.restore(
                        booking.package_subscription_id,
                        booking.service_id,
                        booking.package_covered_quantity,
                    )
                if new_status == BookingStatus.CANCELLED.value:
                    booking.mark_cancelled(reason)
                    event_cls = BookingCancelled
                else:
                    booking.mark_completed()
                    event_cls = BookingCompleted
            else:
                self.logger.warning(
                    "Rejected booking transition %s: %s -> %s", booking_id, current, new_status
                )
                raise InvalidTransitionException(booking_id, current, new_status)

            self.db.flush()
            self.event_publisher.publish(self._fact(event_cls, booking, slot))

        PrometheusMetrics.record_booking_transition(current, new_status)
        self.log_operation(
            "transition_status",
            booking_id=booking_id,
            from_status=current,
            to_status=new_status,
        )
        return booking

    def _should_restore_quota(self, booking: Booking, new_status: str) -> bool:
        if not booking.package_subscription_id or not booking.package_covered_quantity:
            return False
        if new_status == BookingStatus.COMPLETED.value:
            return settings.package_quota_restore_on_completion
        return True

    # ---------------------------------------------------------------- queries
    def get_booking(self, booking_id: str, tenant_id: Optional[str] = None) -> Booking:
        booking = self.booking_repository.get_for_tenant(booking_id, tenant_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return booking

    @staticmethod
    def _fact(event_cls: type, booking: Booking, slot: Slot, **extra: Any) -> BookingFact:
        kwargs = dict(
            booking_id=booking.id,
            tenant_id=booking.tenant_id,
            status=booking.status,
            service_id=booking.service_id,
            slot_id=booking.slot_id,
            visitor_count=booking.visitor_count,
            package_covered_quantity=booking.package_covered_quantity,
            paid_quantity=booking.paid_quantity,
            slot_start_utc=ensure_utc(slot.start_time_utc),
            slot_end_utc=ensure_utc(slot.end_time_utc),
            customer_id=booking.customer_id,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            customer_phone=booking.customer_phone,
            package_subscription_id=booking.package_subscription_id,
            occurred_at=now_utc(),
        )
        if event_cls is BookingCancelled:
            kwargs["cancellation_reason"] = booking.cancellation_reason
        kwargs.update(extra)
        return event_cls(**kwargs)
