# backend/bookati/models/package.py
"""
Package subscription models.

A subscription grants a customer a fixed quantity per service. The
``package_subscription_usage`` table is the quota ledger: one row per
(subscription, service), with ``original_quantity = remaining_quantity +
used_quantity`` enforced by the database.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PackageSubscription(Base):
    """A customer's purchase of a package."""

    __tablename__ = "package_subscriptions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(64), nullable=False, index=True)
    customer_id = Column(String(64), nullable=False, index=True)
    package_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usage = relationship(
        "PackageSubscriptionUsage",
        back_populates="subscription",
        cascade="all, delete-orphan",
    )

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<PackageSubscription {self.id} customer={self.customer_id} status={self.status}>"


class PackageSubscriptionUsage(Base):
    """Quota ledger row for one service inside a subscription."""

    __tablename__ = "package_subscription_usage"

    subscription_id = Column(
        String(26),
        ForeignKey("package_subscriptions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    service_id = Column(String(26), ForeignKey("services.id"), primary_key=True)
    original_quantity = Column(Integer, nullable=False)
    remaining_quantity = Column(Integer, nullable=False)
    used_quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    subscription = relationship("PackageSubscription", back_populates="usage")

    __table_args__ = (
        CheckConstraint("original_quantity >= 0", name="ck_usage_original_non_negative"),
        CheckConstraint("remaining_quantity >= 0", name="ck_usage_remaining_non_negative"),
        CheckConstraint(
            "remaining_quantity <= original_quantity",
            name="ck_usage_remaining_within_original",
        ),
        CheckConstraint(
            "original_quantity = remaining_quantity + used_quantity",
            name="ck_usage_quantity_balance",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PackageSubscriptionUsage {self.subscription_id}/{self.service_id} "
            f"{self.remaining_quantity}/{self.original_quantity}>"
        )


class PackageExhaustionNotification(Base):
    """One-time marker that a ledger row reached zero."""

    __tablename__ = "package_exhaustion_notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    subscription_id = Column(
        String(26),
        ForeignKey("package_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
    )
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    notified_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "service_id", name="uq_package_exhaustion_subscription_service"
        ),
    )
