from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Numeric, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base

TIER_EMPLOYEE = "employee"
TIER_ESTABLISHMENT = "establishment"
VIP_TIERS = (TIER_EMPLOYEE, TIER_ESTABLISHMENT)

SUBSCRIPTION_PENDING_PAYMENT = "pending_payment"
SUBSCRIPTION_ACTIVE = "active"
SUBSCRIPTION_CANCELLED = "cancelled"
# Terminal; written only when a purchase takes over a lapsed active row.
SUBSCRIPTION_EXPIRED = "expired"
LIVE_SUBSCRIPTION_STATUSES = (SUBSCRIPTION_PENDING_PAYMENT, SUBSCRIPTION_ACTIVE)

METHOD_CASH = "cash"
METHOD_QR_TRANSFER = "qr-transfer"
PAYMENT_METHODS = (METHOD_CASH, METHOD_QR_TRANSFER)

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_COMPLETED, PAYMENT_FAILED)

_LIVE_PREDICATE = text("status IN ('pending_payment', 'active')")


class VIPSubscription(Base):
    __tablename__ = "vip_subscriptions"

    id = Column(String(36), primary_key=True, index=True)
    tier = Column(String(20), nullable=False)
    entity_id = Column(String(36), nullable=False)
    owner_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=SUBSCRIPTION_PENDING_PAYMENT)
    duration_days = Column(Integer, nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    price_paid = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    # Set in a second write, after the transaction row exists
    transaction_id = Column(String(36), nullable=True, index=True)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("idx_vip_subscriptions_entity_tier", "entity_id", "tier"),
        Index("idx_vip_subscriptions_status_expires", "status", "expires_at"),
        # At most one live subscription per (entity_id, tier)
        Index(
            "uq_vip_subscriptions_live_entity",
            "entity_id",
            "tier",
            unique=True,
            postgresql_where=_LIVE_PREDICATE,
            sqlite_where=_LIVE_PREDICATE,
        ),
    )


class VIPPaymentTransaction(Base):
    __tablename__ = "vip_payment_transactions"

    id = Column(String(36), primary_key=True, index=True)
    subscription_id = Column(
        String(36), ForeignKey("vip_subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tier = Column(String(20), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_method = Column(String(20), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PAYMENT_PENDING)
    qr_code = Column(Text, nullable=True)
    qr_reference = Column(String(64), nullable=True)
    admin_notes = Column(Text, nullable=True)
    verified_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    subscription = relationship("VIPSubscription")

    __table_args__ = (
        Index("idx_vip_transactions_status_method", "payment_status", "payment_method"),
        Index("idx_vip_transactions_created_at", "created_at"),
    )
