"""
VIP lifecycle: purchase, admin verification/rejection, cancellation.

Each entry point is one database transaction. Business failures are raised
as app.core.errors.VIPError subclasses; notifications are best-effort and
never change the outcome of the action that triggered them.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.errors import (
    Forbidden,
    InvalidPaymentMethod,
    NotFound,
    NotPendingPayment,
    TransactionCreationFailed,
    ValidationError,
    VIPError,
)
from app.models.user import User
from app.models.vip import (
    METHOD_CASH,
    METHOD_QR_TRANSFER,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    TIER_EMPLOYEE,
    TIER_ESTABLISHMENT,
    VIPPaymentTransaction,
    VIPSubscription,
)
from app.repositories.directory_repository import DirectoryRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services import notification_service as notifications
from app.services import vip_pricing
from app.services.authorization_service import AuthorizationGuard
from app.services.notification_service import NotificationService
from app.services.qr_service import PromptPayQRService
from app.services.subscription_state_machine import SubscriptionStateMachine
from app.services.transaction_ledger import TransactionLedger
from app.utils.serialization import ensure_utc, utcnow

logger = logging.getLogger(__name__)

_METHOD_ALIASES = {
    "cash": METHOD_CASH,
    "qr-transfer": METHOD_QR_TRANSFER,
    "qr_transfer": METHOD_QR_TRANSFER,
    "promptpay": METHOD_QR_TRANSFER,
}

PURCHASE_MESSAGES = {
    METHOD_CASH: "VIP subscription created. Please contact admin to verify cash payment.",
    METHOD_QR_TRANSFER: "VIP subscription created. Please scan QR code to complete payment.",
}


def normalize_payment_method(method) -> str:
    normalized = _METHOD_ALIASES.get(method.strip().lower()) if isinstance(method, str) else None
    if normalized not in PAYMENT_METHODS:
        raise InvalidPaymentMethod(
            'Invalid payment method. Payment method must be "cash" or "qr-transfer"'
        )
    return normalized


@dataclass
class PurchaseResult:
    subscription: VIPSubscription
    transaction: VIPPaymentTransaction

    @property
    def message(self) -> str:
        return PURCHASE_MESSAGES[self.transaction.payment_method]


class VIPLifecycleService:
    def __init__(
        self,
        db: Session,
        guard: AuthorizationGuard,
        state_machine: SubscriptionStateMachine,
        ledger: TransactionLedger,
        notifier: NotificationService,
        clock=utcnow,
    ):
        self.db = db
        self.guard = guard
        self.state_machine = state_machine
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock

    @classmethod
    def build(
        cls,
        db: Session,
        qr_service: PromptPayQRService,
        notifier: NotificationService,
        clock=utcnow,
    ) -> "VIPLifecycleService":
        return cls(
            db=db,
            guard=AuthorizationGuard(DirectoryRepository(db)),
            state_machine=SubscriptionStateMachine(SubscriptionRepository(db), clock=clock),
            ledger=TransactionLedger(TransactionRepository(db), qr_service, clock=clock),
            notifier=notifier,
            clock=clock,
        )

    def purchase(self, user: User, tier, entity_id, duration, payment_method) -> PurchaseResult:
        tier = vip_pricing.normalize_tier(tier)
        method = normalize_payment_method(payment_method)
        if not isinstance(entity_id, str) or not entity_id.strip():
            raise ValidationError("entity_id is required")
        entity_id = entity_id.strip()

        price = vip_pricing.resolve(tier, duration)

        if not self.guard.can_purchase(user, tier, entity_id):
            logger.warning(f"User {user.id} denied VIP purchase for {tier} {entity_id}")
            self.db.rollback()
            raise Forbidden("You do not have permission to purchase VIP for this entity")

        try:
            self.state_machine.repo.acquire_purchase_lock(entity_id, tier)
            self.state_machine.claim_slot(entity_id, tier)
            subscription = self.state_machine.create_pending(
                tier=tier,
                entity_id=entity_id,
                owner_user_id=user.id,
                duration_days=duration,
                price=price.price,
                currency=price.currency,
            )
        except Exception:
            self.db.rollback()
            raise
        subscription_id = subscription.id

        try:
            transaction = self.ledger.create(subscription, price.price, price.currency, method)
        except VIPError:
            self._compensate(subscription_id)
            raise
        except Exception as e:
            logger.error(f"Error creating payment transaction for subscription {subscription_id}: {e}")
            self._compensate(subscription_id)
            raise TransactionCreationFailed() from e

        try:
            self.state_machine.link_transaction(subscription_id, transaction.id)
            self.db.commit()
        except Exception as e:
            logger.error(f"Error finalizing VIP purchase {subscription_id}: {e}")
            self._compensate(subscription_id)
            raise TransactionCreationFailed() from e

        self.db.refresh(subscription)
        self.db.refresh(transaction)
        logger.info(
            f"VIP purchase created: subscription={subscription.id} transaction={transaction.id} "
            f"{tier} {entity_id} {duration}d {price.price} {price.currency} via {method}"
        )

        self._notify(
            notifications.VIP_PURCHASE_CONFIRMED,
            user.id,
            {"tier": tier, "duration": duration, "price": price.price},
        )
        return PurchaseResult(subscription=subscription, transaction=transaction)

    def _compensate(self, subscription_id: str) -> None:
        """Undo a partially-created purchase before the error is returned."""
        try:
            self.db.rollback()
        except Exception as e:
            logger.error(f"Rollback failed for VIP purchase {subscription_id}: {e}")

        try:
            removed = self.state_machine.discard(subscription_id)
            self.db.commit()
            if removed:
                logger.warning(f"Removed pending VIP subscription {subscription_id} after failed purchase")
        except Exception as e:
            try:
                self.db.rollback()
            except Exception:
                logger.exception("Rollback after failed compensation also failed")
            logger.error(
                f"DATA INTEGRITY: orphaned pending VIP subscription {subscription_id} "
                f"could not be removed: {e}"
            )

    def verify_payment(self, admin: User, transaction_id: str, notes: Optional[str] = None) -> PurchaseResult:
        if not self.guard.can_verify(admin):
            logger.warning(f"User {admin.id} denied payment verification")
            raise Forbidden("Only admins can verify payments")

        try:
            transaction = self.ledger.mark_verified(transaction_id, admin.id, notes)
            subscription = self.state_machine.get(transaction.subscription_id)
            self.state_machine.activate(subscription.id, subscription.duration_days)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(subscription)
        self.db.refresh(transaction)
        logger.info(
            f"VIP payment {transaction.id} verified by admin {admin.id}; "
            f"subscription {subscription.id} active until {subscription.expires_at}"
        )

        expires_at = ensure_utc(subscription.expires_at)
        self._notify(
            notifications.VIP_PAYMENT_VERIFIED,
            transaction.user_id,
            {"tier": subscription.tier, "expiresAt": expires_at.isoformat() if expires_at else None},
        )
        return PurchaseResult(subscription=subscription, transaction=transaction)

    def reject_payment(self, admin: User, transaction_id: str, notes: Optional[str]) -> VIPPaymentTransaction:
        if not self.guard.can_reject(admin):
            logger.warning(f"User {admin.id} denied payment rejection")
            raise Forbidden("Only admins can reject payments")
        if not isinstance(notes, str) or not notes.strip():
            raise ValidationError("Rejection reason (admin_notes) is required")

        subscription = None
        try:
            transaction = self.ledger.mark_rejected(transaction_id, admin.id, notes)
            try:
                subscription = self.state_machine.cancel_pending(transaction.subscription_id, notes.strip())
            except (NotFound, NotPendingPayment) as e:
                # The payment is rejected regardless of the subscription row
                logger.error(f"Could not cancel subscription for rejected transaction {transaction_id}: {e.detail}")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(transaction)
        logger.info(f"VIP payment {transaction.id} rejected by admin {admin.id}")

        if subscription is not None:
            self._notify(
                notifications.VIP_PAYMENT_REJECTED,
                transaction.user_id,
                {"tier": transaction.tier, "reason": notes.strip()},
            )
        return transaction

    def cancel_subscription(self, user: User, subscription_id: str, tier=None) -> VIPSubscription:
        expected_tier = vip_pricing.normalize_tier(tier) if tier is not None else None

        subscription = self.state_machine.get(subscription_id)
        if expected_tier is not None and subscription.tier != expected_tier:
            raise NotFound("Subscription not found")

        if not self.guard.can_cancel(user, subscription):
            logger.warning(f"User {user.id} denied cancellation of VIP subscription {subscription_id}")
            self.db.rollback()
            raise Forbidden("You do not have permission to cancel this subscription")

        try:
            self.state_machine.cancel(subscription_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(subscription)
        logger.info(f"VIP subscription {subscription_id} cancelled by user {user.id}")

        if user.id != subscription.owner_user_id and self.guard.is_platform_admin(user):
            reason = "Cancelled by administrator"
        else:
            reason = "Cancelled by owner"
        self._notify(
            notifications.VIP_SUBSCRIPTION_CANCELLED,
            subscription.owner_user_id,
            {"tier": subscription.tier, "reason": reason},
        )
        return subscription

    def list_my_subscriptions(self, user: User) -> Dict[str, List[VIPSubscription]]:
        """
        Subscriptions the user bought or may act on, grouped by tier.

        Covers linked profiles, staff the user may edit at establishments
        they own, and those establishments themselves.
        """
        entities = self.guard.manageable_entities(user)
        grouped: Dict[str, List[VIPSubscription]] = {TIER_EMPLOYEE: [], TIER_ESTABLISHMENT: []}
        for subscription in self.state_machine.list_visible(user.id, entities):
            grouped.setdefault(subscription.tier, []).append(subscription)
        return grouped

    def entity_status(self, tier, entity_id: str) -> Dict[str, Any]:
        tier = vip_pricing.normalize_tier(tier)
        current = self.state_machine.current_boost(entity_id, tier)
        expires_at = ensure_utc(current.expires_at) if current else None
        return {
            "tier": tier,
            "entity_id": entity_id,
            "is_vip": current is not None,
            "subscription_id": current.id if current else None,
            "expires_at": expires_at.isoformat() if expires_at else None,
        }

    def list_transactions(
        self,
        admin: User,
        payment_method: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[VIPPaymentTransaction]:
        """Newest first; each transaction carries its subscription via the relationship."""
        if not self.guard.is_platform_admin(admin):
            raise Forbidden("Only admins can list VIP transactions")
        method = normalize_payment_method(payment_method) if payment_method else None
        if status in ("", "all"):
            status = None
        if status is not None and status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}")
        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer")
        return self.ledger.repo.list_filtered(payment_method=method, payment_status=status, limit=limit)

    def _notify(self, kind: str, user_id: str, payload: Dict[str, Any]) -> None:
        try:
            self.notifier.notify(kind, user_id, payload)
        except Exception as e:
            logger.warning(f"Notification {kind} for user {user_id} failed: {e}", exc_info=True)
