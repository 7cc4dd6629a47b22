import logging
from typing import Callable, Optional
from uuid import uuid4

from app.core.errors import (
    AlreadyProcessed,
    InvalidPaymentMethod,
    NotFound,
    PaymentMethodUnavailable,
    ValidationError,
)
from app.models.vip import (
    METHOD_CASH,
    METHOD_QR_TRANSFER,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    VIPPaymentTransaction,
    VIPSubscription,
)
from app.repositories.transaction_repository import TransactionRepository
from app.services.qr_service import PromptPayQRService, QRNotConfigured
from app.utils.serialization import utcnow

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_NOTE = "Cash payment verified by admin"


class TransactionLedger:
    def __init__(
        self,
        repo: TransactionRepository,
        qr_service: PromptPayQRService,
        clock: Callable = utcnow,
    ):
        self.repo = repo
        self.qr_service = qr_service
        self.clock = clock

    def get(self, transaction_id: str) -> VIPPaymentTransaction:
        transaction = self.repo.get_by_id(transaction_id)
        if transaction is None:
            raise NotFound("Transaction not found")
        return transaction

    def create(self, subscription: VIPSubscription, amount, currency: str, method: str) -> VIPPaymentTransaction:
        """
        Write a pending transaction for the subscription.

        For qr-transfer the QR payload is generated first; an unconfigured rail
        fails before any row is written.
        """
        qr_code = None
        qr_reference = None
        if method == METHOD_QR_TRANSFER:
            if not self.qr_service.is_configured():
                logger.error("PromptPay not configured but payment method is qr-transfer")
                raise PaymentMethodUnavailable(
                    "PromptPay not available. PromptPay payment is not configured. Please use cash or contact admin."
                )
            try:
                qr = self.qr_service.generate(amount, subscription.id)
            except QRNotConfigured as e:
                raise PaymentMethodUnavailable(str(e)) from e
            qr_code, qr_reference = qr.qr_code, qr.reference
        elif method != METHOD_CASH:
            raise InvalidPaymentMethod(f"Unsupported payment method: {method}")

        transaction = VIPPaymentTransaction(
            id=str(uuid4()),
            subscription_id=subscription.id,
            tier=subscription.tier,
            user_id=subscription.owner_user_id,
            amount=amount,
            currency=currency,
            payment_method=method,
            payment_status=PAYMENT_PENDING,
            qr_code=qr_code,
            qr_reference=qr_reference,
        )
        return self.repo.create(transaction)

    def mark_verified(self, transaction_id: str, admin_id: str, notes: Optional[str] = None) -> VIPPaymentTransaction:
        transaction = self.get(transaction_id)
        if transaction.payment_status != PAYMENT_PENDING:
            raise AlreadyProcessed(
                "Payment already verified"
                if transaction.payment_status == PAYMENT_COMPLETED
                else f"Transaction status is {transaction.payment_status}"
            )
        if transaction.payment_method != METHOD_CASH:
            raise InvalidPaymentMethod("Only cash payments require admin verification")

        updated = self.repo.transition(
            transaction_id,
            from_status=PAYMENT_PENDING,
            payment_method=METHOD_CASH,
            values={
                "payment_status": PAYMENT_COMPLETED,
                "verified_by": admin_id,
                "verified_at": self.clock(),
                "admin_notes": (notes or "").strip() or DEFAULT_VERIFY_NOTE,
            },
        )
        if not updated:
            # Lost a race with another admin action
            raise AlreadyProcessed()
        return transaction

    def mark_rejected(self, transaction_id: str, admin_id: str, notes: Optional[str]) -> VIPPaymentTransaction:
        if not notes or not notes.strip():
            raise ValidationError("Rejection reason (admin_notes) is required")

        transaction = self.get(transaction_id)
        if transaction.payment_status != PAYMENT_PENDING:
            raise AlreadyProcessed(f"Transaction status is {transaction.payment_status}")

        updated = self.repo.transition(
            transaction_id,
            from_status=PAYMENT_PENDING,
            values={
                "payment_status": PAYMENT_FAILED,
                "verified_by": admin_id,
                "verified_at": self.clock(),
                "admin_notes": notes.strip(),
            },
        )
        if not updated:
            raise AlreadyProcessed()
        return transaction
