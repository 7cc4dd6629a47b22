"""
Unit tests for the payment transaction ledger.
Run: pytest tests/unit/test_transaction_ledger.py -v
"""
import pytest

from app.core.errors import (
    AlreadyProcessed,
    InvalidPaymentMethod,
    NotFound,
    PaymentMethodUnavailable,
    ValidationError,
)
from app.models.vip import VIPPaymentTransaction
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.qr_service import PromptPayQRService
from app.services.subscription_state_machine import SubscriptionStateMachine
from app.services.transaction_ledger import TransactionLedger


@pytest.fixture
def ledger(db, qr_service, clock):
    return TransactionLedger(TransactionRepository(db), qr_service, clock=clock)


@pytest.fixture
def subscription(db, directory, clock):
    owner = directory.user()
    machine = SubscriptionStateMachine(SubscriptionRepository(db), clock=clock)
    created = machine.create_pending(
        tier="employee",
        entity_id="employee-1",
        owner_user_id=owner.id,
        duration_days=30,
        price=3600,
        currency="THB",
    )
    db.commit()
    return created


def test_create_cash_transaction(ledger, subscription):
    transaction = ledger.create(subscription, 3600, "THB", "cash")
    assert transaction.payment_status == "pending"
    assert transaction.payment_method == "cash"
    assert transaction.subscription_id == subscription.id
    assert transaction.user_id == subscription.owner_user_id
    assert transaction.qr_code is None


def test_create_qr_transaction_carries_payload(ledger, subscription):
    transaction = ledger.create(subscription, 3600, "THB", "qr-transfer")
    assert transaction.qr_code.startswith("000201")
    assert transaction.qr_reference.startswith("VIP")


def test_create_qr_without_merchant_writes_nothing(db, subscription, clock):
    ledger = TransactionLedger(TransactionRepository(db), PromptPayQRService(None), clock=clock)
    with pytest.raises(PaymentMethodUnavailable):
        ledger.create(subscription, 3600, "THB", "qr-transfer")
    assert db.query(VIPPaymentTransaction).count() == 0


def test_create_unknown_method(ledger, subscription):
    with pytest.raises(InvalidPaymentMethod):
        ledger.create(subscription, 3600, "THB", "card")


def test_mark_verified_completes_cash(db, ledger, subscription, clock):
    transaction = ledger.create(subscription, 3600, "THB", "cash")
    verified = ledger.mark_verified(transaction.id, "admin-1")
    db.commit()

    assert verified.payment_status == "completed"
    assert verified.verified_by == "admin-1"
    assert verified.admin_notes == "Cash payment verified by admin"


def test_mark_verified_keeps_admin_notes(ledger, subscription):
    transaction = ledger.create(subscription, 3600, "THB", "cash")
    verified = ledger.mark_verified(transaction.id, "admin-1", "  paid at front desk ")
    assert verified.admin_notes == "paid at front desk"


def test_mark_verified_twice(ledger, subscription):
    transaction = ledger.create(subscription, 3600, "THB", "cash")
    ledger.mark_verified(transaction.id, "admin-1")
    with pytest.raises(AlreadyProcessed) as exc:
        ledger.mark_verified(transaction.id, "admin-2")
    assert exc.value.detail == "Payment already verified"


def test_mark_verified_rejects_qr_transfer(ledger, subscription):
    transaction = ledger.create(subscription, 3600, "THB", "qr-transfer")
    with pytest.raises(InvalidPaymentMethod):
        ledger.mark_verified(transaction.id, "admin-1")
    assert ledger.get(transaction.id).payment_status == "pending"


def test_mark_verified_unknown_transaction(ledger):
    with pytest.raises(NotFound):
        ledger.mark_verified("missing", "admin-1")


@pytest.mark.parametrize("notes", [None, "", "   "])
def test_mark_rejected_requires_notes(ledger, subscription, notes):
    transaction = ledger.create(subscription, 3600, "THB", "cash")
    with pytest.raises(ValidationError):
        ledger.mark_rejected(transaction.id, "admin-1", notes)
    assert ledger.get(transaction.id).payment_status == "pending"


def test_mark_rejected_then_verify(ledger, subscription):
    transaction = ledger.create(subscription, 3600, "THB", "cash")
    rejected = ledger.mark_rejected(transaction.id, "admin-1", "No payment received")
    assert rejected.payment_status == "failed"
    assert rejected.admin_notes == "No payment received"

    with pytest.raises(AlreadyProcessed):
        ledger.mark_verified(transaction.id, "admin-1")
    with pytest.raises(AlreadyProcessed):
        ledger.mark_rejected(transaction.id, "admin-1", "again")
