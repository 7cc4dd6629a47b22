from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.v1.dependencies import get_current_user, get_vip_service
from app.models.user import User
from app.schemas.vip import (
    AdminNotesRequest,
    AdminTransactionOut,
    AdminTransactionsResponse,
    RejectPaymentResponse,
    SubscriptionOut,
    TransactionOut,
    VerifyPaymentResponse,
)
from app.services.vip_service import VIPLifecycleService

router = APIRouter(tags=["vip-admin"])


@router.get("/transactions", response_model=AdminTransactionsResponse)
def list_vip_transactions(
    payment_method: Optional[str] = Query(None, description="cash or qr-transfer"),
    status: Optional[str] = Query(None, description="pending, completed, failed or all"),
    limit: Optional[int] = Query(None, description="maximum number of transactions, newest first"),
    current_user: User = Depends(get_current_user),
    service: VIPLifecycleService = Depends(get_vip_service),
):
    transactions = service.list_transactions(
        current_user, payment_method=payment_method, status=status, limit=limit
    )
    items = [AdminTransactionOut.model_validate(t) for t in transactions]
    return AdminTransactionsResponse(transactions=items, count=len(items))


@router.post("/transactions/{transaction_id}/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    transaction_id: str,
    body: AdminNotesRequest = AdminNotesRequest(),
    current_user: User = Depends(get_current_user),
    service: VIPLifecycleService = Depends(get_vip_service),
):
    """Confirm a cash payment and activate its subscription."""
    result = service.verify_payment(current_user, transaction_id, body.admin_notes)
    return VerifyPaymentResponse(
        subscription=SubscriptionOut.from_model(result.subscription),
        transaction=TransactionOut.from_model(result.transaction),
    )


@router.post("/transactions/{transaction_id}/reject", response_model=RejectPaymentResponse)
def reject_payment(
    transaction_id: str,
    body: AdminNotesRequest,
    current_user: User = Depends(get_current_user),
    service: VIPLifecycleService = Depends(get_vip_service),
):
    """Reject a pending payment; the linked subscription is cancelled."""
    transaction = service.reject_payment(current_user, transaction_id, body.admin_notes)
    return RejectPaymentResponse(transaction=TransactionOut.from_model(transaction))
