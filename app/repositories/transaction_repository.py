from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.vip import VIPPaymentTransaction


class TransactionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, transaction: VIPPaymentTransaction) -> VIPPaymentTransaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def get_by_id(self, transaction_id: str) -> Optional[VIPPaymentTransaction]:
        return (
            self.db.query(VIPPaymentTransaction)
            .filter(VIPPaymentTransaction.id == transaction_id)
            .first()
        )

    def list_filtered(
        self,
        payment_method: Optional[str] = None,
        payment_status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[VIPPaymentTransaction]:
        q = self.db.query(VIPPaymentTransaction)
        if payment_method:
            q = q.filter(VIPPaymentTransaction.payment_method == payment_method)
        if payment_status:
            q = q.filter(VIPPaymentTransaction.payment_status == payment_status)
        q = q.order_by(VIPPaymentTransaction.created_at.desc())
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def transition(
        self,
        transaction_id: str,
        from_status: str,
        values: Dict[str, Any],
        payment_method: Optional[str] = None,
    ) -> bool:
        """Conditional update guarded on the current payment_status (and method, when given)."""
        q = self.db.query(VIPPaymentTransaction).filter(
            VIPPaymentTransaction.id == transaction_id,
            VIPPaymentTransaction.payment_status == from_status,
        )
        if payment_method is not None:
            q = q.filter(VIPPaymentTransaction.payment_method == payment_method)
        updated = q.update(values, synchronize_session="fetch")
        self.db.flush()
        return updated == 1
