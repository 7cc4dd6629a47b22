from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import and_, or_, text
from sqlalchemy.orm import Session

from app.models.vip import (
    LIVE_SUBSCRIPTION_STATUSES,
    SUBSCRIPTION_ACTIVE,
    VIPSubscription,
)


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, subscription: VIPSubscription) -> VIPSubscription:
        self.db.add(subscription)
        self.db.flush()
        return subscription

    def get_by_id(self, subscription_id: str) -> Optional[VIPSubscription]:
        return self.db.query(VIPSubscription).filter(VIPSubscription.id == subscription_id).first()

    def get_live(self, entity_id: str, tier: str) -> Optional[VIPSubscription]:
        """Subscription holding the (entity_id, tier) slot, if any."""
        return (
            self.db.query(VIPSubscription)
            .filter(
                VIPSubscription.entity_id == entity_id,
                VIPSubscription.tier == tier,
                VIPSubscription.status.in_(LIVE_SUBSCRIPTION_STATUSES),
            )
            .first()
        )

    def get_current_boost(self, entity_id: str, tier: str, now: datetime) -> Optional[VIPSubscription]:
        return (
            self.db.query(VIPSubscription)
            .filter(
                VIPSubscription.entity_id == entity_id,
                VIPSubscription.tier == tier,
                VIPSubscription.status == SUBSCRIPTION_ACTIVE,
                VIPSubscription.expires_at > now,
            )
            .first()
        )

    def list_visible(
        self,
        owner_user_id: str,
        entity_ids: Mapping[str, Iterable[str]],
    ) -> List[VIPSubscription]:
        """Rows the user bought, plus rows for the given entity ids per tier. Newest first."""
        conditions = [VIPSubscription.owner_user_id == owner_user_id]
        for tier, ids in entity_ids.items():
            ids = list(ids)
            if ids:
                conditions.append(and_(VIPSubscription.tier == tier, VIPSubscription.entity_id.in_(ids)))
        return (
            self.db.query(VIPSubscription)
            .filter(or_(*conditions))
            .order_by(VIPSubscription.created_at.desc())
            .all()
        )

    def transition(
        self,
        subscription_id: str,
        from_statuses: Sequence[str],
        values: Dict[str, Any],
    ) -> bool:
        """Conditional update; False when the row is not in one of from_statuses."""
        updated = (
            self.db.query(VIPSubscription)
            .filter(
                VIPSubscription.id == subscription_id,
                VIPSubscription.status.in_(tuple(from_statuses)),
            )
            .update(values, synchronize_session="fetch")
        )
        self.db.flush()
        return updated == 1

    def set_transaction_id(self, subscription_id: str, transaction_id: str) -> bool:
        updated = (
            self.db.query(VIPSubscription)
            .filter(VIPSubscription.id == subscription_id)
            .update({"transaction_id": transaction_id}, synchronize_session="fetch")
        )
        self.db.flush()
        return updated == 1

    def delete(self, subscription_id: str) -> int:
        deleted = (
            self.db.query(VIPSubscription)
            .filter(VIPSubscription.id == subscription_id)
            .delete(synchronize_session="fetch")
        )
        self.db.flush()
        return deleted

    def acquire_purchase_lock(self, entity_id: str, tier: str) -> None:
        """Serialize purchases per (tier, entity_id) until the transaction ends (PostgreSQL only)."""
        if self.db.get_bind().dialect.name != "postgresql":
            return
        self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"vip:{tier}:{entity_id}"},
        )
