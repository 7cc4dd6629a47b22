"""
VIP subscription states.

    pending_payment --verify--> active --cancel--> cancelled
    pending_payment --reject--> cancelled

Transitions only move forward. Expiry is evaluated lazily: a row stays
``active`` past ``expires_at`` and every "is boosted" read must compare the
timestamp. The single exception is a purchase taking over the slot of a
lapsed row, which settles it to ``expired`` first.
"""
import logging
from datetime import timedelta
from typing import Callable, Iterable, List, Mapping, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError

from app.core.errors import ConflictActiveSubscriptionExists, NotActive, NotFound, NotPendingPayment
from app.models.vip import (
    SUBSCRIPTION_ACTIVE,
    SUBSCRIPTION_CANCELLED,
    SUBSCRIPTION_EXPIRED,
    SUBSCRIPTION_PENDING_PAYMENT,
    VIPSubscription,
)
from app.repositories.subscription_repository import SubscriptionRepository
from app.utils.serialization import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def is_boosted(subscription: Optional[VIPSubscription], now=None) -> bool:
    """Status alone is not enough: an active row past expires_at is expired."""
    if subscription is None or subscription.status != SUBSCRIPTION_ACTIVE:
        return False
    expires_at = ensure_utc(subscription.expires_at)
    return expires_at is not None and expires_at > (now or utcnow())


def effective_status(subscription: VIPSubscription, now=None) -> str:
    if subscription.status == SUBSCRIPTION_ACTIVE and not is_boosted(subscription, now):
        return SUBSCRIPTION_EXPIRED
    return subscription.status


def conflict_for(subscription: VIPSubscription) -> ConflictActiveSubscriptionExists:
    expires_at = ensure_utc(subscription.expires_at)
    if subscription.status == SUBSCRIPTION_ACTIVE and expires_at is not None:
        detail = (
            f"This {subscription.tier} already has an active VIP subscription "
            f"until {expires_at.isoformat()}"
        )
    else:
        detail = f"This {subscription.tier} already has a VIP subscription awaiting payment"
    return ConflictActiveSubscriptionExists(
        detail,
        existing_subscription={
            "id": subscription.id,
            "tier": subscription.tier,
            "status": subscription.status,
            "expires_at": expires_at.isoformat() if expires_at else None,
        },
    )


class SubscriptionStateMachine:
    def __init__(self, repo: SubscriptionRepository, clock: Callable = utcnow):
        self.repo = repo
        self.clock = clock

    def get(self, subscription_id: str) -> VIPSubscription:
        subscription = self.repo.get_by_id(subscription_id)
        if subscription is None:
            raise NotFound("Subscription not found")
        return subscription

    def claim_slot(self, entity_id: str, tier: str) -> None:
        """
        Make sure no live subscription holds (entity_id, tier).

        Raises ConflictActiveSubscriptionExists when one does; a lapsed
        active row is settled to expired instead.
        """
        existing = self.repo.get_live(entity_id, tier)
        if existing is None:
            return
        if existing.status == SUBSCRIPTION_ACTIVE and not is_boosted(existing, self.clock()):
            settled = self.repo.transition(
                existing.id,
                from_statuses=(SUBSCRIPTION_ACTIVE,),
                values={"status": SUBSCRIPTION_EXPIRED},
            )
            if settled:
                logger.info(f"Lapsed VIP subscription {existing.id} settled to expired")
                return
        raise conflict_for(existing)

    def create_pending(
        self,
        tier: str,
        entity_id: str,
        owner_user_id: str,
        duration_days: int,
        price,
        currency: str,
    ) -> VIPSubscription:
        subscription = VIPSubscription(
            id=str(uuid4()),
            tier=tier,
            entity_id=entity_id,
            owner_user_id=owner_user_id,
            status=SUBSCRIPTION_PENDING_PAYMENT,
            duration_days=duration_days,
            price_paid=price,
            currency=currency,
            transaction_id=None,
        )
        try:
            # Savepoint so a lost race leaves the outer transaction usable
            with self.repo.db.begin_nested():
                self.repo.create(subscription)
        except IntegrityError:
            logger.warning(f"Concurrent VIP purchase lost the slot for {tier} {entity_id}")
            existing = self.repo.get_live(entity_id, tier)
            if existing is not None:
                raise conflict_for(existing)
            raise ConflictActiveSubscriptionExists()
        return subscription

    def link_transaction(self, subscription_id: str, transaction_id: str) -> None:
        if not self.repo.set_transaction_id(subscription_id, transaction_id):
            raise NotFound("Subscription not found")

    def discard(self, subscription_id: str) -> int:
        """Delete a pending row created by a purchase that did not complete."""
        return self.repo.delete(subscription_id)

    def activate(self, subscription_id: str, duration_days: Optional[int] = None) -> VIPSubscription:
        subscription = self.get(subscription_id)
        days = duration_days or subscription.duration_days
        now = self.clock()
        updated = self.repo.transition(
            subscription_id,
            from_statuses=(SUBSCRIPTION_PENDING_PAYMENT,),
            values={
                "status": SUBSCRIPTION_ACTIVE,
                "starts_at": now,
                "expires_at": now + timedelta(days=days),
            },
        )
        if not updated:
            raise NotPendingPayment(f"Subscription is {subscription.status}")
        return subscription

    def cancel(self, subscription_id: str) -> VIPSubscription:
        subscription = self.get(subscription_id)
        if subscription.status == SUBSCRIPTION_ACTIVE and not is_boosted(subscription, self.clock()):
            raise NotActive("Subscription has already expired")
        updated = self.repo.transition(
            subscription_id,
            from_statuses=(SUBSCRIPTION_ACTIVE,),
            values={"status": SUBSCRIPTION_CANCELLED, "cancelled_at": self.clock()},
        )
        if not updated:
            raise NotActive(f"Subscription is already {subscription.status}")
        return subscription

    def cancel_pending(self, subscription_id: str, reason: str) -> VIPSubscription:
        """Rejection path: cancels a subscription still awaiting payment."""
        subscription = self.get(subscription_id)
        updated = self.repo.transition(
            subscription_id,
            from_statuses=(SUBSCRIPTION_PENDING_PAYMENT,),
            values={
                "status": SUBSCRIPTION_CANCELLED,
                "cancelled_at": self.clock(),
                "admin_notes": f"Rejected: {reason}",
            },
        )
        if not updated:
            raise NotPendingPayment(f"Subscription is {subscription.status}")
        return subscription

    def current_boost(self, entity_id: str, tier: str) -> Optional[VIPSubscription]:
        return self.repo.get_current_boost(entity_id, tier, self.clock())

    def list_visible(self, owner_user_id: str, entity_ids: Mapping[str, Iterable[str]]) -> List[VIPSubscription]:
        return self.repo.list_visible(owner_user_id, entity_ids)
