from fastapi import APIRouter, Depends, status

from app.api.v1.dependencies import get_current_user, get_vip_service
from app.models.user import User
from app.schemas.vip import (
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    EntityVIPStatusResponse,
    MySubscriptionsResponse,
    PricingResponse,
    PurchaseVIPRequest,
    PurchaseVIPResponse,
    SubscriptionOut,
    TransactionOut,
)
from app.services import vip_pricing
from app.services.vip_service import VIPLifecycleService

router = APIRouter(tags=["vip"])


@router.get("/pricing/{tier}", response_model=PricingResponse)
def get_pricing_options(tier: str):
    """Price table for a tier (public)."""
    pricing = vip_pricing.list_options(tier)
    return PricingResponse(tier=pricing["tier"], pricing=pricing)


@router.post("/purchase", response_model=PurchaseVIPResponse, status_code=status.HTTP_201_CREATED)
def purchase_vip(
    body: PurchaseVIPRequest,
    current_user: User = Depends(get_current_user),
    service: VIPLifecycleService = Depends(get_vip_service),
):
    """
    Start a VIP purchase.

    Creates the subscription in ``pending_payment`` and its pending payment
    transaction. For qr-transfer the response carries the PromptPay payload;
    cash payments wait for an admin to verify them.
    """
    result = service.purchase(
        current_user,
        tier=body.tier,
        entity_id=body.entity_id,
        duration=body.duration,
        payment_method=body.payment_method,
    )
    return PurchaseVIPResponse(
        message=result.message,
        subscription=SubscriptionOut.from_model(result.subscription),
        transaction=TransactionOut.from_model(result.transaction),
    )


@router.get("/my-subscriptions", response_model=MySubscriptionsResponse)
def get_my_subscriptions(
    current_user: User = Depends(get_current_user),
    service: VIPLifecycleService = Depends(get_vip_service),
):
    grouped = service.list_my_subscriptions(current_user)
    return MySubscriptionsResponse(
        subscriptions={
            tier: [SubscriptionOut.from_model(s) for s in subscriptions]
            for tier, subscriptions in grouped.items()
        }
    )


@router.post("/subscriptions/{subscription_id}/cancel", response_model=CancelSubscriptionResponse)
def cancel_subscription(
    subscription_id: str,
    body: CancelSubscriptionRequest = CancelSubscriptionRequest(),
    current_user: User = Depends(get_current_user),
    service: VIPLifecycleService = Depends(get_vip_service),
):
    """Cancel an active subscription. Pending ones end through payment rejection."""
    subscription = service.cancel_subscription(current_user, subscription_id, tier=body.tier)
    return CancelSubscriptionResponse(subscription=SubscriptionOut.from_model(subscription))


@router.get("/entities/{tier}/{entity_id}/status", response_model=EntityVIPStatusResponse)
def get_entity_vip_status(
    tier: str,
    entity_id: str,
    service: VIPLifecycleService = Depends(get_vip_service),
):
    return service.entity_status(tier, entity_id)
