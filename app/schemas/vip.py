from datetime import datetime
from typing import Annotated, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, PlainSerializer

from app.models.vip import VIPPaymentTransaction, VIPSubscription
from app.services.subscription_state_machine import effective_status, is_boosted
from app.utils.serialization import ensure_utc


class PurchaseVIPRequest(BaseModel):
    tier: str = Field(..., validation_alias=AliasChoices("tier", "subscription_type"))
    entity_id: str = Field(..., min_length=1)
    duration: int
    payment_method: str


class CancelSubscriptionRequest(BaseModel):
    tier: Optional[str] = Field(None, validation_alias=AliasChoices("tier", "subscription_type"))


class AdminNotesRequest(BaseModel):
    admin_notes: Optional[str] = None


UTCDateTime = Annotated[
    datetime,
    PlainSerializer(lambda value: ensure_utc(value).isoformat(), return_type=str, when_used="json"),
]


class SubscriptionOut(BaseModel):
    id: str
    tier: str
    entity_id: str
    owner_user_id: str
    status: str
    effective_status: str
    is_vip: bool
    duration_days: int
    starts_at: Optional[UTCDateTime] = None
    expires_at: Optional[UTCDateTime] = None
    cancelled_at: Optional[UTCDateTime] = None
    price_paid: float
    currency: str
    transaction_id: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: Optional[UTCDateTime] = None

    @classmethod
    def from_model(cls, subscription: VIPSubscription) -> "SubscriptionOut":
        return cls(
            id=subscription.id,
            tier=subscription.tier,
            entity_id=subscription.entity_id,
            owner_user_id=subscription.owner_user_id,
            status=subscription.status,
            effective_status=effective_status(subscription),
            is_vip=is_boosted(subscription),
            duration_days=subscription.duration_days,
            starts_at=subscription.starts_at,
            expires_at=subscription.expires_at,
            cancelled_at=subscription.cancelled_at,
            price_paid=float(subscription.price_paid),
            currency=subscription.currency,
            transaction_id=subscription.transaction_id,
            admin_notes=subscription.admin_notes,
            created_at=subscription.created_at,
        )


class TransactionOut(BaseModel):
    id: str
    subscription_id: str
    tier: str
    user_id: str
    amount: float
    currency: str
    payment_method: str
    payment_status: str
    qr_code: Optional[str] = None
    qr_reference: Optional[str] = None
    admin_notes: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[UTCDateTime] = None
    created_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_model(cls, transaction: VIPPaymentTransaction) -> "TransactionOut":
        return cls.model_validate(transaction)


class SubscriptionSummary(BaseModel):
    tier: str
    status: str
    duration_days: int
    starts_at: Optional[UTCDateTime] = None
    expires_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True


class AdminTransactionOut(TransactionOut):
    subscription: Optional[SubscriptionSummary] = None


class PurchaseVIPResponse(BaseModel):
    success: bool = True
    message: str
    subscription: SubscriptionOut
    transaction: TransactionOut


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment verified and subscription activated"
    subscription: SubscriptionOut
    transaction: TransactionOut


class RejectPaymentResponse(BaseModel):
    success: bool = True
    message: str = "Payment rejected successfully"
    transaction: TransactionOut


class CancelSubscriptionResponse(BaseModel):
    success: bool = True
    message: str = "VIP subscription cancelled successfully"
    subscription: SubscriptionOut


class MySubscriptionsResponse(BaseModel):
    success: bool = True
    subscriptions: Dict[str, List[SubscriptionOut]]


class AdminTransactionsResponse(BaseModel):
    success: bool = True
    transactions: List[AdminTransactionOut]
    count: int


class PriceOption(BaseModel):
    duration: int
    price: int
    discount: int
    original_price: Optional[int] = None
    popular: bool = False
    price_per_day: float


class PricingTable(BaseModel):
    tier: str
    name: str
    description: str
    features: List[str]
    currency: str
    prices: List[PriceOption]


class PricingResponse(BaseModel):
    success: bool = True
    tier: str
    pricing: PricingTable


class EntityVIPStatusResponse(BaseModel):
    tier: str
    entity_id: str
    is_vip: bool
    subscription_id: Optional[str] = None
    expires_at: Optional[str] = None
