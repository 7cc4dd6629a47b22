import logging
from typing import Any, Dict, Optional

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)

VIP_PURCHASE_CONFIRMED = "vip_purchase_confirmed"
VIP_PAYMENT_VERIFIED = "vip_payment_verified"
VIP_PAYMENT_REJECTED = "vip_payment_rejected"
VIP_SUBSCRIPTION_CANCELLED = "vip_subscription_cancelled"


class NotificationError(RuntimeError):
    pass


class NotificationService:
    """Dispatches user notifications to the platform's notification webhook."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: Optional[int] = None):
        self.webhook_url = webhook_url
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    def notify(self, kind: str, user_id: str, payload: Dict[str, Any]) -> None:
        body = {
            "type": kind,
            "user_id": user_id,
            "i18n_params": payload,
            "link": "/user/profile",
            "related_entity_type": "vip_subscription",
        }
        if not self.webhook_url:
            logger.info(f"Notification {kind} for user {user_id} (no webhook configured): {payload}")
            return

        try:
            resp = requests.post(self.webhook_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(f"Notification webhook unreachable: {e}") from e
        if resp.status_code >= 400:
            raise NotificationError(f"Notification webhook error: {resp.status_code}")
        logger.info(f"User {user_id} notified: {kind}")


def get_notification_service() -> NotificationService:
    return NotificationService(webhook_url=settings.NOTIFICATION_WEBHOOK_URL)
