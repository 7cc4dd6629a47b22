import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Forbidden, Unauthorized
from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User
from app.repositories.directory_repository import DirectoryRepository
from app.services.notification_service import NotificationService, get_notification_service
from app.services.qr_service import PromptPayQRService
from app.services.vip_service import VIPLifecycleService

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials or not credentials.credentials.strip():
        raise Unauthorized("Authentication token not provided")

    token = credentials.credentials.strip()
    if token.startswith("Bearer "):
        token = token[7:].strip()

    payload = decode_access_token(token)
    if payload is None:
        raise Unauthorized("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        logger.warning(f"Token without 'sub'. Payload keys: {list(payload.keys())}")
        raise Unauthorized("Invalid token")

    user = DirectoryRepository(db).get_user(str(user_id))
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        logger.warning(f"Inactive user {user_id} rejected")
        raise Forbidden("User is inactive")
    return user


def get_qr_service() -> PromptPayQRService:
    return PromptPayQRService(merchant_id=settings.PROMPTPAY_MERCHANT_ID)


def get_vip_service(
    db: Session = Depends(get_db),
    qr_service: PromptPayQRService = Depends(get_qr_service),
    notifier: NotificationService = Depends(get_notification_service),
) -> VIPLifecycleService:
    return VIPLifecycleService.build(db, qr_service=qr_service, notifier=notifier)
