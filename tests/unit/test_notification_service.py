"""
Unit tests for notification dispatch.
Run: pytest tests/unit/test_notification_service.py -v
"""
from unittest.mock import Mock, patch

import pytest
import requests

from app.services.notification_service import (
    VIP_PAYMENT_VERIFIED,
    NotificationError,
    NotificationService,
)


def test_without_webhook_only_logs():
    with patch("app.services.notification_service.requests.post") as post:
        NotificationService(webhook_url=None).notify(VIP_PAYMENT_VERIFIED, "user-1", {"tier": "employee"})
    post.assert_not_called()


def test_posts_to_webhook():
    with patch("app.services.notification_service.requests.post", return_value=Mock(status_code=202)) as post:
        NotificationService(webhook_url="https://notify.example/hook", timeout=3).notify(
            VIP_PAYMENT_VERIFIED, "user-1", {"tier": "employee", "expiresAt": "2026-04-01T00:00:00+00:00"}
        )

    post.assert_called_once()
    assert post.call_args.args == ("https://notify.example/hook",)
    assert post.call_args.kwargs["timeout"] == 3
    body = post.call_args.kwargs["json"]
    assert body["type"] == "vip_payment_verified"
    assert body["user_id"] == "user-1"
    assert body["i18n_params"]["tier"] == "employee"


def test_webhook_error_status_raises():
    with patch("app.services.notification_service.requests.post", return_value=Mock(status_code=500)):
        with pytest.raises(NotificationError):
            NotificationService(webhook_url="https://notify.example/hook").notify(VIP_PAYMENT_VERIFIED, "u", {})


def test_webhook_unreachable_raises():
    with patch(
        "app.services.notification_service.requests.post",
        side_effect=requests.ConnectionError("refused"),
    ):
        with pytest.raises(NotificationError):
            NotificationService(webhook_url="https://notify.example/hook").notify(VIP_PAYMENT_VERIFIED, "u", {})
