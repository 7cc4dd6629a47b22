import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class VIPError(Exception):
    """Base for every business-rule failure of the VIP lifecycle."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "vip_error"
    default_detail: str = "VIP request failed"

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        self.detail = detail or self.default_detail
        self.extra: Dict[str, Any] = extra
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.detail, **self.extra}


class ValidationError(VIPError):
    code = "validation_error"
    default_detail = "Invalid request"


class InvalidTier(ValidationError):
    code = "invalid_tier"
    default_detail = "Invalid tier. Tier must be \"employee\" or \"establishment\""


class InvalidDuration(ValidationError):
    code = "invalid_duration"
    default_detail = "Invalid duration"


class InvalidPaymentMethod(ValidationError):
    code = "invalid_payment_method"
    default_detail = "Invalid payment method"


class PaymentMethodUnavailable(VIPError):
    code = "payment_method_unavailable"
    default_detail = "Payment method is not available"


class AlreadyProcessed(VIPError):
    code = "already_processed"
    default_detail = "Transaction already processed"


class NotActive(VIPError):
    code = "not_active"
    default_detail = "Subscription is not active"


class NotPendingPayment(VIPError):
    code = "not_pending_payment"
    default_detail = "Subscription is not awaiting payment"


class Unauthorized(VIPError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_detail = "Authentication required"


class Forbidden(VIPError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "You do not have permission to perform this action"


class NotFound(VIPError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Resource not found"


class ConflictActiveSubscriptionExists(VIPError):
    status_code = status.HTTP_409_CONFLICT
    code = "active_subscription_exists"
    default_detail = "An active VIP subscription already exists for this entity"


class TransactionCreationFailed(VIPError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "transaction_creation_failed"
    default_detail = "Failed to create payment transaction"


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(VIPError)
    async def vip_error_handler(request: Request, exc: VIPError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": ValidationError.code,
                "detail": "Invalid request body",
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url}: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
