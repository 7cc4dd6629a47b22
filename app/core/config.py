from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # JWT
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # App Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "VIP Directory Backend"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # VIP
    VIP_CURRENCY: str = "THB"

    # PromptPay (QR transfer rail). Unset or malformed means the rail is unavailable.
    PROMPTPAY_MERCHANT_ID: Optional[str] = None

    # Notification dispatch. Without a webhook, notifications are only logged.
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT_SECONDS: int = 5

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    def get_cors_origins(self) -> list[str]:
        """Return the allowed CORS origins."""
        return self.CORS_ORIGINS.copy()

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
