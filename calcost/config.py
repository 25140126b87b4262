from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./calcost.db"
    APP_NAME: str = "CalCost"
    APP_BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    # Auth
    JWT_SECRET: str = ""  # REQUIRED in production: fail loudly if missing at auth time
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_MINUTES: int = 15
    JWT_REFRESH_EXPIRE_DAYS: int = 30

    # Authorization policy: JSON lists in env, e.g. PREMIUM_EMAILS='["a@b.com"]'
    ADMIN_USER_IDS: List[int] = []
    PREMIUM_EMAILS: List[str] = []
    ENTERPRISE_EMAILS: List[str] = []
    FREE_PLAN_PROJECT_LIMIT: int = 5

    # Pricing defaults
    DEFAULT_TAX_PERCENTAGE: float = 0.0

    # Consumption aggregation
    TRANSACTION_MAX_ATTEMPTS: int = 5
    FITTINGS_BATCH_SIZE: int = 500

    # Gemini
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # Email (Resend HTTP API): optional, notifications are skipped when unset
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "noreply@calcost.app"
    NOTIFICATIONS_FROM: str = "CalCost Notificaciones <notifications@calcost.app>"

    class Config:
        env_file = ".env"


settings = Settings()
