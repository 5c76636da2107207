from pydantic_settings import BaseSettings
from decimal import Decimal
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: Optional[str] = None
    PGHOST: Optional[str] = None
    PGDATABASE: Optional[str] = None
    PGUSER: Optional[str] = None
    PGPASSWORD: Optional[str] = None
    PGSSLMODE: str = "require"

    # Security
    SECRET_KEY: str = "ulimo-development-secret-key"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Application
    PROJECT_NAME: str = "ULimo"
    API_V1_STR: str = "/api/v1"
    FUNCTIONS_STR: str = "/functions/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]
    TIMEZONE: str = "America/New_York"
    TICKET_VERIFY_BASE_URL: str = "http://localhost:5173/verify"

    # Wallet & miles
    MIN_CARD_PAYMENT: Decimal = Decimal("0.50")
    DEFAULT_POINT_VALUE: Decimal = Decimal("0.02")
    DEFAULT_REFERRAL_REWARD: int = 500
    DEFAULT_REGISTRATION_BONUS: int = 250

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.PGHOST:
            return f"postgresql://{self.PGUSER}:{self.PGPASSWORD}@{self.PGHOST}/{self.PGDATABASE}?sslmode={self.PGSSLMODE}"
        return "sqlite:///./ulimo.db"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
