from decimal import Decimal
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "MarketNest Checkout API"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str = "sqlite:///./checkout.db"

    # Pricing policy
    TAX_RATE: Decimal = Decimal("0.14")
    SHIPPING_FLAT_RATE: Decimal = Decimal("10.00")
    CURRENCY_SYMBOL: str = "$"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Bootstrap
    DEFAULT_ADMIN_EMAIL: str = "admin@marketnest.local"

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        return value.lower().strip()

    @field_validator("TAX_RATE", "SHIPPING_FLAT_RATE")
    @classmethod
    def validate_non_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("Pricing policy values must be non-negative")
        return value

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()
