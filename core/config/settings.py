# Complete settings for the order guard core
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, SecretStr, field_validator
from decimal import Decimal
from enum import Enum
from typing import Dict, List
from pathlib import Path


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class ExchangeSettings(BaseModel):
    # Single exchange account reached through the remote RPC gateway
    name: str = "kraken"
    api_key: str = ""
    api_secret: SecretStr = SecretStr("")
    gateway_url: str = "http://localhost:54321/functions/v1/kraken-api"
    gateway_token: SecretStr = SecretStr("")
    request_timeout_seconds: float = 15.0


class CacheSettings(BaseModel):
    """Refresh windows for the read-through caches"""
    balance_refresh_seconds: float = 30.0
    price_refresh_seconds: float = 60.0

    @field_validator("balance_refresh_seconds", "price_refresh_seconds")
    @classmethod
    def validate_positive_interval(cls, v):
        if v <= 0:
            raise ValueError("Refresh intervals must be positive")
        return v


class PriceFeedSettings(BaseModel):
    base_url: str = "https://api.coingecko.com/api/v3"
    timeout_seconds: float = 10.0


class ValidationSettings(BaseModel):
    """Trade validation limits"""
    default_min_order_size: Decimal = Decimal("0.0001")
    # Fraction of the held balance offered when a sell exceeds it
    sell_buffer_ratio: Decimal = Decimal("0.95")
    # Retry with the pair minimum when the request is below it
    allow_minimum_upsize: bool = True
    min_order_sizes: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "BTC/USD": Decimal("0.0001"),
            "ETH/USD": Decimal("0.001"),
            "XRP/USD": Decimal("1"),
            "LTC/USD": Decimal("0.01"),
            "ADA/USD": Decimal("10"),
            "DOT/USD": Decimal("0.1"),
        },
        description="Minimum order size per display pair (BASE/QUOTE)",
    )

    @field_validator("sell_buffer_ratio")
    @classmethod
    def validate_buffer_ratio(cls, v):
        if v <= 0 or v > 1:
            raise ValueError("sell_buffer_ratio must be in (0, 1]")
        return v

    @field_validator("default_min_order_size")
    @classmethod
    def validate_min_order_size(cls, v):
        if v <= 0:
            raise ValueError("default_min_order_size must be positive")
        return v


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    # Redaction
    redact_keys: List[str] = [
        "authorization", "api_key", "apikey", "api_secret", "apisecret",
        "api-secret", "secret", "password", "token", "gateway_token",
    ]


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = "Order Guard"
    version: str = "0.3.0"
    environment: Environment = Environment.DEVELOPMENT

    exchange: ExchangeSettings = ExchangeSettings()
    cache: CacheSettings = CacheSettings()
    price_feed: PriceFeedSettings = PriceFeedSettings()
    validation: ValidationSettings = ValidationSettings()
    logging: LoggingSettings = LoggingSettings()

    def has_credentials(self) -> bool:
        return bool(self.exchange.api_key and self.exchange.api_secret.get_secret_value())

    @property
    def base_dir(self) -> str:
        """Get base application directory dynamically"""
        # Go up 2 levels from core/config/settings.py to reach project root
        return str(Path(__file__).resolve().parents[2])


# No global settings instance - use dependency injection instead
