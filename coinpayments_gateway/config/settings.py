"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

# libpq query parameters asyncpg does not understand
_LIBPQ_ONLY_PARAMS = ("sslmode", "channel_binding")
_SSL_MODES = {"allow", "prefer", "require", "verify-ca", "verify-full"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = Field(..., description="PostgreSQL connection URL")
    database_pool_size: int = Field(default=10, description="Database connection pool size")
    database_max_overflow: int = Field(default=20, description="Max database connection overflow")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # CoinPayments Configuration
    coinpayments_merchant_id: Optional[str] = Field(
        default=None, description="Merchant ID expected in IPN payloads"
    )
    coinpayments_public_key: str = Field(..., min_length=1, description="API public key")
    coinpayments_private_key: str = Field(..., min_length=1, description="API private key")
    coinpayments_ipn_secret: str = Field(..., min_length=1, description="Shared IPN secret")
    coinpayments_ipn_url: str = Field(..., description="Public URL the processor posts IPNs to")
    coinpayments_currency: str = Field(default="USDT", description="Default payment currency")
    coinpayments_api_url: str = Field(
        default="https://www.coinpayments.net/api.php", description="CoinPayments API endpoint"
    )
    coinpayments_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for calls to the CoinPayments API"
    )
    coinpayments_ipn_header: str = Field(default="HMAC", description="IPN signature header name")
    default_item_name: str = Field(
        default="UniversalFileLab Subscription", description="Item name when none is supplied"
    )

    # Application Configuration
    app_name: str = Field(default="coinpayments-gateway", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(
        default=5000,
        validation_alias=AliasChoices("api_port", "port"),
        description="API port",
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5000",
        description="CORS allowed origins (comma-separated)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("coinpayments_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Normalise the default currency code."""
        if not v.strip():
            raise ValueError("Default currency must not be empty")
        return v.strip().upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def async_database_url(self) -> str:
        """
        Database URL rewritten for an async driver.

        Plain ``postgres://`` / ``postgresql://`` URLs (as issued by hosted
        providers) are switched to asyncpg and stripped of libpq-only
        query parameters.
        """
        url = make_url(self.database_url)
        if url.drivername in ("postgres", "postgresql", "postgresql+psycopg2"):
            url = url.set(drivername="postgresql+asyncpg")
        if url.drivername == "postgresql+asyncpg":
            url = url.difference_update_query(_LIBPQ_ONLY_PARAMS)
        return url.render_as_string(hide_password=False)

    @property
    def database_connect_args(self) -> Dict[str, Any]:
        """Driver connect arguments derived from the configured URL."""
        url = make_url(self.database_url)
        sslmode = url.query.get("sslmode")
        if isinstance(sslmode, tuple):
            sslmode = sslmode[-1]
        if self.async_database_url.startswith("postgresql+asyncpg") and sslmode in _SSL_MODES:
            return {"ssl": sslmode}
        return {}

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return make_url(self.database_url).get_backend_name() == "sqlite"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
