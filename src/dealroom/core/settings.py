"""Runtime configuration for the dealroom service.

Every option reads from an upper-case environment variable (or ``.env``).
Deal policy (round cap, commission fallback, advance split, currency) lives
here alongside the infrastructure URLs.
"""

import json
from decimal import Decimal
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Env values arrive raw so "a,b" works alongside the JSON list form.
CsvList = Annotated[list[str], NoDecode]


class Settings(BaseSettings):
    """Environment-backed settings; see the aliases for variable names."""

    # Service identity
    app_name: str = Field(default="Dealroom", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Tokens are minted by the auth service; we only verify them
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60 * 24, ge=1, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Storage
    database_url: str = Field(default="sqlite:///./dealroom.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Presence keys written by the realtime transport
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    presence_key_prefix: str = Field(default="presence", alias="PRESENCE_KEY_PREFIX")
    presence_ttl_seconds: int = Field(default=60, ge=1, alias="PRESENCE_TTL_SECONDS")

    # Deal policy
    max_negotiation_rounds: int = Field(default=3, ge=0, alias="MAX_NEGOTIATION_ROUNDS")
    default_commission_percentage: Decimal = Field(
        default=Decimal("10"), ge=0, le=100, alias="DEFAULT_COMMISSION_PERCENTAGE"
    )
    advance_percentage: int = Field(default=50, ge=0, le=100, alias="ADVANCE_PERCENTAGE")
    default_currency: str = Field(default="INR", min_length=3, max_length=3, alias="DEFAULT_CURRENCY")

    # Browser clients
    cors_origins: CsvList = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: CsvList = Field(
        default=["GET", "POST", "PUT", "OPTIONS"], alias="CORS_ALLOW_METHODS"
    )
    cors_allow_headers: CsvList = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("cors_origins", "cors_allow_methods", "cors_allow_headers", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if value.lstrip().startswith("["):
            return json.loads(value)
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def effective_database_url(self) -> str:
        """URL the app connects to; the test URL wins when USE_TEST_DATABASE is set."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def database_url_sync(self) -> str:
        """Driver-adjusted URL for Alembic and the maintenance scripts."""
        url = self.effective_database_url
        for prefix in ("postgresql+asyncpg", "postgres://"):
            if url.startswith(prefix):
                replacement = "postgresql+psycopg" if prefix.endswith("asyncpg") else "postgresql+psycopg://"
                return url.replace(prefix, replacement, 1)
        return url


settings = Settings()
