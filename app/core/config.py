"""Configuration management for the Aurum Vault Operations service.

Configuration is loaded from environment variables, one settings class
per concern, each with its own prefix.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url

ASYNC_DRIVER = "postgresql+asyncpg"

MEGABYTE = 1024 * 1024


class AppEnvironment(str, Enum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseSettings):
    name: str = "aurum-vault-operations"
    env: AppEnvironment = AppEnvironment.LOCAL
    version: str = "0.1.0"
    log_level: LogLevel = LogLevel.INFO
    api_prefix: str = "/v1"

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str | LogLevel) -> str | LogLevel:
        return v.upper() if isinstance(v, str) else v


class ServerConfig(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 8080
    workers: int = Field(default=4, ge=1)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class DatabaseConfig(BaseSettings):
    # DATABASE_URL_APP, when set, wins over the individual components
    url_app: str = Field(default="", alias="database_url_app")

    host: str = "localhost"
    port: int = 5432
    name: str = "aurum_vault"
    user: str = "postgres"
    password: SecretStr = SecretStr("")

    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    connect_timeout: int = 10
    statement_timeout_ms: int = 15000
    echo: bool = False

    model_config = SettingsConfigDict(env_prefix="DATABASE_", populate_by_name=True)

    @property
    def async_url(self) -> str:
        """SQLAlchemy URL using the asyncpg driver, whatever scheme the source URL had."""
        if self.url_app:
            url = make_url(self.url_app).set(drivername=ASYNC_DRIVER)
        else:
            url = URL.create(
                ASYNC_DRIVER,
                username=self.user,
                password=self.password.get_secret_value(),
                host=self.host,
                port=self.port,
                database=self.name,
            )
        return url.render_as_string(hide_password=False)


class Auth0Config(BaseSettings):
    domain: str = ""
    audience: str = ""
    algorithms: str = "RS256"  # Comma-separated
    jwks_cache_ttl: int = 600

    model_config = SettingsConfigDict(env_prefix="AUTH0_")

    @property
    def jwks_url(self) -> str:
        return f"https://{self.domain}/.well-known/jwks.json"

    @property
    def issuer_url(self) -> str:
        return f"https://{self.domain}/"

    @property
    def roles_claim(self) -> str:
        return f"{self.audience}/roles"

    @property
    def algorithms_list(self) -> list[str]:
        return [algo.strip() for algo in self.algorithms.split(",") if algo.strip()]


class BulkOperationsConfig(BaseSettings):
    max_batch_size: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(env_prefix="BULK_")


class PaymentsConfig(BaseSettings):
    """Bill payment limits.

    ``default_verification_threshold`` applies whenever the ``system_config``
    row named by ``verification_threshold_key`` is missing or unusable.
    """

    default_verification_threshold: Decimal = Field(default=Decimal("10000"), ge=0)
    verification_threshold_key: str = "payment_verification_threshold"
    max_invoice_size_bytes: int = 5 * MEGABYTE
    max_verification_document_size_bytes: int = 10 * MEGABYTE
    allowed_invoice_content_types: list[str] = ["application/pdf"]
    allowed_verification_content_types: list[str] = [
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/webp",
    ]

    model_config = SettingsConfigDict(env_prefix="PAYMENTS_")


class DocumentParserConfig(BaseSettings):
    base_url: str = "http://localhost:8090"
    timeout: float = 30.0
    failure_threshold: int = 5
    reset_timeout_seconds: int = 60

    model_config = SettingsConfigDict(env_prefix="DOCUMENT_PARSER_")

    @property
    def extract_text_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/v1/extract-text"


class ObservabilityConfig(BaseSettings):
    service_name: str = "aurum-vault-operations"
    otlp_endpoint: str | None = None
    otlp_insecure: bool = True
    log_record_format: str = "json"  # "json" or "console"

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class SecurityConfig(BaseSettings):
    cors_allowed_origins: str = "http://localhost:3000,http://localhost:3001"  # Comma-separated
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["GET", "POST"]
    cors_allow_headers: list[str] = ["Authorization", "Content-Type", "X-Request-ID"]
    sanitize_errors: bool = True

    # Local development only; rejected in any other environment
    skip_jwt_validation: bool = False

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    auth0: Auth0Config = Field(default_factory=Auth0Config)
    bulk: BulkOperationsConfig = Field(default_factory=BulkOperationsConfig)
    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    document_parser: DocumentParserConfig = Field(default_factory=DocumentParserConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    @model_validator(mode="after")
    def reject_jwt_bypass_outside_local(self) -> Settings:
        if self.security.skip_jwt_validation and self.app.env != AppEnvironment.LOCAL:
            raise ValueError(
                "SECURITY_SKIP_JWT_VALIDATION is only allowed when APP_ENV=local "
                f"(got {self.app.env.value})"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()
