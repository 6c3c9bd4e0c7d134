"""Application settings loaded from environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

TOKEN_LIFETIME_MINUTES_DEFAULT = 15
HTTP_TIMEOUT_DEFAULT = 10.0
DB_POOL_SIZE_DEFAULT = 5
DB_MAX_OVERFLOW_DEFAULT = 10
DB_PORT_DEFAULT = 5432


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings for the audit log."""

    model_config = SettingsConfigDict(env_prefix="AUTH_DB_")

    host: str = "localhost"
    port: int = DB_PORT_DEFAULT
    user: str = "authgw"
    password: str = "authgw"
    database: str = "authgw"
    pool_size: int = DB_POOL_SIZE_DEFAULT
    max_overflow: int = DB_MAX_OVERFLOW_DEFAULT

    @property
    def async_url(self) -> str:
        """Build async PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class AuthSettings(BaseSettings):
    """Gateway-wide settings."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    environment: Literal["development", "production"] = "development"
    service_name: str = "auth-gateway"
    host: str = "0.0.0.0"
    port: int = 8000
    backend_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:5173"
    cors_origins: str = ""
    operator_token: str = ""
    http_timeout_seconds: float = HTTP_TIMEOUT_DEFAULT
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    log_json: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins, defaulting to the frontend."""
        if not self.cors_origins:
            return [self.frontend_url]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class SigningSettings(BaseSettings):
    """Token lifetime, claims and key-material locations."""

    model_config = SettingsConfigDict(env_prefix="JWT_")

    expiry_minutes: int = TOKEN_LIFETIME_MINUTES_DEFAULT
    issuer: str = "auth-gateway"
    audience: str = "gateway-services"
    active_kid: str = ""
    private_key_path: str = "keys/private.pem"
    public_key_path: str = "keys/public.pem"
    key_id: str = "auth-key-1"
    encryption_key: str = ""


class ProviderSettings(BaseSettings):
    """OAuth client credentials per identity provider."""

    google_client_id: str = ""
    google_client_secret: str = ""
    google_issuer_url: str = "https://accounts.google.com"
    github_client_id: str = ""
    github_client_secret: str = ""
    linkedin_client_id: str = ""
    linkedin_client_secret: str = ""


class CoordinatorSettings(BaseSettings):
    """Coordinator endpoint used for Directory lookups."""

    model_config = SettingsConfigDict(env_prefix="COORDINATOR_")

    url: str = "http://localhost:3001"
    api_key: str = ""
    mock_mode: bool = False
    timeout_seconds: float = HTTP_TIMEOUT_DEFAULT
