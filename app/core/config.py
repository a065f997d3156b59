"""
Application configuration models and helpers.

Every credential is optional when the settings are loaded so the service can
boot without them; the operations that need a value call the ``require_*``
helpers, which raise ``ConfigurationError`` at invocation time.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.exceptions import ConfigurationError


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)


class MarketplaceSettings(_EnvSettings):
    """Credentials and endpoints of the marketplace OAuth application."""

    client_id: Optional[str] = Field(None, validation_alias="ML_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="ML_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(None, validation_alias="ML_REDIRECT_URI")
    auth_url: str = Field(
        "https://auth.mercadolivre.com.br/authorization",
        validation_alias="ML_AUTH_URL",
    )
    api_base_url: str = Field(
        "https://api.mercadolibre.com",
        validation_alias="ML_API_BASE_URL",
    )
    http_timeout_seconds: float = Field(
        15.0,
        validation_alias="ML_HTTP_TIMEOUT",
        description="Upper bound for each call to the marketplace API.",
    )

    def require_authorization_config(self) -> tuple[str, str]:
        """Return ``(client_id, redirect_uri)`` or fail when either is missing."""
        if not self.client_id or not self.redirect_uri:
            raise ConfigurationError(
                "Marketplace client id and redirect URI are not configured."
            )
        return self.client_id, str(self.redirect_uri)

    def require_exchange_config(self) -> tuple[str, str, str]:
        """Return ``(client_id, client_secret, redirect_uri)`` for the token exchange."""
        client_id, redirect_uri = self.require_authorization_config()
        if not self.client_secret:
            raise ConfigurationError("Marketplace client secret is not configured.")
        return client_id, self.client_secret, redirect_uri


class AuthSettings(_EnvSettings):
    """Verification parameters for product-user bearer tokens."""

    jwt_secret: Optional[str] = Field(None, validation_alias="AUTH_JWT_SECRET")
    jwt_algorithm: str = Field("HS256", validation_alias="AUTH_JWT_ALGORITHM")
    jwt_audience: Optional[str] = Field(
        "authenticated",
        validation_alias="AUTH_JWT_AUDIENCE",
        description="Expected ``aud`` claim; empty disables the audience check.",
    )


class OAuthSettings(_EnvSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")


class StorageSettings(_EnvSettings):
    """Location of the relational store holding linked accounts."""

    database_path: str = Field("data/linked_accounts.db", validation_alias="DATABASE_PATH")


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    dashboard_url: str = Field(
        "http://localhost:3000/dashboard",
        validation_alias="DASHBOARD_URL",
        description="Front-end page receiving the redirect-style callback outcome.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    marketplace: MarketplaceSettings = Field(default_factory=MarketplaceSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def missing_required(self) -> list[str]:
        """List the environment keys a production deployment still has to provide."""
        missing = []
        if not self.marketplace.client_id:
            missing.append("ML_CLIENT_ID")
        if not self.marketplace.client_secret:
            missing.append("ML_CLIENT_SECRET")
        if not self.marketplace.redirect_uri:
            missing.append("ML_REDIRECT_URI")
        if not self.auth.jwt_secret:
            missing.append("AUTH_JWT_SECRET")
        return missing


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AuthSettings",
    "MarketplaceSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
