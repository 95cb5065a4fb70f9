# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the LMS
data-access layer. Settings are loaded from environment variables with
sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.tenant_db.default_tenant)
    'default'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TenantDatabaseSettings(BaseSettings):
    """Tenant database configuration.

    Every tenant owns a separate MongoDB database. The connection URI is
    built from ``uri_template`` by substituting ``{database}`` (the tenant's
    database name) and/or ``{tenant_id}``.

    Attributes:
        uri_template: MongoDB URI template parameterized by tenant.
        default_tenant: Tenant used when a request names none. Empty disables it.
        default_database: Database name of the default tenant.
        database_suffix: Suffix appended to a tenant id to form its database name.
        max_pool_size: Maximum connections in each tenant's pool.
        min_pool_size: Minimum connections kept warm in each tenant's pool.
        connect_timeout_ms: Budget for opening a tenant connection.
        operation_timeout_ms: Default budget for a single database call.
        ensure_indexes: Whether schema binding creates the declared indexes.
        warm_default_tenant: Whether startup opens the default tenant connection.
        tenant_header: Request header carrying the tenant id.
        base_domain: Base domain for subdomain tenant resolution (optional).
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANT_DB_",
        extra="ignore",
    )

    uri_template: str = "mongodb://localhost:27017/{database}"
    default_tenant: str = "default"
    default_database: str = "LearnMsDb"
    database_suffix: str = "Db"
    max_pool_size: int = Field(default=10, ge=1)
    min_pool_size: int = Field(default=0, ge=0)
    connect_timeout_ms: int = Field(default=10000, gt=0)
    operation_timeout_ms: int = Field(default=30000, gt=0)
    ensure_indexes: bool = True
    warm_default_tenant: bool = True
    tenant_header: str = "X-Tenant-Id"
    base_domain: str | None = None

    @field_validator("uri_template")
    @classmethod
    def validate_uri_template(cls, value: str) -> str:
        """Require at least one tenant placeholder in the template."""
        if "{database}" not in value and "{tenant_id}" not in value:
            raise ValueError(
                "uri_template must contain a {database} or {tenant_id} placeholder"
            )
        return value

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> Self:
        """Reject a minimum pool size above the maximum."""
        if self.min_pool_size > self.max_pool_size:
            raise ValueError("min_pool_size cannot exceed max_pool_size")
        return self


class JWTSettings(BaseSettings):
    """Session token verification configuration.

    Tokens are issued elsewhere; this service only verifies them to read
    the tenant claim.

    Attributes:
        secret_key: Secret key used to verify token signatures.
        algorithm: JWT signing algorithm.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
    )

    secret_key: SecretStr = SecretStr("change-this-in-production")
    algorithm: str = "HS256"


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class APISettings(BaseSettings):
    """API server configuration.

    Attributes:
        host: Host to bind to.
        port: Port to listen on.
        workers: Number of worker processes.
        reload: Whether to enable auto-reload.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 5000
    workers: int = 2
    reload: bool = False


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        tenant_db: Tenant database settings.
        jwt: Session token settings.
        cors: CORS settings.
        api: API server settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    tenant_db: TenantDatabaseSettings = Field(default_factory=TenantDatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            default_jwt_secret = "change-this-in-production"
            if self.jwt.secret_key.get_secret_value() == default_jwt_secret:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
