# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Immutable connection configuration for tenant databases.

ConnectionConfig is derived once from TenantDatabaseSettings at process
start and shared by the factory, the registry and the operation guard.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.core.config.settings import TenantDatabaseSettings


@dataclass(frozen=True)
class ConnectionConfig:
    """Process-wide configuration for tenant connections.

    Attributes:
        uri_template: MongoDB URI with {database} and/or {tenant_id} placeholders.
        default_tenant: Tenant id used when a request names none ("" disables).
        default_database: Database name of the default tenant.
        database_suffix: Suffix appended to tenant ids to form database names.
        max_pool_size: Maximum pool size per tenant client.
        min_pool_size: Minimum pool size per tenant client.
        connect_timeout_ms: Budget for opening one tenant connection.
        operation_timeout_ms: Default budget for one database call.
        ensure_indexes: Whether schema binding creates declared indexes.
    """

    uri_template: str = "mongodb://localhost:27017/{database}"
    default_tenant: str = "default"
    default_database: str = "LearnMsDb"
    database_suffix: str = "Db"
    max_pool_size: int = 10
    min_pool_size: int = 0
    connect_timeout_ms: int = 10000
    operation_timeout_ms: int = 30000
    ensure_indexes: bool = True

    @classmethod
    def from_settings(cls, settings: "TenantDatabaseSettings") -> "ConnectionConfig":
        """Build the config from tenant database settings."""
        return cls(
            uri_template=settings.uri_template,
            default_tenant=settings.default_tenant,
            default_database=settings.default_database,
            database_suffix=settings.database_suffix,
            max_pool_size=settings.max_pool_size,
            min_pool_size=settings.min_pool_size,
            connect_timeout_ms=settings.connect_timeout_ms,
            operation_timeout_ms=settings.operation_timeout_ms,
            ensure_indexes=settings.ensure_indexes,
        )

    def database_for(self, tenant_id: str) -> str:
        """Database name for a tenant.

        Examples:
            default -> LearnMsDb
            acme -> acmeDb
        """
        if self.default_tenant and tenant_id == self.default_tenant:
            return self.default_database
        return f"{tenant_id}{self.database_suffix}"

    def uri_for(self, tenant_id: str) -> str:
        """Render the connection URI for a tenant."""
        return self.uri_template.format(
            tenant_id=tenant_id,
            database=self.database_for(tenant_id),
        )
