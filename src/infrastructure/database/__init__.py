# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant-scoped data access on MongoDB.

Each tenant owns a separate database. This package provides:
- ConnectionConfig: immutable connection settings
- MongoConnectionFactory: opens one Motor client per tenant
- TenantConnectionRegistry: caches one connection per tenant
- SchemaBinder: binds the static schema catalog to a connection
- OperationGuard: timeout budget and error taxonomy for every call

Example:
    from src.infrastructure.database import (
        ConnectionConfig,
        OperationGuard,
        SchemaBinder,
        TenantConnectionRegistry,
    )

    registry = TenantConnectionRegistry(ConnectionConfig())
    binder = SchemaBinder()
    guard = OperationGuard()

    connection = await registry.acquire("acme")
    models = await binder.bind(connection)
    courses = await guard.run(models["Course"].find({"status": "published"}))
"""

from src.infrastructure.database.config import ConnectionConfig
from src.infrastructure.database.errors import (
    ConnectionUnavailable,
    ConnectTimeout,
    DataLayerError,
    DocumentValidationError,
    DriverError,
    DuplicateKey,
    ErrorKind,
    NotFoundCast,
    OperationTimeout,
    SchemaRegistrationError,
    UnknownDataError,
    classify_error,
)
from src.infrastructure.database.factory import MongoConnectionFactory, close_handle
from src.infrastructure.database.guard import OperationGuard
from src.infrastructure.database.schema_binder import BoundModelSet, SchemaBinder, TenantModel
from src.infrastructure.database.tenant_manager import (
    ConnectionState,
    TenantConnection,
    TenantConnectionRegistry,
)

__all__ = [
    # Configuration
    "ConnectionConfig",
    # Errors
    "ErrorKind",
    "DataLayerError",
    "ConnectionUnavailable",
    "ConnectTimeout",
    "OperationTimeout",
    "DocumentValidationError",
    "DuplicateKey",
    "NotFoundCast",
    "DriverError",
    "UnknownDataError",
    "SchemaRegistrationError",
    "classify_error",
    # Connections
    "MongoConnectionFactory",
    "close_handle",
    "ConnectionState",
    "TenantConnection",
    "TenantConnectionRegistry",
    # Models
    "BoundModelSet",
    "SchemaBinder",
    "TenantModel",
    # Guard
    "OperationGuard",
]
