# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module owns the process-wide data-layer singletons (connection
registry, schema binder, operation guard) and provides dependency
functions for endpoints.

Example:
    @router.get("/courses")
    async def list_courses(
        models: BoundModelSet = Depends(get_models),
        guard: OperationGuard = Depends(get_guard),
    ):
        return await guard.run(models["Course"].find({"status": "published"}))
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.api.middleware.tenant import RequestContext, get_tenant_from_request
from src.core.config import Settings, get_settings
from src.infrastructure.database.config import ConnectionConfig
from src.infrastructure.database.factory import MongoConnectionFactory
from src.infrastructure.database.guard import OperationGuard
from src.infrastructure.database.schema_binder import BoundModelSet, SchemaBinder
from src.infrastructure.database.tenant_manager import TenantConnectionRegistry

logger = logging.getLogger(__name__)

# Data-layer singletons
_registry: TenantConnectionRegistry | None = None
_binder: SchemaBinder | None = None
_guard: OperationGuard | None = None


async def init_db(
    settings: Settings | None = None,
    factory: MongoConnectionFactory | None = None,
) -> None:
    """Create the connection registry, schema binder and operation guard.

    No connection is opened here; tenants connect lazily on first use.

    Args:
        settings: Application settings. Uses get_settings() if omitted.
        factory: Connection factory override.
    """
    global _registry, _binder, _guard
    settings = settings or get_settings()

    config = ConnectionConfig.from_settings(settings.tenant_db)
    _registry = TenantConnectionRegistry(config, factory=factory)
    _binder = SchemaBinder(ensure_indexes=config.ensure_indexes)
    _guard = OperationGuard(default_timeout_ms=config.operation_timeout_ms)


async def warm_default_tenant() -> None:
    """Open and bind the default tenant's connection.

    Raises:
        ConnectionUnavailable: If the default tenant's database is unreachable.
    """
    registry = get_registry()
    tenant_id = registry.config.default_tenant
    if not tenant_id:
        return

    connection = await registry.acquire(tenant_id)
    await get_binder().bind(connection)
    logger.info("Default tenant %s connected", tenant_id)


async def close_db() -> None:
    """Close every tenant connection and drop the singletons."""
    global _registry, _binder, _guard

    if _registry:
        await _registry.close_all()

    _registry = None
    _binder = None
    _guard = None


def get_registry() -> TenantConnectionRegistry:
    """Get the tenant connection registry.

    Raises:
        RuntimeError: If init_db() has not run.
    """
    if _registry is None:
        raise RuntimeError("Connection registry not initialized. Call init_db() first.")
    return _registry


def get_binder() -> SchemaBinder:
    """Get the schema binder.

    Raises:
        RuntimeError: If init_db() has not run.
    """
    if _binder is None:
        raise RuntimeError("Schema binder not initialized. Call init_db() first.")
    return _binder


def get_guard() -> OperationGuard:
    """Get the operation guard.

    Raises:
        HTTPException: 503 if init_db() has not run.
    """
    if _guard is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data layer not initialized",
        )
    return _guard


def get_registry_dependency() -> TenantConnectionRegistry:
    """Registry dependency for endpoints (503 instead of RuntimeError)."""
    if _registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Data layer not initialized",
        )
    return _registry


def get_request_context(request: Request) -> RequestContext:
    """Get the tenant request context.

    Args:
        request: HTTP request processed by TenantContextMiddleware.

    Returns:
        RequestContext with tenant id, connection and models.

    Raises:
        HTTPException: If no tenant context in request.
    """
    context = get_tenant_from_request(request)
    if not context:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant context required",
        )
    return context


def get_models(
    context: Annotated[RequestContext, Depends(get_request_context)],
) -> BoundModelSet:
    """Get the models bound to the request's tenant connection."""
    return context.models


# Type aliases for endpoints
RegistryDep = Annotated[TenantConnectionRegistry, Depends(get_registry_dependency)]
GuardDep = Annotated[OperationGuard, Depends(get_guard)]
ContextDep = Annotated[RequestContext, Depends(get_request_context)]
ModelsDep = Annotated[BoundModelSet, Depends(get_models)]
