# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""System endpoints for tenant connection diagnostics and management.

These paths are outside tenant resolution: they inspect or act on the
connection registry itself, never on a tenant's data.
"""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.dependencies import RegistryDep
from src.api.middleware.tenant import TENANT_ID_PATTERN, TenantResolutionError
from src.infrastructure.database.tenant_manager import TenantConnection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/system")


class ConnectionsResponse(BaseModel):
    """Snapshot of all cached tenant connections."""
    success: bool = True
    connections: dict[str, dict[str, Any]] = Field(description="Entries keyed by tenant id")
    count: int = Field(description="Number of cached connections")


class ConnectionSummary(BaseModel):
    """One tenant connection after a management action."""
    tenant_id: str = Field(serialization_alias="tenantId")
    database: str | None = None
    state: str


class ConnectionActionResponse(BaseModel):
    """Result of a reconnect or close action."""
    success: bool = True
    message: str
    connection: ConnectionSummary


def _validate_tenant_id(tenant_id: str) -> str:
    normalized = tenant_id.strip().lower()
    if not TENANT_ID_PATTERN.match(normalized):
        raise TenantResolutionError(f"Invalid tenant id: {tenant_id!r}")
    return normalized


def _summary(connection: TenantConnection, database: str | None) -> ConnectionSummary:
    return ConnectionSummary(
        tenant_id=connection.tenant_id,
        database=database,
        state=connection.state.value,
    )


@router.get("/connections", response_model=ConnectionsResponse)
async def list_connections(registry: RegistryDep) -> ConnectionsResponse:
    """Report every cached tenant connection. Performs no I/O."""
    connections = registry.snapshot()
    return ConnectionsResponse(connections=connections, count=len(connections))


@router.post(
    "/connections/{tenant_id}/reconnect",
    response_model=ConnectionActionResponse,
    response_model_by_alias=True,
)
async def reconnect_tenant(tenant_id: str, registry: RegistryDep) -> ConnectionActionResponse:
    """Close the tenant's connection, if any, and open a fresh one."""
    tenant_id = _validate_tenant_id(tenant_id)
    connection = await registry.reconnect(tenant_id)
    logger.info("Reconnected tenant %s", tenant_id)

    return ConnectionActionResponse(
        message=f"Connected to tenant {tenant_id}",
        connection=_summary(connection, registry.config.database_for(tenant_id)),
    )


@router.delete(
    "/connections/{tenant_id}",
    response_model=ConnectionActionResponse,
    response_model_by_alias=True,
    responses={404: {"description": "No cached connection for the tenant"}},
)
async def close_tenant_connection(tenant_id: str, registry: RegistryDep):
    """Close and forget the tenant's cached connection."""
    tenant_id = _validate_tenant_id(tenant_id)
    connection = registry.get(tenant_id)

    if connection is None or not await registry.close_tenant(tenant_id):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "success": False,
                "error": f"No connection for tenant {tenant_id}",
                "kind": "NotFound",
            },
        )

    return ConnectionActionResponse(
        message=f"Closed connection for tenant {tenant_id}",
        connection=_summary(connection, registry.config.database_for(tenant_id)),
    )
