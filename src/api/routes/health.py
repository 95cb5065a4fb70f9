# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoint.

Reports whether the data layer is initialized and, if the default tenant
is connected, whether its database answers a ping.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.api import dependencies
from src.core.config import get_settings
from src.infrastructure.database.errors import DataLayerError

logger = logging.getLogger(__name__)

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()

# Health pings get a short budget regardless of the configured default
PING_TIMEOUT_MS = 2000


class DatabaseHealth(BaseModel):
    """Data layer health status."""
    status: str = Field(description="Component status")
    connections: int = Field(0, description="Cached tenant connections")
    latency_ms: float | None = Field(None, description="Default tenant ping latency in ms")
    message: str | None = Field(None, description="Additional status message")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    database: DatabaseHealth


async def check_database() -> DatabaseHealth:
    """Check the data layer and ping the default tenant if it is connected."""
    try:
        registry = dependencies.get_registry()
    except RuntimeError as e:
        return DatabaseHealth(status="unhealthy", message=str(e))

    connection = registry.get(registry.config.default_tenant)
    if connection is None or not connection.is_ready:
        return DatabaseHealth(
            status="degraded",
            connections=len(registry),
            message="Default tenant not connected",
        )

    start = time.monotonic()
    try:
        await dependencies.get_guard().run(
            connection.handle.command("ping"),
            timeout_ms=PING_TIMEOUT_MS,
            description="Health ping",
        )
    except DataLayerError as e:
        logger.error("Database health check failed: %s", e.message)
        return DatabaseHealth(
            status="unhealthy",
            connections=len(registry),
            message=e.public_message,
        )

    latency = (time.monotonic() - start) * 1000
    return DatabaseHealth(
        status="healthy",
        connections=len(registry),
        latency_ms=round(latency, 2),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check if the API is healthy.

    Returns:
        HealthResponse with data layer status.
    """
    settings = get_settings()
    database = await check_database()

    return HealthResponse(
        status=database.status,
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        database=database,
    )
