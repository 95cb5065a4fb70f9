# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the LMS API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import close_db, get_binder, get_registry, init_db, warm_default_tenant
from src.api.errors import data_layer_error_handler, tenant_resolution_error_handler
from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.tenant import (
    TenantContextMiddleware,
    TenantResolutionError,
    TenantResolver,
)
from src.api.routes import health, system
from src.core.config import get_settings
from src.infrastructure.database.errors import DataLayerError
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup:
    - Logging configuration
    - Data layer (registry, binder, guard)
    - Default tenant warm-up, if enabled

    Shutdown closes every tenant connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting LMS API",
        extra={"environment": settings.environment, "debug": settings.debug},
    )

    # =========================================================================
    # Startup
    # =========================================================================

    await init_db(settings)
    logger.info("Data layer initialized")

    if settings.tenant_db.warm_default_tenant:
        try:
            await warm_default_tenant()
        except DataLayerError as e:
            # Requests retry the connection lazily
            logger.warning("Failed to connect default tenant: %s", e.message)

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    try:
        await close_db()
        logger.info("Tenant connections closed")
    except Exception as e:
        logger.warning("Error closing tenant connections: %s", str(e))

    logger.info("Shutting down LMS API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a new FastAPI instance with all
    middleware, routes, and configurations applied.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="LMS API",
        description="Multi-tenant learning management backend",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(DataLayerError, data_layer_error_handler)
    app.add_exception_handler(TenantResolutionError, tenant_resolution_error_handler)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================

    # Tenant context - needs request.state.user from AuthMiddleware
    app.add_middleware(
        TenantContextMiddleware,
        get_registry=get_registry,
        get_binder=get_binder,
        resolver=TenantResolver(
            default_tenant=settings.tenant_db.default_tenant,
            header=settings.tenant_db.tenant_header,
            base_domain=settings.tenant_db.base_domain,
        ),
    )

    # Auth middleware - decodes session tokens
    app.add_middleware(AuthMiddleware)

    # CORS middleware (should be last to execute first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(system.router, tags=["System"])

    return app
