# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant resolution and request context middleware.

The tenant of a request is resolved from, in order:
1. The tenant claim of an authenticated session (request.state.user)
2. The X-Tenant-Id header (case-insensitive)
3. The subdomain of the configured base domain, if any
4. The configured default tenant

The middleware then acquires the tenant's connection, binds the schema
catalog to it, and stores a RequestContext in request.state.tenant for the
handler. If the connection cannot be opened the handler is not invoked and
the client receives a 503.

Example:
    # Request with header
    GET /api/v1/courses
    X-Tenant-Id: acme

    # Request with subdomain (base_domain = "learnms.io")
    GET https://acme.learnms.io/api/v1/courses
"""

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.infrastructure.database.errors import DataLayerError
from src.utils.logging import bind_context, clear_context

if TYPE_CHECKING:
    from src.infrastructure.database.schema_binder import BoundModelSet, SchemaBinder
    from src.infrastructure.database.tenant_manager import (
        TenantConnection,
        TenantConnectionRegistry,
    )

logger = logging.getLogger(__name__)

# Default header name for the tenant id
TENANT_HEADER = "X-Tenant-Id"

# Tenant ids become database names
TENANT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,47}$")

# Paths that don't require tenant context
PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
})

# Path prefixes that don't require tenant context
PUBLIC_PATH_PREFIXES = (
    "/api/v1/system/",  # Diagnostics and connection management
)


class TenantResolutionError(Exception):
    """Raised when no usable tenant id can be derived from a request.

    Attributes:
        message: Error description.
        status_code: HTTP status to answer with.
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_response(self) -> dict:
        return {"success": False, "error": self.message, "kind": "TenantResolutionError"}


@dataclass(frozen=True)
class RequestContext:
    """Per-request data-layer context.

    Attributes:
        tenant_id: Resolved tenant id.
        connection: The tenant's READY connection.
        models: Models bound to that connection.
    """

    tenant_id: str
    connection: "TenantConnection"
    models: "BoundModelSet"


class TenantResolver:
    """Derives the tenant id of a request.

    The resolver never reads the request body.

    Attributes:
        default_tenant: Fallback tenant id ("" disables the fallback).
        header: Tenant header name.
        base_domain: Base domain for subdomain extraction, or None.
    """

    def __init__(
        self,
        default_tenant: str = "default",
        header: str = TENANT_HEADER,
        base_domain: str | None = None,
    ) -> None:
        self.default_tenant = default_tenant
        self.header = header
        self.base_domain = base_domain.lower().lstrip(".") if base_domain else None

    def resolve(self, request: Request) -> str:
        """Resolve the tenant id for a request.

        Args:
            request: Incoming HTTP request.

        Returns:
            Normalized tenant id.

        Raises:
            TenantResolutionError: If the id is malformed (400) or nothing
                applies and no default tenant is configured (500).
        """
        user = getattr(request.state, "user", None)
        claimed = getattr(user, "tenant_id", None)
        if claimed:
            return self._normalize(claimed, "session")

        # Starlette headers are case-insensitive
        header_value = request.headers.get(self.header)
        if header_value and header_value.strip():
            return self._normalize(header_value, "header")

        subdomain = self._extract_subdomain(request.headers.get("host", ""))
        if subdomain:
            return self._normalize(subdomain, "subdomain")

        if self.default_tenant:
            return self.default_tenant

        raise TenantResolutionError("Unable to determine tenant for request", status_code=500)

    def _normalize(self, value: str, source: str) -> str:
        tenant_id = value.strip().lower()
        if not TENANT_ID_PATTERN.match(tenant_id):
            raise TenantResolutionError(f"Invalid tenant id from {source}: {value!r}")
        return tenant_id

    def _extract_subdomain(self, host: str) -> str | None:
        """Extract subdomain from host.

        Examples:
            acme.learnms.io -> acme
            learnms.io -> None
            localhost:5000 -> None
        """
        if not host or not self.base_domain:
            return None

        # Remove port if present
        host = host.split(":")[0].lower()

        if host in ("localhost", "127.0.0.1"):
            return None

        if not host.endswith("." + self.base_domain):
            return None

        subdomain = host[: -(len(self.base_domain) + 1)]
        if subdomain and subdomain != "www" and "." not in subdomain:
            return subdomain

        return None


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Middleware attaching the tenant's connection and models to requests.

    Order: resolve -> acquire -> bind -> attach. Must run after
    AuthMiddleware so the session claim is available.

    Attributes:
        _get_registry: Callable returning the connection registry.
        _get_binder: Callable returning the schema binder.
        _resolver: Tenant resolver.
    """

    def __init__(
        self,
        app: ASGIApp,
        get_registry: Callable[[], "TenantConnectionRegistry"],
        get_binder: Callable[[], "SchemaBinder"],
        resolver: TenantResolver,
    ) -> None:
        super().__init__(app)
        self._get_registry = get_registry
        self._get_binder = get_binder
        self._resolver = resolver

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        request.state.tenant = None

        if self._is_public_path(request.url.path):
            return await call_next(request)

        try:
            tenant_id = self._resolver.resolve(request)
        except TenantResolutionError as e:
            logger.warning("Tenant resolution failed: %s", e.message)
            return JSONResponse(e.to_response(), status_code=e.status_code)

        bind_context(tenant_id=tenant_id)
        try:
            try:
                connection = await self._get_registry().acquire(tenant_id)
                models = await self._get_binder().bind(connection)
            except DataLayerError as e:
                logger.warning("Tenant context unavailable for %s: %s", tenant_id, e.message)
                return JSONResponse(e.to_response(), status_code=e.http_status)

            request.state.tenant = RequestContext(
                tenant_id=tenant_id,
                connection=connection,
                models=models,
            )
            return await call_next(request)
        finally:
            clear_context()

    def _is_public_path(self, path: str) -> bool:
        if path in PUBLIC_PATHS:
            return True

        for prefix in PUBLIC_PATH_PREFIXES:
            if path.startswith(prefix):
                return True

        return False


def get_tenant_from_request(request: Request) -> RequestContext | None:
    """Get the request context from request state, or None."""
    return getattr(request.state, "tenant", None)
