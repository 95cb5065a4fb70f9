# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- AuthMiddleware: Decodes the session token, if any.
- TenantContextMiddleware: Resolves the tenant and attaches its connection
  and bound models to the request.

Exports:
    AuthMiddleware: JWT session middleware.
    TenantContextMiddleware: Tenant request context middleware.
    TenantResolver: Tenant id resolution.
    TenantResolutionError: Raised when no tenant id can be derived.
    RequestContext: Per-request tenant, connection and models.
"""

from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.tenant import (
    RequestContext,
    TenantContextMiddleware,
    TenantResolutionError,
    TenantResolver,
)

__all__ = [
    "AuthMiddleware",
    "TenantContextMiddleware",
    "TenantResolver",
    "TenantResolutionError",
    "RequestContext",
]
