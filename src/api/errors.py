# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception handlers rendering the data-layer error shape.

Every DataLayerError that escapes a handler becomes
``{"success": false, "error": <message>, "kind": <ErrorKind>}`` with the
HTTP status of its kind. Unknown failures only ever expose
"Internal server error".
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from src.api.middleware.tenant import TenantResolutionError
from src.infrastructure.database.errors import DataLayerError, ErrorKind

logger = logging.getLogger(__name__)


def error_response(error: DataLayerError) -> JSONResponse:
    """Build the JSON response for a data-layer error."""
    return JSONResponse(status_code=error.http_status, content=error.to_response())


async def data_layer_error_handler(request: Request, exc: DataLayerError) -> JSONResponse:
    """FastAPI exception handler for DataLayerError."""
    if exc.kind is ErrorKind.UNKNOWN:
        logger.error(
            "Unhandled data error on %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc.original_error or exc,
        )
    else:
        logger.info(
            "%s on %s %s: %s",
            exc.kind.value,
            request.method,
            request.url.path,
            exc.message,
        )

    return error_response(exc)


async def tenant_resolution_error_handler(
    request: Request, exc: TenantResolutionError
) -> JSONResponse:
    """FastAPI exception handler for TenantResolutionError."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())
