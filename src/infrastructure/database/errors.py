# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for the tenant data-access layer.

Every failure that leaves the data layer is a DataLayerError tagged with an
ErrorKind. Code above this layer never inspects PyMongo or pydantic error
shapes; it switches on ``error.kind`` or lets the API exception handler
render ``error.to_response()``.

Kinds and their HTTP mapping:

    ConnectionUnavailable  503  tenant connection could not be opened/reused
    OperationTimeout       504  call did not settle in budget, outcome unknown
    ValidationError        400  document failed schema constraints
    DuplicateKey           400  uniqueness constraint violated
    NotFoundCast           400  malformed document key
    DriverError            503  connection-level driver failure
    Unknown                500  anything else, detail never sent to callers

Example:
    try:
        course = await guard.run(models["Course"].find_by_id(course_id))
    except DataLayerError as e:
        return JSONResponse(e.to_response(), status_code=e.http_status)
"""

import logging
from enum import Enum
from typing import Any, Optional

from bson.errors import InvalidId
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import (
    BulkWriteError,
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    InvalidOperation,
    WTimeoutError,
)

logger = logging.getLogger(__name__)

DUPLICATE_KEY_CODE = 11000
TENANT_KEY = "tenantId"


class ErrorKind(str, Enum):
    """Classification attached to every data-layer failure."""

    CONNECTION_UNAVAILABLE = "ConnectionUnavailable"
    OPERATION_TIMEOUT = "OperationTimeout"
    VALIDATION_ERROR = "ValidationError"
    DUPLICATE_KEY = "DuplicateKey"
    NOT_FOUND_CAST = "NotFoundCast"
    DRIVER_ERROR = "DriverError"
    UNKNOWN = "Unknown"


class DataLayerError(Exception):
    """Base exception for the data-access layer.

    Attributes:
        kind: Taxonomy classification.
        message: Human-readable error description (original message preserved).
        original_error: The underlying driver or validation error, if any.
        http_status: HTTP status the API layer should answer with.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    http_status: int = 500

    def __init__(self, message: str, original_error: Optional[BaseException] = None) -> None:
        """Initialize the data layer error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    @property
    def public_message(self) -> str:
        """Message that is safe to return to API callers."""
        return self.message

    def to_response(self) -> dict[str, Any]:
        """Render the error response body consumed by the routing layer."""
        return {
            "success": False,
            "error": self.public_message,
            "kind": self.kind.value,
        }


class ConnectionUnavailable(DataLayerError):
    """A tenant connection could not be opened or reused."""

    kind = ErrorKind.CONNECTION_UNAVAILABLE
    http_status = 503

    def __init__(
        self,
        tenant_id: str,
        reason: str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Database connection unavailable for tenant {tenant_id}: {reason}",
            original_error,
        )
        self.tenant_id = tenant_id
        self.reason = reason


class ConnectTimeout(ConnectionUnavailable):
    """Opening a tenant connection exceeded the configured connect timeout."""

    def __init__(
        self,
        tenant_id: str,
        timeout_ms: int,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            tenant_id,
            f"connect timed out after {timeout_ms}ms",
            original_error,
        )
        self.timeout_ms = timeout_ms


class OperationTimeout(DataLayerError):
    """A database call did not settle within its budget.

    The call is not cancelled at the driver level. It may still complete
    after this error is raised, so a timed-out write has an unknown outcome.
    """

    kind = ErrorKind.OPERATION_TIMEOUT
    http_status = 504

    def __init__(
        self,
        timeout_ms: int | None = None,
        description: str | None = None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        target = description or "Database operation"
        if timeout_ms is not None:
            message = f"{target} timed out after {timeout_ms}ms; outcome unknown"
        else:
            message = f"{target} timed out; outcome unknown"
        super().__init__(message, original_error)
        self.timeout_ms = timeout_ms


class DocumentValidationError(DataLayerError):
    """A document failed its schema constraints.

    Attributes:
        errors: Mapping of field path to validation message.
    """

    kind = ErrorKind.VALIDATION_ERROR
    http_status = 400

    def __init__(
        self,
        errors: dict[str, str],
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            ", ".join(f"{field}: {msg}" for field, msg in errors.items())
            or "Document validation failed",
            original_error,
        )
        self.errors = errors


class DuplicateKey(DataLayerError):
    """A uniqueness constraint was violated."""

    kind = ErrorKind.DUPLICATE_KEY
    http_status = 400

    def __init__(
        self,
        field: str | None,
        original_error: Optional[BaseException] = None,
    ) -> None:
        if field:
            message = f"A document with this {field} already exists"
        else:
            message = "A document with these values already exists"
        super().__init__(message, original_error)
        self.field = field


class NotFoundCast(DataLayerError):
    """An identifier was not a valid document key."""

    kind = ErrorKind.NOT_FOUND_CAST
    http_status = 400


class DriverError(DataLayerError):
    """The database connection itself reported an error."""

    kind = ErrorKind.DRIVER_ERROR
    http_status = 503

    @property
    def public_message(self) -> str:
        return "Database connection error. Please try again later."


class UnknownDataError(DataLayerError):
    """Any failure not covered by the other kinds."""

    kind = ErrorKind.UNKNOWN
    http_status = 500

    @property
    def public_message(self) -> str:
        return "Internal server error"


class SchemaRegistrationError(DataLayerError):
    """A schema name was registered twice on the same connection."""

    kind = ErrorKind.UNKNOWN
    http_status = 500

    def __init__(self, tenant_id: str, schema_name: str) -> None:
        super().__init__(
            f"Schema {schema_name} is already registered for tenant {tenant_id}"
        )
        self.tenant_id = tenant_id
        self.schema_name = schema_name

    @property
    def public_message(self) -> str:
        return "Internal server error"


def _validation_errors(exc: PydanticValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for item in exc.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "document"
        errors.setdefault(field, item.get("msg", "invalid value"))
    return errors


def _duplicate_field(details: dict[str, Any] | None) -> str | None:
    if not details:
        return None
    for key in ("keyPattern", "keyValue"):
        value = details.get(key)
        if value:
            # tenantId is constant within a tenant database and never the conflict
            fields = [name for name in value if name != TENANT_KEY] or list(value)
            return ", ".join(fields)
    return None


def classify_error(exc: BaseException, description: str | None = None) -> DataLayerError:
    """Map a raw failure to its taxonomy kind.

    DataLayerErrors pass through unchanged. Unknown failures are logged with
    full detail here, since their public message hides it.

    Args:
        exc: The exception raised by a database call.
        description: Optional operation label used in messages and logs.

    Returns:
        The classified DataLayerError (not raised).
    """
    if isinstance(exc, DataLayerError):
        return exc

    if isinstance(exc, PydanticValidationError):
        return DocumentValidationError(_validation_errors(exc), exc)

    if isinstance(exc, DuplicateKeyError):
        return DuplicateKey(_duplicate_field(exc.details), exc)

    if isinstance(exc, BulkWriteError):
        write_errors = (exc.details or {}).get("writeErrors", [])
        duplicate = next(
            (err for err in write_errors if err.get("code") == DUPLICATE_KEY_CODE),
            None,
        )
        if duplicate is not None:
            return DuplicateKey(_duplicate_field(duplicate), exc)

    if isinstance(exc, InvalidId):
        return NotFoundCast(f"Invalid document id: {exc}", exc)

    if isinstance(exc, (ExecutionTimeout, WTimeoutError, TimeoutError)):
        return OperationTimeout(description=description, original_error=exc)

    # AutoReconnect, NetworkTimeout and ServerSelectionTimeoutError are all
    # ConnectionFailure subclasses
    if isinstance(exc, ConnectionFailure):
        return DriverError(str(exc) or exc.__class__.__name__, exc)

    # In-flight calls on a tenant client closed by close_tenant or reconnect
    if isinstance(exc, InvalidOperation) and "after close" in str(exc):
        return DriverError(str(exc), exc)

    logger.error(
        "Unclassified database error in %s: %s",
        description or "database operation",
        exc,
        exc_info=exc,
    )
    return UnknownDataError(str(exc) or exc.__class__.__name__, exc)
