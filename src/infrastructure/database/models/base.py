# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Building blocks for tenant document schemas.

A document schema is a pydantic model describing the structural fields of a
MongoDB document. A SchemaDefinition pairs it with a collection name and the
indexes the schema binder creates on every tenant connection.

Business fields beyond what the data layer needs (references, ordering,
uniqueness) are accepted as extra fields and stored untouched.
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import Annotated, Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, create_model

from src.utils.datetime import utc_now


def to_object_id(value: Any) -> ObjectId:
    """Convert a document key to an ObjectId.

    Args:
        value: ObjectId or its 24-character hex string.

    Returns:
        The ObjectId.

    Raises:
        InvalidId: If the value is not a valid document key.
    """
    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise InvalidId("document id is required")
    try:
        return ObjectId(value)
    except TypeError as e:
        raise InvalidId(str(e)) from e


def _coerce_object_id(value: Any) -> Any:
    if value is None or isinstance(value, ObjectId):
        return value
    try:
        return to_object_id(value)
    except InvalidId as e:
        raise ValueError(f"'{value}' is not a valid document id") from e


ObjectIdField = Annotated[ObjectId, BeforeValidator(_coerce_object_id)]


class DocumentSchema(BaseModel):
    """Base class for all tenant document schemas."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        arbitrary_types_allowed=True,
        str_strip_whitespace=True,
    )

    id: Optional[ObjectIdField] = Field(default=None, alias="_id")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


# Fields a partial update may never touch
IMMUTABLE_FIELDS = frozenset({"id", "tenant_id", "created_at"})


@dataclass(frozen=True)
class IndexSpec:
    """Index declared by a schema.

    Attributes:
        keys: Sequence of (field, direction) pairs.
        unique: Whether the index enforces uniqueness.
        sparse: Whether documents missing the field are skipped.
        name: Explicit index name (driver-generated when None).
    """

    keys: tuple[tuple[str, int], ...]
    unique: bool = False
    sparse: bool = False
    name: str | None = None

    def create_options(self) -> dict[str, Any]:
        """Keyword arguments for Collection.create_index()."""
        options: dict[str, Any] = {"unique": self.unique}
        if self.sparse:
            options["sparse"] = True
        if self.name:
            options["name"] = self.name
        return options


@dataclass(frozen=True)
class SchemaDefinition:
    """A named document schema in the static catalog.

    Attributes:
        name: Model name handlers use, e.g. "Course".
        document: Pydantic schema validating documents.
        collection: MongoDB collection name.
        indexes: Indexes created when the schema is bound.
    """

    name: str
    document: type[DocumentSchema]
    collection: str
    indexes: tuple[IndexSpec, ...] = field(default_factory=tuple)

    @cached_property
    def update_document(self) -> type[BaseModel]:
        """Schema for partial updates: every mutable field optional."""
        fields: dict[str, Any] = {}
        for name, info in self.document.model_fields.items():
            if name in IMMUTABLE_FIELDS:
                continue
            annotation: Any = info.annotation
            if info.metadata:
                annotation = Annotated[annotation, *info.metadata]
            fields[name] = (Optional[annotation], Field(default=None, alias=info.alias))

        return create_model(
            f"{self.name}Update",
            __config__=ConfigDict(
                extra="allow",
                populate_by_name=True,
                arbitrary_types_allowed=True,
                str_strip_whitespace=True,
            ),
            **fields,
        )


def serialize_document(document: Any) -> Any:
    """Convert a stored document into JSON-friendly values.

    ObjectIds become hex strings and datetimes ISO 8601 strings, recursively.
    """
    if isinstance(document, ObjectId):
        return str(document)
    if isinstance(document, datetime):
        return document.isoformat()
    if isinstance(document, dict):
        return {key: serialize_document(value) for key, value in document.items()}
    if isinstance(document, (list, tuple)):
        return [serialize_document(value) for value in document]
    return document
