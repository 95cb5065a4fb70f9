# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Static catalog of tenant document schemas.

SCHEMA_CATALOG is fixed at import time and never depends on the request.
The schema binder registers every entry on each tenant connection once.

Example:
    from src.infrastructure.database.models import SCHEMA_CATALOG, get_schema

    course = get_schema("Course")
    print(course.collection)  # "courses"
"""

from src.infrastructure.database.models.assessments import (
    ASSIGNMENT,
    ASSIGNMENT_SUBMISSION,
    QUIZ,
    QUIZ_ATTEMPT,
)
from src.infrastructure.database.models.base import (
    DocumentSchema,
    IndexSpec,
    ObjectIdField,
    SchemaDefinition,
    serialize_document,
    to_object_id,
)
from src.infrastructure.database.models.courses import (
    CATEGORY,
    COURSE,
    MODULE,
    MODULE_CONTENT,
    SECTION,
)
from src.infrastructure.database.models.people import (
    CERTIFICATION,
    INSTITUTION,
    USER,
    USER_PROGRESS,
)

SCHEMA_CATALOG: tuple[SchemaDefinition, ...] = (
    INSTITUTION,
    USER,
    CATEGORY,
    SECTION,
    COURSE,
    MODULE,
    MODULE_CONTENT,
    ASSIGNMENT,
    ASSIGNMENT_SUBMISSION,
    QUIZ,
    QUIZ_ATTEMPT,
    USER_PROGRESS,
    CERTIFICATION,
)

_BY_NAME = {schema.name: schema for schema in SCHEMA_CATALOG}


def get_schema(name: str) -> SchemaDefinition:
    """Look up a catalog entry by model name.

    Raises:
        KeyError: If no schema has that name.
    """
    return _BY_NAME[name]


__all__ = [
    "SCHEMA_CATALOG",
    "get_schema",
    "DocumentSchema",
    "IndexSpec",
    "ObjectIdField",
    "SchemaDefinition",
    "serialize_document",
    "to_object_id",
]
