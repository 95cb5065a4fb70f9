# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""People and organisation documents: users, institutions, progress, certifications."""

from typing import Literal, Optional

from pydantic import Field

from src.infrastructure.database.models.base import (
    DocumentSchema,
    IndexSpec,
    ObjectIdField,
    SchemaDefinition,
)

EMAIL_PATTERN = r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$"


class UserDocument(DocumentSchema):
    name: str = Field(min_length=1, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN)
    role: Literal["student", "instructor", "admin", "super_admin"] = "student"
    institution: Optional[ObjectIdField] = None
    active: bool = True


class InstitutionDocument(DocumentSchema):
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=1)
    admin: Optional[ObjectIdField] = None


class UserProgressDocument(DocumentSchema):
    user: ObjectIdField
    course: ObjectIdField
    progress: float = Field(default=0, ge=0, le=100)
    completed: bool = False


class CertificationDocument(DocumentSchema):
    name: str = Field(min_length=1, max_length=100)
    issuer: Optional[str] = None
    required_score: float = Field(default=70, ge=0, le=100, alias="requiredScore")
    created_by: ObjectIdField = Field(alias="createdBy")


USER = SchemaDefinition(
    name="User",
    document=UserDocument,
    collection="users",
    indexes=(
        IndexSpec(keys=(("tenantId", 1), ("email", 1)), unique=True),
        IndexSpec(keys=(("tenantId", 1),)),
    ),
)

INSTITUTION = SchemaDefinition(
    name="Institution",
    document=InstitutionDocument,
    collection="institutions",
    indexes=(IndexSpec(keys=(("code", 1),), unique=True),),
)

USER_PROGRESS = SchemaDefinition(
    name="UserProgress",
    document=UserProgressDocument,
    collection="userprogresses",
    indexes=(IndexSpec(keys=(("user", 1), ("course", 1)), unique=True),),
)

CERTIFICATION = SchemaDefinition(
    name="Certification",
    document=CertificationDocument,
    collection="certifications",
)
