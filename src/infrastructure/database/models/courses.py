# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course structure documents: courses, modules, module content, categories, sections."""

from typing import Literal, Optional

from pydantic import Field

from src.infrastructure.database.models.base import (
    DocumentSchema,
    IndexSpec,
    ObjectIdField,
    SchemaDefinition,
)


class CourseDocument(DocumentSchema):
    title: str = Field(min_length=1, max_length=100)
    slug: Optional[str] = None
    description: str = Field(min_length=1)
    duration: float = Field(ge=0)
    category: str
    level: Literal["beginner", "intermediate", "advanced"] = "beginner"
    status: Literal["draft", "published", "archived"] = "draft"
    instructor: ObjectIdField
    institution: Optional[ObjectIdField] = None


class ModuleDocument(DocumentSchema):
    title: str = Field(min_length=1, max_length=100)
    course: ObjectIdField
    order: int = Field(ge=0)
    created_by: Optional[ObjectIdField] = Field(default=None, alias="createdBy")


class ModuleContentDocument(DocumentSchema):
    title: str = Field(min_length=1)
    module: ObjectIdField
    course: ObjectIdField
    content_type: Literal["video", "document", "quiz", "assignment", "text"] = Field(
        alias="contentType"
    )
    order: int = Field(ge=0)


class CategoryDocument(DocumentSchema):
    name: str = Field(min_length=1, max_length=100)
    slug: Optional[str] = None
    created_by: ObjectIdField = Field(alias="createdBy")
    institution: Optional[ObjectIdField] = None


class SectionDocument(DocumentSchema):
    title: str = Field(min_length=1, max_length=100)
    category: ObjectIdField
    order: Optional[int] = None


COURSE = SchemaDefinition(
    name="Course",
    document=CourseDocument,
    collection="courses",
    indexes=(
        IndexSpec(keys=(("slug", 1),), unique=True, sparse=True),
        IndexSpec(keys=(("instructor", 1),)),
    ),
)

MODULE = SchemaDefinition(
    name="Module",
    document=ModuleDocument,
    collection="modules",
    indexes=(IndexSpec(keys=(("course", 1), ("order", 1)), unique=True),),
)

MODULE_CONTENT = SchemaDefinition(
    name="ModuleContent",
    document=ModuleContentDocument,
    collection="modulecontents",
    indexes=(IndexSpec(keys=(("module", 1), ("order", 1)), unique=True),),
)

CATEGORY = SchemaDefinition(
    name="Category",
    document=CategoryDocument,
    collection="categories",
    indexes=(IndexSpec(keys=(("slug", 1),), unique=True, sparse=True),),
)

SECTION = SchemaDefinition(
    name="Section",
    document=SectionDocument,
    collection="sections",
    indexes=(IndexSpec(keys=(("category", 1), ("order", 1))),),
)
