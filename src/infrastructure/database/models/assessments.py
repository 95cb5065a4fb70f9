# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Assessment documents: assignments, submissions, quizzes and quiz attempts."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from src.infrastructure.database.models.base import (
    DocumentSchema,
    IndexSpec,
    ObjectIdField,
    SchemaDefinition,
)


class AssignmentDocument(DocumentSchema):
    title: str = Field(min_length=1, max_length=100)
    course: ObjectIdField
    module: Optional[ObjectIdField] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    total_points: float = Field(default=100, ge=0, alias="totalPoints")
    status: Literal["draft", "published", "archived"] = "draft"
    created_by: ObjectIdField = Field(alias="createdBy")


class AssignmentSubmissionDocument(DocumentSchema):
    assignment: ObjectIdField
    student: ObjectIdField
    status: Literal["submitted", "graded", "returned", "late"] = "submitted"
    grade: Optional[float] = Field(default=None, ge=0)


class QuizDocument(DocumentSchema):
    title: str = Field(min_length=1, max_length=100)
    course: ObjectIdField
    module: Optional[ObjectIdField] = None
    passing_score: float = Field(default=70, ge=0, le=100, alias="passingScore")
    created_by: ObjectIdField = Field(alias="createdBy")


class QuizAttemptDocument(DocumentSchema):
    quiz: ObjectIdField
    student: ObjectIdField
    course: ObjectIdField
    attempt_number: int = Field(ge=1, alias="attemptNumber")
    score: Optional[float] = Field(default=None, ge=0, le=100)
    completed: bool = False


ASSIGNMENT = SchemaDefinition(
    name="Assignment",
    document=AssignmentDocument,
    collection="assignments",
    indexes=(IndexSpec(keys=(("course", 1),)),),
)

ASSIGNMENT_SUBMISSION = SchemaDefinition(
    name="AssignmentSubmission",
    document=AssignmentSubmissionDocument,
    collection="assignmentsubmissions",
    indexes=(IndexSpec(keys=(("student", 1), ("assignment", 1)), unique=True),),
)

QUIZ = SchemaDefinition(
    name="Quiz",
    document=QuizDocument,
    collection="quizzes",
    indexes=(IndexSpec(keys=(("course", 1),)),),
)

QUIZ_ATTEMPT = SchemaDefinition(
    name="QuizAttempt",
    document=QuizAttemptDocument,
    collection="quizattempts",
    indexes=(
        IndexSpec(keys=(("quiz", 1), ("student", 1), ("attemptNumber", 1)), unique=True),
    ),
)
