"""
Assessment API routes: listing, detail, creation and moderation.

Why:
    Lecturers submit assessments, moderators decide on them. The adapter
    resolves the caller from the session middleware and delegates role checks
    and the status state machine to `AssessmentsService`.

Permissions:
    - Any authenticated caller may list and read assessments.
    - Create: approved `lecturer` or `admin`.
    - Moderate: approved `moderator` or `admin`.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from web.responses import container, current_sub, error_response, json_private, private_error

assessments_router = APIRouter(tags=["Assessments"])


class AssessmentCreatePayload(BaseModel):
    title: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = Field(default=None, max_length=5000)
    content: Optional[str] = None
    type: Optional[str] = Field(default=None, max_length=100)


class ModerationPayload(BaseModel):
    status: Optional[str] = None
    feedback: Optional[str] = Field(default=None, max_length=10000)


@assessments_router.get("/api/assessments")
def list_assessments(
    request: Request,
    status: Optional[str] = None,
    lecturerId: Optional[str] = None,
    moderatorId: Optional[str] = None,
):
    """List assessments, optionally filtered by status, lecturer or moderator."""
    if not current_sub(request):
        return private_error("unauthenticated")
    try:
        items = container(request).assessments.list_assessments(
            status=status, lecturer_id=lecturerId, moderator_id=moderatorId
        )
    except Exception as exc:
        return error_response(exc, operation="getAssessments")
    return json_private({"assessments": items})


@assessments_router.get("/api/assessments/{assessment_id}")
def get_assessment(request: Request, assessment_id: str):
    if not current_sub(request):
        return private_error("unauthenticated")
    try:
        item = container(request).assessments.get_assessment(assessment_id)
    except Exception as exc:
        return error_response(exc, operation="getAssessmentById")
    return json_private({"assessment": item})


@assessments_router.post("/api/assessments")
def create_assessment(request: Request, payload: AssessmentCreatePayload):
    """Create a draft assessment owned by the caller.

    Behavior:
        - 201 with `{assessmentId}` on success
        - 400 when title, content or type is missing
        - 403 when the caller is not an approved lecturer/admin
    """
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        assessment_id = container(request).assessments.create_assessment(
            sub,
            title=payload.title,
            content=payload.content,
            type=payload.type,
            description=payload.description,
        )
    except Exception as exc:
        return error_response(exc, operation="createAssessment")
    return json_private(
        {"assessmentId": assessment_id, "message": "Assessment created successfully"},
        status_code=201,
    )


@assessments_router.post("/api/assessments/{assessment_id}/moderation")
def moderate_assessment(request: Request, assessment_id: str, payload: ModerationPayload):
    """Record a moderation decision (approved, rejected or pending_changes).

    The caller becomes the assessment's `moderatorId`; feedback is only
    written when supplied. Repeated moderation overwrites the previous one.
    """
    sub = current_sub(request)
    if not sub:
        return private_error("unauthenticated")
    try:
        message = container(request).assessments.moderate_assessment(
            sub, assessment_id, status=payload.status, feedback=payload.feedback
        )
    except Exception as exc:
        return error_response(exc, operation="moderateAssessment")
    return json_private({"message": message})
