"""Assessment workflow service layer (Clean Architecture boundary).

Why:
    Encapsulates the assessment use cases (list/get/create/moderate) so the web
    adapter stays framework-free glue and the state machine can be unit-tested
    against the in-memory document store.

State machine:
    draft -> {approved, rejected, pending_changes}; moderation may overwrite
    any current status (last write wins, no current-state guard).
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

from identity_access.authority import RoleAuthority
from moderation.documents import ASSESSMENTS, DocumentAccessor, now_iso
from moderation.errors import InvalidArgument, PermissionDenied

logger = logging.getLogger("moducate.assessments")

ASSESSMENT_STATUSES = frozenset({"draft", "pending", "approved", "rejected", "pending_changes", "completed"})
MODERATION_STATUSES = ("approved", "rejected", "pending_changes")
AUTHOR_ROLES = ("lecturer", "admin")
MODERATOR_ROLES = ("moderator", "admin")


def _required_text(value: object, code: str) -> str:
    if not isinstance(value, str):
        raise InvalidArgument(code)
    trimmed = value.strip()
    if not trimmed:
        raise InvalidArgument(code)
    return trimmed


def _optional_text(value: object, code: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidArgument(code)
    trimmed = value.strip()
    return trimmed or None


@dataclass
class AssessmentsService:
    """Use cases for assessments (framework-independent)."""

    documents: DocumentAccessor
    authority: RoleAuthority

    def list_assessments(
        self,
        *,
        status: str | None = None,
        lecturer_id: str | None = None,
        moderator_id: str | None = None,
    ) -> List[Dict[str, Any]]:
        conditions = []
        if status:
            if status not in ASSESSMENT_STATUSES:
                raise InvalidArgument(f"Status filter must be one of: {', '.join(sorted(ASSESSMENT_STATUSES))}")
            conditions.append({"field": "status", "operator": "==", "value": status})
        if lecturer_id:
            conditions.append({"field": "lecturerId", "operator": "==", "value": lecturer_id})
        if moderator_id:
            conditions.append({"field": "moderatorId", "operator": "==", "value": moderator_id})
        return self.documents.query(ASSESSMENTS, conditions)

    def get_assessment(self, assessment_id: str) -> Dict[str, Any]:
        if not assessment_id:
            raise InvalidArgument("Assessment ID is required.")
        return self.documents.get(ASSESSMENTS, assessment_id)

    def create_assessment(
        self,
        lecturer_id: str,
        *,
        title: object,
        content: object,
        type: object,
        description: object = None,
    ) -> str:
        if not self.authority.verify_user_role(lecturer_id, AUTHOR_ROLES):
            raise PermissionDenied("Only approved lecturers can create assessments.")
        if not title or not content or not type:
            raise InvalidArgument("Title, content, and type are required.")
        now = now_iso()
        data = {
            "title": _required_text(title, "Title must be a non-empty string."),
            "description": _optional_text(description, "Description must be a string.") or "",
            "content": _required_text(content, "Content must be a non-empty string."),
            "type": _required_text(type, "Type must be a non-empty string."),
            "status": "draft",
            "lecturerId": lecturer_id,
            "moderatorId": None,
            "feedback": None,
            "createdAt": now,
            "updatedAt": now,
        }
        assessment_id = self.documents.create(ASSESSMENTS, data)
        logger.info("Assessment created id=%s lecturer=%s", assessment_id, lecturer_id)
        return assessment_id

    def moderate_assessment(
        self,
        moderator_id: str,
        assessment_id: str,
        *,
        status: object,
        feedback: object = None,
    ) -> str:
        if not self.authority.verify_user_role(moderator_id, MODERATOR_ROLES):
            raise PermissionDenied("Only approved moderators can moderate assessments.")
        if not assessment_id or not status:
            raise InvalidArgument("Assessment ID and status are required.")
        if status not in MODERATION_STATUSES:
            raise InvalidArgument(f"Status must be one of: {', '.join(MODERATION_STATUSES)}")
        patch: Dict[str, Any] = {
            "status": status,
            "moderatorId": moderator_id,
            "updatedAt": now_iso(),
        }
        note = _optional_text(feedback, "Feedback must be a string.")
        if note:
            patch["feedback"] = note
        self.documents.update(ASSESSMENTS, assessment_id, patch)
        logger.info("Assessment moderated id=%s status=%s moderator=%s", assessment_id, status, moderator_id)
        return f"Assessment {status} successfully"


__all__ = [
    "AssessmentsService",
    "ASSESSMENT_STATUSES",
    "MODERATION_STATUSES",
    "AUTHOR_ROLES",
    "MODERATOR_ROLES",
]
