"""
Reactions to document changes in `users` and `assessments`.

Why:
    Claims must follow the stored role even when a document is edited outside
    the API, and lecturers/moderators should hear about status changes. The
    handlers are registered on a `ChangeDispatcher` by `register`.

Behavior:
    - Handlers are idempotent; delivery may repeat a change.
    - Notification lookups are best-effort: failures are logged and swallowed.
    - The user-update reaction only reacts to a changed `role` and writes only
      `customClaims`/`updatedAt`, so its own write cannot re-trigger it.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from identity_access.claims import ClaimsSynchronizer

from .documents import ASSESSMENTS, USERS, DocumentAccessor, now_iso
from .events import CREATED, UPDATED, ChangeDispatcher, DocumentChange

logger = logging.getLogger("moducate.triggers")

# notify(event, recipient_user_doc, assessment_doc)
Notifier = Callable[[str, Dict[str, Any], Dict[str, Any]], None]


class ModerationTriggers:
    def __init__(
        self,
        documents: DocumentAccessor,
        claims: ClaimsSynchronizer,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.documents = documents
        self.claims = claims
        self.notifier = notifier

    def register(self, dispatcher: ChangeDispatcher) -> None:
        dispatcher.register(ASSESSMENTS, CREATED, self.on_assessment_created)
        dispatcher.register(ASSESSMENTS, UPDATED, self.on_assessment_updated)
        dispatcher.register(USERS, CREATED, self.on_user_created)
        dispatcher.register(USERS, UPDATED, self.on_user_updated)

    # --- helpers ------------------------------------------------------------

    def _lookup_user(self, user_id: str, label: str) -> Optional[Dict[str, Any]]:
        try:
            return self.documents.get(USERS, user_id)
        except Exception as exc:
            logger.warning("Error getting %s info uid=%s: %s", label, user_id, exc)
            return None

    def _notify(self, event: str, recipient: Dict[str, Any], assessment: Dict[str, Any]) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(event, recipient, assessment)
        except Exception as exc:
            logger.warning("Notification %s failed uid=%s: %s", event, recipient.get("id"), exc.__class__.__name__)

    # --- assessments --------------------------------------------------------

    def on_assessment_created(self, change: DocumentChange) -> None:
        data = {"id": change.doc_id, **(change.after or {})}
        logger.info("New assessment created: %s", change.doc_id)
        lecturer_id = data.get("lecturerId")
        if not lecturer_id:
            return
        lecturer = self._lookup_user(lecturer_id, "lecturer")
        if lecturer is not None:
            logger.info("Assessment %s created by lecturer: %s", change.doc_id, lecturer.get("displayName"))
            self._notify("assessment_created", lecturer, data)

    def on_assessment_updated(self, change: DocumentChange) -> None:
        if not change.field_changed("status"):
            return
        before = change.before or {}
        after = {"id": change.doc_id, **(change.after or {})}
        logger.info(
            "Assessment status changed for %s: %s -> %s",
            change.doc_id,
            before.get("status"),
            after.get("status"),
        )
        lecturer_id = after.get("lecturerId")
        if lecturer_id:
            lecturer = self._lookup_user(lecturer_id, "lecturer")
            if lecturer is not None:
                logger.info("Notifying lecturer %s about assessment status change", lecturer.get("displayName"))
                self._notify("assessment_status_changed", lecturer, after)
        moderator_id = after.get("moderatorId")
        if moderator_id and change.field_changed("moderatorId"):
            moderator = self._lookup_user(moderator_id, "moderator")
            if moderator is not None:
                logger.info("Assessment %s moderated by: %s", change.doc_id, moderator.get("displayName"))

    # --- users --------------------------------------------------------------

    def on_user_created(self, change: DocumentChange) -> None:
        user = change.after or {}
        role = user.get("role")
        if role == "admin":
            logger.info("Admin user created: %s, attaching claims", change.doc_id)
            self.claims.sync_user_claims(change.doc_id, user)
            return
        logger.info("User %s created with role %s, waiting for admin approval", change.doc_id, role)
        if user.get("approved") is False and user.get("customClaims") is None:
            return
        self.documents.update(USERS, change.doc_id, {"approved": False, "customClaims": None, "updatedAt": now_iso()})

    def on_user_updated(self, change: DocumentChange) -> None:
        if not change.field_changed("role") or change.after is None:
            return
        logger.info(
            "User role changed for %s: %s -> %s",
            change.doc_id,
            (change.before or {}).get("role"),
            change.after.get("role"),
        )
        self.claims.sync_user_claims(change.doc_id, change.after)


__all__ = ["ModerationTriggers", "Notifier"]
