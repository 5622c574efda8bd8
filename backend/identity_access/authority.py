"""
Role & approval checks backed by the `users` collection.

Why:
    Services authorize callers against the stored user document rather than
    session claims, so a role change or an approval takes effect on the next
    request without waiting for a token refresh.

Behavior:
    Every check fails closed: a missing user, a store error or a malformed
    document yields False and is logged, never raised.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from moderation.documents import USERS, DocumentAccessor

from .domain import effective_approval
from .providers import IdentityProviderProtocol

logger = logging.getLogger("moducate.identity")


def _as_roles(required_roles: str | Iterable[str]) -> frozenset[str]:
    if isinstance(required_roles, str):
        return frozenset({required_roles})
    return frozenset(required_roles or ())


class RoleAuthority:
    def __init__(self, documents: DocumentAccessor, identity: IdentityProviderProtocol | None = None) -> None:
        self.documents = documents
        self.identity = identity

    def _load(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.documents.get(USERS, user_id)
        except Exception as exc:
            logger.warning("User lookup failed during authorization uid_tail=%s err=%s", (user_id or "")[-6:], exc.__class__.__name__)
            return None

    def verify_user_role(self, user_id: str, required_roles: str | Iterable[str]) -> bool:
        """True iff the user holds one of `required_roles` and is (effectively) approved."""
        user = self._load(user_id)
        if user is None:
            return False
        role = user.get("role")
        return role in _as_roles(required_roles) and effective_approval(role, user.get("approved"))

    def is_user_approved(self, user_id: str) -> bool:
        user = self._load(user_id)
        if user is None:
            return False
        return effective_approval(user.get("role"), user.get("approved"))

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if self.identity is None or not email:
            return None
        try:
            uid = self.identity.get_user_by_email(email)
            return self.documents.get(USERS, uid)
        except Exception as exc:
            logger.warning("User lookup by email failed: %s", exc.__class__.__name__)
            return None


__all__ = ["RoleAuthority"]
