"""
Identity claims synchronizer.

Keeps the identity provider's claims and the `customClaims` mirror field of a
user document consistent with the document's `role`/`approved` fields. Every
mutation path that changes role or approval goes through `sync_user_claims`.

Ordering:
    1. Attach claims at the identity provider (source of truth for sessions).
    2. Write `customClaims` + `updatedAt` into the document. Never `role`, so
       the resulting update event cannot re-trigger a role-change reaction.

A provider failure is logged and re-raised. A failed mirror write is logged
and left for the next synchronization; the provider claims stay in place.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from moderation.documents import USERS, DocumentAccessor, now_iso

from .domain import build_claims
from .providers import IdentityProviderProtocol

logger = logging.getLogger("moducate.claims")


class ClaimsSynchronizer:
    def __init__(self, documents: DocumentAccessor, identity: IdentityProviderProtocol) -> None:
        self.documents = documents
        self.identity = identity

    def sync_user_claims(self, user_id: str, user: Optional[Mapping[str, Any]] = None) -> Dict[str, bool]:
        """Attach claims derived from `user` (loaded when omitted) and mirror them.

        Returns the claims record that was attached.
        """
        if user is None:
            user = self.documents.get(USERS, user_id)
        role = user.get("role")
        claims = build_claims(role, user.get("approved"))
        try:
            self.identity.set_custom_claims(user_id, claims)
        except Exception as exc:
            logger.error("Attaching claims failed uid=%s role=%s err=%s", user_id, role, exc.__class__.__name__)
            raise
        logger.info("Claims attached uid=%s claims=%s", user_id, claims)

        mirror: Dict[str, Any] = {"customClaims": claims, "updatedAt": now_iso()}
        if role == "admin" and user.get("approved") is not True:
            mirror["approved"] = True
        try:
            self.documents.update(USERS, user_id, mirror)
        except Exception as exc:
            logger.warning("Claims mirror write failed uid=%s err=%s", user_id, exc.__class__.__name__)
        return claims


__all__ = ["ClaimsSynchronizer"]
