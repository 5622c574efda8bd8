"""User administration use cases: profiles, approval, roles, registration and
the first-admin bootstrap.

Every path that changes `role` or `approved` ends in
`ClaimsSynchronizer.sync_user_claims`, so claims are built in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List

from identity_access.authority import RoleAuthority
from identity_access.claims import ClaimsSynchronizer
from identity_access.domain import ALLOWED_ROLES, DEFAULT_ROLE, SELF_SERVICE_ROLES
from identity_access.providers import IdentityProviderProtocol
from moderation.documents import USERS, DocumentAccessor, now_iso
from moderation.errors import FailedPrecondition, InvalidArgument, NotFound, PermissionDenied

logger = logging.getLogger("moducate.users")

SENSITIVE_FIELDS = ("password",)
MIN_PASSWORD_LENGTH = 6


def strip_sensitive(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k not in SENSITIVE_FIELDS}


def _mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    return f"{local[:2]}***@{domain}"


def _normalize_email(value: object) -> str:
    if not isinstance(value, str):
        raise InvalidArgument("A valid email is required.")
    email = value.strip()
    local, sep, domain = email.partition("@")
    if not sep or not local or "." not in domain:
        raise InvalidArgument("A valid email is required.")
    return email


def _normalize_password(value: object) -> str:
    if not isinstance(value, str) or len(value) < MIN_PASSWORD_LENGTH:
        raise InvalidArgument(f"Password must have at least {MIN_PASSWORD_LENGTH} characters.")
    return value


def _normalize_display_name(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument("Display name is required.")
    return value.strip()


@dataclass
class UsersService:
    documents: DocumentAccessor
    identity: IdentityProviderProtocol
    authority: RoleAuthority
    claims: ClaimsSynchronizer

    def _require_admin(self, caller_id: str, action: str) -> None:
        if not self.authority.verify_user_role(caller_id, "admin"):
            raise PermissionDenied(f"Only admins can {action}.")

    def get_user_profile(self, caller_id: str, user_id: str | None = None) -> Dict[str, Any]:
        return strip_sensitive(self.documents.get(USERS, user_id or caller_id))

    def list_users(self, caller_id: str, *, role: str | None = None, approved: bool | None = None) -> List[Dict[str, Any]]:
        self._require_admin(caller_id, "view all users")
        conditions = []
        if role:
            if role not in ALLOWED_ROLES:
                raise InvalidArgument(f"Role must be one of: {', '.join(sorted(ALLOWED_ROLES))}")
            conditions.append({"field": "role", "operator": "==", "value": role})
        if approved is not None:
            conditions.append({"field": "approved", "operator": "==", "value": bool(approved)})
        return [strip_sensitive(u) for u in self.documents.query(USERS, conditions)]

    def approve_user(self, caller_id: str, user_id: str, approved: object) -> str:
        self._require_admin(caller_id, "approve users")
        if not user_id or approved is None:
            raise InvalidArgument("User ID and approval status are required.")
        if not isinstance(approved, bool):
            raise InvalidArgument("Approval status must be a boolean.")
        user = self.documents.get(USERS, user_id)
        if user.get("role") == "admin" and not approved:
            raise FailedPrecondition("Admins are always approved.")
        patch = {"approved": approved, "updatedAt": now_iso()}
        self.documents.update(USERS, user_id, patch)
        self.claims.sync_user_claims(user_id, {**user, **patch})
        logger.info("User approval set uid=%s approved=%s by=%s", user_id, approved, caller_id)
        return "User approved successfully" if approved else "User rejected successfully"

    def update_user_role(self, caller_id: str, user_id: str, role: object) -> str:
        self._require_admin(caller_id, "update user roles")
        if not user_id or not role:
            raise InvalidArgument("User ID and role are required.")
        if not isinstance(role, str) or role not in ALLOWED_ROLES:
            raise InvalidArgument(f"Role must be one of: {', '.join(sorted(ALLOWED_ROLES))}")
        user = self.documents.get(USERS, user_id)
        patch: Dict[str, Any] = {"role": role, "updatedAt": now_iso()}
        if role == "admin":
            patch["approved"] = True
        self.documents.update(USERS, user_id, patch)
        # The role-change reaction syncs as well; attaching twice is idempotent.
        self.claims.sync_user_claims(user_id, {**user, **patch})
        logger.info("User role updated uid=%s role=%s by=%s", user_id, role, caller_id)
        return f"User role updated to {role} successfully"

    def register_user(self, *, email: object, password: object, display_name: object, role: object = None) -> str:
        """Create identity + user document. The account stays unapproved and unclaimed."""
        email_n = _normalize_email(email)
        password_n = _normalize_password(password)
        name = _normalize_display_name(display_name)
        role_n = role or DEFAULT_ROLE
        if not isinstance(role_n, str) or role_n not in ALLOWED_ROLES:
            raise InvalidArgument(f"Role must be one of: {', '.join(sorted(ALLOWED_ROLES))}")
        if role_n not in SELF_SERVICE_ROLES:
            raise PermissionDenied("Admin accounts cannot be self-registered.")
        uid = self.identity.create_user(email=email_n, password=password_n, display_name=name)
        now = now_iso()
        self.documents.create(
            USERS,
            {
                "displayName": name,
                "email": email_n,
                "role": role_n,
                "approved": False,
                "active": True,
                "customClaims": None,
                "createdAt": now,
                "updatedAt": now,
            },
            uid,
        )
        logger.info("User registered %s role=%s uid=%s", _mask_email(email_n), role_n, uid)
        return uid

    def create_first_admin(self, *, email: object, password: object, display_name: object) -> str:
        """Bootstrap the first admin; refused once any admin document exists.

        The existence check and the creation are separate calls, so two
        concurrent bootstraps can both succeed.
        """
        if not email or not password or not display_name:
            raise InvalidArgument("Email, password, and display name are required.")
        email_n = _normalize_email(email)
        password_n = _normalize_password(password)
        name = _normalize_display_name(display_name)
        if self.documents.query(USERS, [{"field": "role", "operator": "==", "value": "admin"}]):
            raise FailedPrecondition("An admin user already exists. Cannot create the first admin.")
        uid = self.identity.create_user(email=email_n, password=password_n, display_name=name, email_verified=True)
        now = now_iso()
        user = {
            "displayName": name,
            "email": email_n,
            "role": "admin",
            "approved": True,
            "active": True,
            "customClaims": None,
            "createdAt": now,
            "updatedAt": now,
        }
        self.documents.create(USERS, user, uid)
        self.claims.sync_user_claims(uid, user)
        logger.info("First admin created %s uid=%s", _mask_email(email_n), uid)
        return uid

    def find_user_by_email(self, caller_id: str, email: object) -> Dict[str, Any]:
        self._require_admin(caller_id, "look up users by email")
        user = self.authority.get_user_by_email(_normalize_email(email))
        if user is None:
            raise NotFound("No user registered with this email.")
        return strip_sensitive(user)


__all__ = ["UsersService", "strip_sensitive", "SENSITIVE_FIELDS"]
