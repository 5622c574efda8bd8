"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the web layer, the claims
  synchronizer and operator tools.
- Keep the claims record shape in one place; every path that touches role or
  approval builds claims through `build_claims`.
"""

from __future__ import annotations

from typing import Dict

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"admin", "moderator", "lecturer"})
DEFAULT_ROLE = "lecturer"

# Roles a user may pick for themselves at registration. Admins are created by
# the first-admin bootstrap or promoted by another admin.
SELF_SERVICE_ROLES = frozenset({"moderator", "lecturer"})

# Stable ordering for the claims record; `approved` is appended last.
CLAIM_ROLES = ("admin", "moderator", "lecturer")


def effective_approval(role: str | None, approved: object) -> bool:
    """Admins are approved by construction; everyone else needs `approved is True`."""
    return role == "admin" or approved is True


def build_claims(role: str | None, approved: object) -> Dict[str, bool]:
    """Return the claims record for `role` with exactly one true role flag."""
    claims = {r: r == role for r in CLAIM_ROLES}
    claims["approved"] = effective_approval(role, approved)
    return claims


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "SELF_SERVICE_ROLES",
    "CLAIM_ROLES",
    "effective_approval",
    "build_claims",
]
