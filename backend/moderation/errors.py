"""
Error taxonomy shared by services, adapters and the web layer.

Each error carries a stable machine-readable `code` (used as the `error` field
of JSON responses) and a human-readable `detail`.
"""
from __future__ import annotations


class ModerationError(Exception):
    """Base class for errors raised deliberately by the moderation backend."""

    code = "internal"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class Unauthenticated(ModerationError):
    code = "unauthenticated"


class PermissionDenied(ModerationError):
    code = "permission_denied"


class InvalidArgument(ModerationError, ValueError):
    code = "invalid_argument"


class NotFound(ModerationError, LookupError):
    code = "not_found"


class FailedPrecondition(ModerationError):
    code = "failed_precondition"


class Internal(ModerationError):
    code = "internal"


__all__ = [
    "ModerationError",
    "Unauthenticated",
    "PermissionDenied",
    "InvalidArgument",
    "NotFound",
    "FailedPrecondition",
    "Internal",
]
