"""
Shared response helpers for the JSON routes.

Why:
    Every route returns user- or role-scoped data, so success and error
    responses carry `Cache-Control: private, no-store`. Errors use a single
    mapping from the moderation error taxonomy to HTTP status codes.
"""
from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from moderation.container import ModerationContainer
from moderation.errors import ModerationError

logger = logging.getLogger("moducate.web")

STATUS_BY_CODE = {
    "unauthenticated": 401,
    "permission_denied": 403,
    "invalid_argument": 400,
    "not_found": 404,
    "failed_precondition": 409,
    "internal": 500,
}


def json_private(payload, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def private_error(code: str, detail: str | None = None) -> JSONResponse:
    body = {"error": code}
    if detail:
        body["detail"] = detail
    return json_private(body, status_code=STATUS_BY_CODE.get(code, 500))


def error_response(exc: Exception, *, operation: str) -> JSONResponse:
    """Map deliberate errors to their status; wrap anything else as internal."""
    if isinstance(exc, ModerationError):
        if exc.code == "internal":
            logger.error("%s failed: %s", operation, exc.detail)
        return private_error(exc.code, exc.detail)
    logger.exception("%s failed with unexpected error", operation)
    return private_error("internal", str(exc) or exc.__class__.__name__)


def container(request: Request) -> ModerationContainer:
    return request.app.state.container


def current_sub(request: Request) -> str:
    user = getattr(request.state, "user", None) or {}
    sub = user.get("sub")
    return str(sub) if sub else ""
