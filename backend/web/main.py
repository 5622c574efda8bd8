"Moducate assessment moderation API"
from __future__ import annotations

import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity_access.stores import SessionStore
from moderation.container import ModerationContainer, container_from_env
from web.config import current_environment, ensure_secure_config_on_startup
from web.responses import json_private, private_error
from web.routes.assessments import assessments_router
from web.routes.users import users_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via MODUCATE_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("MODUCATE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


try:
    from dotenv import load_dotenv
    if _should_load_dotenv():
        load_dotenv()
except ImportError:
    pass

logger = logging.getLogger("moducate.web")
SESSION_COOKIE_NAME = "moducate_session"

_PUBLIC_PATHS = frozenset({"/health", "/api/bootstrap/admin", "/api/users/register"})


def _is_public_path(path: str) -> bool:
    return path in _PUBLIC_PATHS or path.startswith(("/docs", "/openapi.json"))


def create_app(container: ModerationContainer | None = None, session_store: SessionStore | None = None) -> FastAPI:
    """Build the API around an injected container (from the environment when omitted)."""
    if container is None:
        ensure_secure_config_on_startup()
        container = container_from_env()

    app = FastAPI(title="Moducate", description="Assessment moderation backend", version="0.1.0")
    app.state.container = container
    app.state.session_store = session_store or SessionStore()

    @app.middleware("http")
    async def auth_enforcement(request: Request, call_next):
        path = request.url.path
        if _is_public_path(path):
            return await call_next(request)

        sid = request.cookies.get(SESSION_COOKIE_NAME)
        rec = None
        if sid:
            try:
                rec = request.app.state.session_store.get(sid)
            except Exception as exc:
                logger.warning("Session store get failed: %s", exc.__class__.__name__)

        if not rec:
            return JSONResponse(
                {"error": "unauthenticated"},
                status_code=401,
                headers={"Cache-Control": "private, no-store"},
            )

        # Expose minimal, read-only caller context for downstream handlers.
        request.state.user = {"sub": rec.sub, "name": rec.name}
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
        return private_error("invalid_argument", "invalid_fields: " + ", ".join(f for f in fields if f))

    @app.get("/health")
    async def health():
        return json_private({"status": "ok", "environment": current_environment()})

    app.include_router(assessments_router)
    app.include_router(users_router)
    return app


app = create_app()
