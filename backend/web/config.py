"""
Configuration and startup security checks for Moducate.

Why: An assessment moderation backend holds account approvals and role
assignments; an accidental in-memory or plain-http deployment would silently
lose or leak them. This module provides a single guard that enforces minimal
production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("MODUCATE_ENV", "dev") or "dev").strip().lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - Documents must be persisted in Postgres (DOCUMENTS_BACKEND=db) with a DSN
      that does not disable TLS.
    - The identity provider must be Keycloak, reached over https, with a
      confidential admin client secret (no password grant).
    """

    env = current_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Durable document store
    if (os.getenv("DOCUMENTS_BACKEND", "memory") or "").strip().lower() != "db":
        raise SystemExit("Refusing to start: DOCUMENTS_BACKEND must be 'db' in production.")
    dsn = os.getenv("DOCUMENTS_DATABASE_URL") or os.getenv("DATABASE_URL") or ""
    if not dsn:
        raise SystemExit("Refusing to start: DOCUMENTS_DATABASE_URL or DATABASE_URL must be set in production.")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: database DSN contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )

    # 2) Real identity provider
    if (os.getenv("IDENTITY_BACKEND", "memory") or "").strip().lower() != "keycloak":
        raise SystemExit("Refusing to start: IDENTITY_BACKEND must be 'keycloak' in production.")
    kc_secret = (os.getenv("KC_ADMIN_CLIENT_SECRET", "") or "").strip()
    if not kc_secret or kc_secret.upper().startswith("CHANGE_ME"):
        raise SystemExit(
            "Refusing to start: KC_ADMIN_CLIENT_SECRET is unset or a placeholder in production."
        )
    kc_url = (os.getenv("KC_BASE_URL", "") or "").strip().lower()
    if not kc_url.startswith("https://"):
        raise SystemExit("Refusing to start: KC_BASE_URL must use https in production.")
