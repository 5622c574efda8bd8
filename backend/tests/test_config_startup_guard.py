"""
Startup config guard tests.

Validates that production/staging environments fail fast on in-memory
backends, TLS-disabled DSNs, placeholder Keycloak secrets or plain-http
Keycloak URLs, while development stays permissive.
"""
from __future__ import annotations

import pytest

from web import config as cfg


def _prod(monkeypatch: pytest.MonkeyPatch, **overrides: str) -> None:
    env = {
        "MODUCATE_ENV": "prod",
        "DOCUMENTS_BACKEND": "db",
        "DOCUMENTS_DATABASE_URL": "postgresql://moducate:pw@db.example.org:5432/moducate?sslmode=require",
        "IDENTITY_BACKEND": "keycloak",
        "KC_ADMIN_CLIENT_SECRET": "a-real-secret",
        "KC_BASE_URL": "https://id.example.org",
    }
    env.update(overrides)
    for key, value in env.items():
        monkeypatch.setenv(key, value)


def test_dev_allows_in_memory_backends(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MODUCATE_ENV", "dev")
    cfg.ensure_secure_config_on_startup()


def test_prod_with_secure_settings_passes(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch)
    cfg.ensure_secure_config_on_startup()


@pytest.mark.parametrize(
    "overrides",
    [
        {"DOCUMENTS_BACKEND": "memory"},
        {"DOCUMENTS_DATABASE_URL": "postgresql://moducate:pw@db/moducate?sslmode=disable"},
        {"IDENTITY_BACKEND": "memory"},
        {"KC_ADMIN_CLIENT_SECRET": "CHANGE_ME"},
        {"KC_BASE_URL": "http://id.example.org"},
    ],
)
def test_prod_insecure_settings_abort(monkeypatch: pytest.MonkeyPatch, overrides):
    _prod(monkeypatch, **overrides)
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_staging_counts_as_prod(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch, MODUCATE_ENV="staging", DOCUMENTS_BACKEND="memory")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_prod_without_dsn_aborts(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch)
    monkeypatch.delenv("DOCUMENTS_DATABASE_URL")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()
