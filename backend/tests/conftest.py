"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors), make
the flat `backend/` packages importable without an install, and give every
test a fresh in-memory container so no state leaks across tests.
"""
import os
import sys
from pathlib import Path
from uuid import uuid4

import pytest

# Ensure modules in backend/ are importable across tests
BACKEND_DIR = Path(__file__).resolve().parents[1]
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Importing web.main builds a module-level app from the environment.
os.environ.setdefault("DOCUMENTS_BACKEND", "memory")
os.environ.setdefault("IDENTITY_BACKEND", "memory")

from moderation.container import ModerationContainer, build_container  # noqa: E402
from moderation.documents import USERS, now_iso  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _dev_env(monkeypatch: pytest.MonkeyPatch):
    """Keep tests in dev mode with in-memory backends unless a test opts in."""
    monkeypatch.delenv("MODUCATE_ENV", raising=False)
    monkeypatch.setenv("DOCUMENTS_BACKEND", "memory")
    monkeypatch.setenv("IDENTITY_BACKEND", "memory")
    yield


@pytest.fixture
def container() -> ModerationContainer:
    return build_container()


def seed_user(
    container: ModerationContainer,
    *,
    role: str,
    approved: bool = True,
    name: str | None = None,
) -> str:
    """Create identity + user document the way registration/bootstrap would.

    Non-admins are created unapproved and, when `approved`, flipped by a plain
    document update (no claims attached; use the service to test claims).
    """
    display = name or role.title()
    email = f"{display.lower().replace(' ', '.')}-{uuid4().hex[:6]}@example.org"
    uid = container.identity.create_user(email=email, password="secret123", display_name=display)
    now = now_iso()
    container.documents.create(
        USERS,
        {
            "displayName": display,
            "email": email,
            "role": role,
            "approved": role == "admin",
            "active": True,
            "customClaims": None,
            "createdAt": now,
            "updatedAt": now,
        },
        uid,
    )
    if approved and role != "admin":
        container.documents.update(USERS, uid, {"approved": True})
    return uid


@pytest.fixture
def seed(container):
    def _seed(role: str, approved: bool = True, name: str | None = None) -> str:
        return seed_user(container, role=role, approved=approved, name=name)

    return _seed
