"""Role & approval checks: stored-document backed and fail-closed."""
from __future__ import annotations

import pytest

from identity_access.authority import RoleAuthority
from identity_access.domain import build_claims, effective_approval
from moderation.documents import USERS


def test_effective_approval_admin_always_true():
    assert effective_approval("admin", False) is True
    assert effective_approval("admin", None) is True
    assert effective_approval("lecturer", True) is True
    assert effective_approval("lecturer", None) is False
    assert effective_approval("moderator", False) is False


def test_build_claims_sets_exactly_one_role_flag():
    assert build_claims("moderator", True) == {
        "admin": False,
        "moderator": True,
        "lecturer": False,
        "approved": True,
    }
    assert build_claims("admin", False)["approved"] is True
    assert build_claims("lecturer", False) == {
        "admin": False,
        "moderator": False,
        "lecturer": True,
        "approved": False,
    }


def test_verify_user_role_requires_role_and_approval(container, seed):
    lecturer = seed("lecturer")
    pending = seed("lecturer", approved=False)
    admin = seed("admin")
    auth = container.authority

    assert auth.verify_user_role(lecturer, "lecturer")
    assert auth.verify_user_role(lecturer, ["lecturer", "admin"])
    assert not auth.verify_user_role(lecturer, "moderator")
    assert not auth.verify_user_role(pending, "lecturer")
    assert auth.verify_user_role(admin, ("moderator", "admin"))
    assert not auth.verify_user_role(admin, [])


def test_admin_with_approved_false_still_passes(container, seed):
    admin = seed("admin")
    container.store.patch(USERS, admin, {"approved": False})
    assert container.authority.verify_user_role(admin, "admin")
    assert container.authority.is_user_approved(admin)


def test_unknown_user_fails_closed(container):
    assert container.authority.verify_user_role("ghost", "admin") is False
    assert container.authority.is_user_approved("ghost") is False
    assert container.authority.verify_user_role("", "admin") is False


def test_store_errors_fail_closed(container, seed):
    uid = seed("moderator")

    class _Broken:
        def get(self, collection, doc_id):
            raise RuntimeError("store unavailable")

    auth = RoleAuthority(_Broken())  # type: ignore[arg-type]
    assert auth.verify_user_role(uid, "moderator") is False
    assert auth.is_user_approved(uid) is False


def test_get_user_by_email(container, seed):
    uid = seed("lecturer", name="Ada Lovelace")
    email = container.documents.get(USERS, uid)["email"]
    found = container.authority.get_user_by_email(email.upper())
    assert found is not None and found["id"] == uid
    assert container.authority.get_user_by_email("nobody@example.org") is None
    assert RoleAuthority(container.documents).get_user_by_email(email) is None


@pytest.mark.parametrize("role", ["lecturer", "moderator"])
def test_unapproved_roles_are_not_approved(container, seed, role):
    uid = seed(role, approved=False)
    assert container.authority.is_user_approved(uid) is False
