"""
User document reactions: created/updated handlers keep claims consistent with
the stored role and terminate after their own writes.
"""
from __future__ import annotations

from identity_access.providers import InMemoryIdentityProvider
from moderation.container import build_container
from moderation.documents import USERS, now_iso


class CountingProvider(InMemoryIdentityProvider):
    def __init__(self) -> None:
        super().__init__()
        self.claim_calls: list[tuple[str, dict]] = []

    def set_custom_claims(self, user_id, claims):
        self.claim_calls.append((user_id, dict(claims)))
        super().set_custom_claims(user_id, claims)


def _user(role: str, approved: bool) -> dict:
    now = now_iso()
    return {
        "displayName": role.title(),
        "email": f"{role}@example.org",
        "role": role,
        "approved": approved,
        "customClaims": None,
        "createdAt": now,
        "updatedAt": now,
    }


def test_admin_document_created_gets_admin_claims():
    identity = CountingProvider()
    c = build_container(identity=identity)
    uid = identity.create_user(email="root@example.org", password="secret123")
    c.documents.create(USERS, _user("admin", False), uid)

    expected = {"admin": True, "moderator": False, "lecturer": False, "approved": True}
    assert identity.claims_for(uid) == expected
    doc = c.documents.get(USERS, uid)
    assert doc["customClaims"] == expected
    assert doc["approved"] is True
    assert len(identity.claim_calls) == 1


def test_non_admin_document_created_is_reset_to_unapproved():
    identity = CountingProvider()
    c = build_container(identity=identity)
    uid = identity.create_user(email="lect@example.org", password="secret123")
    data = _user("lecturer", True)
    data["customClaims"] = {"lecturer": True, "approved": True}
    c.documents.create(USERS, data, uid)

    doc = c.documents.get(USERS, uid)
    assert doc["approved"] is False
    assert doc["customClaims"] is None
    assert identity.claims_for(uid) is None
    assert identity.claim_calls == []


def test_role_change_through_document_edit_resyncs_claims_once():
    identity = CountingProvider()
    c = build_container(identity=identity)
    uid = identity.create_user(email="lect@example.org", password="secret123")
    c.documents.create(USERS, _user("lecturer", False), uid)
    c.documents.update(USERS, uid, {"approved": True})
    assert identity.claim_calls == []

    c.documents.update(USERS, uid, {"role": "moderator"})

    assert identity.claims_for(uid) == {
        "admin": False,
        "moderator": True,
        "lecturer": False,
        "approved": True,
    }
    # The mirror write does not change `role`, so propagation stops here.
    assert len(identity.claim_calls) == 1
    assert c.documents.get(USERS, uid)["customClaims"]["moderator"] is True


def test_update_without_role_change_does_not_sync():
    identity = CountingProvider()
    c = build_container(identity=identity)
    uid = identity.create_user(email="mod@example.org", password="secret123")
    c.documents.create(USERS, _user("moderator", False), uid)
    c.documents.update(USERS, uid, {"displayName": "Renamed"})
    assert identity.claim_calls == []


def test_failing_claims_sync_does_not_break_the_document_write():
    class _Down(CountingProvider):
        def set_custom_claims(self, user_id, claims):
            raise RuntimeError("provider down")

    identity = _Down()
    c = build_container(identity=identity)
    uid = identity.create_user(email="lect@example.org", password="secret123")
    c.documents.create(USERS, _user("lecturer", True), uid)
    c.documents.update(USERS, uid, {"role": "moderator"})
    assert c.documents.get(USERS, uid)["role"] == "moderator"


def test_triggers_can_be_left_unregistered():
    identity = CountingProvider()
    c = build_container(identity=identity, register_triggers=False)
    uid = identity.create_user(email="root@example.org", password="secret123")
    c.documents.create(USERS, _user("admin", True), uid)
    assert identity.claim_calls == []
