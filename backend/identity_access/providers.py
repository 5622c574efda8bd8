"""Identity provider port and an in-memory implementation for tests/dev."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol
from uuid import uuid4

from moderation.errors import FailedPrecondition, NotFound


class IdentityProviderProtocol(Protocol):
    def create_user(self, *, email: str, password: str, display_name: str | None = None, email_verified: bool = False) -> str:
        ...

    def get_user_by_email(self, email: str) -> str:
        ...

    def set_custom_claims(self, user_id: str, claims: Mapping[str, bool]) -> None:
        ...


@dataclass
class IdentityRecord:
    uid: str
    email: str
    display_name: Optional[str]
    email_verified: bool
    custom_claims: Optional[Dict[str, bool]] = None
    password: str = field(default="", repr=False)


class InMemoryIdentityProvider:
    def __init__(self) -> None:
        self.users: Dict[str, IdentityRecord] = {}

    def create_user(self, *, email: str, password: str, display_name: str | None = None, email_verified: bool = False) -> str:
        if any(u.email.lower() == email.lower() for u in self.users.values()):
            raise FailedPrecondition("email_already_registered")
        uid = uuid4().hex
        self.users[uid] = IdentityRecord(
            uid=uid,
            email=email,
            display_name=display_name,
            email_verified=email_verified,
            password=password,
        )
        return uid

    def get_user_by_email(self, email: str) -> str:
        for u in self.users.values():
            if u.email.lower() == (email or "").lower():
                return u.uid
        raise NotFound("identity_not_found")

    def set_custom_claims(self, user_id: str, claims: Mapping[str, bool]) -> None:
        rec = self.users.get(user_id)
        if rec is None:
            raise NotFound("identity_not_found")
        rec.custom_claims = dict(claims)

    def claims_for(self, user_id: str) -> Optional[Dict[str, bool]]:
        rec = self.users.get(user_id)
        return dict(rec.custom_claims) if rec and rec.custom_claims is not None else None


__all__ = ["IdentityProviderProtocol", "IdentityRecord", "InMemoryIdentityProvider"]
