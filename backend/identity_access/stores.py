"""
Server-side session store: opaque cookie value -> authenticated caller.

Why: The moderation API authorizes every call against the stored user
document, so a session only has to remember *who* is calling (`sub`, the user
document id). Sessions are issued by the login integration in front of the
API; the web middleware only resolves them. Multi-instance deployments need a
shared store exposing the same `create/get/delete` methods.

Security: Cookies carry only an opaque session id; role and approval are
never cached in the session.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time

DEFAULT_TTL_SECONDS = 3600


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    name: str = ""
    expires_at: Optional[int] = None

    def expired(self, now: int) -> bool:
        return bool(self.expires_at) and self.expires_at < now


class SessionStore:
    def __init__(self) -> None:
        self._sessions: Dict[str, SessionRecord] = {}

    def create(self, *, sub: str, name: str = "", ttl_seconds: int = DEFAULT_TTL_SECONDS) -> SessionRecord:
        rec = SessionRecord(
            session_id=secrets.token_urlsafe(24),
            sub=sub,
            name=name,
            expires_at=int(time.time()) + ttl_seconds,
        )
        self._sessions[rec.session_id] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._sessions.get(session_id)
        if rec is None:
            return None
        if rec.expired(int(time.time())):
            del self._sessions[session_id]
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
