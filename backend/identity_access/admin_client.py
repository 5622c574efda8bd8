"""
Keycloak Admin client used as the identity provider for Moducate.

Design:
- Framework-agnostic, callable from services and operator tools.
- Uses requests under the hood; raises on errors and leaves logging to callers.
- Claims are stored as single-valued user attributes (`"true"`/`"false"`) so a
  Keycloak "User Attribute" protocol mapper can project them into tokens.

Security:
- Do not log credentials or tokens.
- Prefer a confidential admin client (client_credentials); the password grant
  is a dev-only fallback and refused in production-like environments.
"""

from __future__ import annotations

from typing import Dict, Mapping
import os
import requests

from moderation.errors import FailedPrecondition, NotFound


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in {"prod", "production", "stage", "staging"}


class KeycloakIdentityProvider:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        realm: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("KC_BASE_URL", "http://localhost:8080")).rstrip("/")
        self.realm = realm or os.getenv("KC_REALM", "moducate")
        self.timeout = timeout if timeout is not None else float(os.getenv("KC_TIMEOUT", "10"))
        self._admin_realm = os.getenv("KC_ADMIN_REALM", "master")
        self._admin_client_id = os.getenv("KC_ADMIN_CLIENT_ID", "moducate-admin-cli")
        self._admin_client_secret = os.getenv("KC_ADMIN_CLIENT_SECRET")
        self._admin_username = os.getenv("KC_ADMIN_USERNAME")
        self._admin_password = os.getenv("KC_ADMIN_PASSWORD")
        ca = os.getenv("KEYCLOAK_CA_BUNDLE")
        self._verify = ca if ca else True

    @property
    def _users_url(self) -> str:
        return f"{self.base_url}/admin/realms/{self.realm}/users"

    def _token(self) -> str:
        url = f"{self.base_url}/realms/{self._admin_realm}/protocol/openid-connect/token"
        if self._admin_client_secret:
            data = {
                "grant_type": "client_credentials",
                "client_id": self._admin_client_id,
                "client_secret": self._admin_client_secret,
            }
        else:
            if _is_prod_like(os.getenv("MODUCATE_ENV", "dev")):
                raise RuntimeError("password_grant_disabled_in_prod")
            if not self._admin_username or not self._admin_password:
                raise RuntimeError(
                    "Keycloak admin credentials missing: set KC_ADMIN_CLIENT_SECRET or KC_ADMIN_USERNAME/PASSWORD"
                )
            data = {
                "grant_type": "password",
                "client_id": self._admin_client_id,
                "username": self._admin_username,
                "password": self._admin_password,
            }
        r = requests.post(url, data=data, timeout=self.timeout, verify=self._verify)
        r.raise_for_status()
        tok = (r.json() or {}).get("access_token")
        if not tok:
            raise RuntimeError("Keycloak admin token missing")
        return str(tok)

    def _admin(self, token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def _find_user_id(self, token: str, email: str) -> str | None:
        q = requests.get(
            self._users_url,
            headers=self._admin(token),
            params={"email": email, "exact": True},
            timeout=self.timeout,
            verify=self._verify,
        )
        q.raise_for_status()
        for u in q.json() or []:
            if str(u.get("email", "")).lower() == email.lower() and u.get("id"):
                return str(u["id"])
        return None

    def create_user(self, *, email: str, password: str, display_name: str | None = None, email_verified: bool = False) -> str:
        token = self._token()
        payload = {
            "username": email,
            "email": email,
            "enabled": True,
            "emailVerified": email_verified,
            **({"firstName": display_name, "attributes": {"display_name": [display_name]}} if display_name else {}),
        }
        r = requests.post(self._users_url, headers=self._admin(token), json=payload, timeout=self.timeout, verify=self._verify)
        if r.status_code == 409:
            raise FailedPrecondition("email_already_registered")
        if r.status_code not in (201, 204):
            raise RuntimeError("user_create_failed")
        user_id = self._find_user_id(token, email)
        if not user_id:
            raise RuntimeError("user_lookup_failed")
        pw = {"type": "password", "value": password, "temporary": False}
        pr = requests.put(
            f"{self._users_url}/{user_id}/reset-password",
            headers=self._admin(token),
            json=pw,
            timeout=self.timeout,
            verify=self._verify,
        )
        if pr.status_code not in (204,):
            raise RuntimeError("password_set_failed")
        return user_id

    def get_user_by_email(self, email: str) -> str:
        user_id = self._find_user_id(self._token(), email)
        if not user_id:
            raise NotFound("identity_not_found")
        return user_id

    def set_custom_claims(self, user_id: str, claims: Mapping[str, bool]) -> None:
        token = self._token()
        url = f"{self._users_url}/{user_id}"
        r = requests.get(url, headers=self._admin(token), timeout=self.timeout, verify=self._verify)
        if r.status_code == 404:
            raise NotFound("identity_not_found")
        r.raise_for_status()
        rep = r.json() or {}
        attrs = dict(rep.get("attributes") or {})
        for key, value in claims.items():
            attrs[key] = ["true" if value else "false"]
        rep["attributes"] = attrs
        u = requests.put(url, headers=self._admin(token), json=rep, timeout=self.timeout, verify=self._verify)
        if u.status_code not in (204,):
            raise RuntimeError("claims_update_failed")
