"""
Authentication provider abstraction for Supabase Auth (GoTrue) and in-memory testing.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10


class AuthError(Exception):
    """The auth provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class AuthUser:
    id: str
    email: str
    metadata: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "metadata": self.metadata}


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_in: int
    user: AuthUser

    def as_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "token_type": "bearer",
        }


class AuthClient(Protocol):
    """Defines the operations the API needs from the auth provider."""

    def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        ...

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        ...

    def update_user(
        self,
        access_token: str,
        *,
        password: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> AuthUser:
        ...

    def admin_create_user(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        ...

    def admin_update_user(
        self,
        user_id: str,
        *,
        password: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> AuthUser:
        ...

    def admin_delete_user(self, user_id: str) -> None:
        ...


class InMemoryAuthClient:
    """Test double for the auth provider."""

    def __init__(self):
        self.accounts: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}

    def reset(self) -> None:
        self.accounts.clear()
        self.tokens.clear()

    def _find(self, email: str) -> Optional[dict]:
        for account in self.accounts.values():
            if account["email"] == email:
                return account
        return None

    def _to_user(self, account: dict) -> AuthUser:
        return AuthUser(
            id=account["id"], email=account["email"], metadata=dict(account["metadata"])
        )

    def _create(self, email: str, password: str, metadata: Optional[dict]) -> AuthUser:
        if self._find(email):
            raise AuthError("User already registered", status_code=422)
        if len(password) < 6:
            raise AuthError(
                "Password should be at least 6 characters", status_code=422
            )
        account = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password": password,
            "metadata": dict(metadata or {}),
        }
        self.accounts[account["id"]] = account
        return self._to_user(account)

    def _apply(self, account: dict, password: Optional[str], data: Optional[dict]):
        if password is not None:
            account["password"] = password
        if data:
            account["metadata"].update(data)

    def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        return self._create(email, password, metadata)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        account = self._find(email)
        if not account or account["password"] != password:
            raise AuthError("Invalid login credentials", status_code=400)
        token = secrets.token_urlsafe(24)
        self.tokens[token] = account["id"]
        return AuthSession(
            access_token=token,
            refresh_token=secrets.token_urlsafe(24),
            expires_in=3600,
            user=self._to_user(account),
        )

    def issue_token(self, user_id: str) -> str:
        """Mint an access token without a password (tests only)."""
        token = secrets.token_urlsafe(24)
        self.tokens[token] = user_id
        return token

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        user_id = self.tokens.get(access_token)
        account = self.accounts.get(user_id) if user_id else None
        return self._to_user(account) if account else None

    def update_user(
        self,
        access_token: str,
        *,
        password: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> AuthUser:
        user_id = self.tokens.get(access_token)
        account = self.accounts.get(user_id) if user_id else None
        if not account:
            raise AuthError("Invalid token", status_code=401)
        self._apply(account, password, data)
        return self._to_user(account)

    def admin_create_user(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        return self._create(email, password, metadata)

    def admin_update_user(
        self,
        user_id: str,
        *,
        password: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> AuthUser:
        account = self.accounts.get(user_id)
        if not account:
            raise AuthError("User not found", status_code=404)
        self._apply(account, password, data)
        return self._to_user(account)

    def admin_delete_user(self, user_id: str) -> None:
        if self.accounts.pop(user_id, None) is None:
            raise AuthError("User not found", status_code=404)
        self.tokens = {t: uid for t, uid in self.tokens.items() if uid != user_id}


@dataclass
class SupabaseAuthClient:
    """
    Thin client for the Supabase Auth (GoTrue) REST API.
    """

    url: str
    anon_key: str
    service_key: str = ""

    def __post_init__(self):
        self.base_url = f"{self.url.rstrip('/')}/auth/v1"
        self._session = requests.Session()

    def _headers(self, bearer: Optional[str] = None, admin: bool = False) -> dict:
        key = self.service_key if admin else self.anon_key
        headers = {"apikey": key, "Content-Type": "application/json"}
        if admin:
            headers["Authorization"] = f"Bearer {self.service_key}"
        elif bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        bearer: Optional[str] = None,
        admin: bool = False,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        if admin and not self.service_key:
            raise AuthError("SUPABASE_SERVICE_KEY is required for admin calls")
        try:
            response = self._session.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(bearer=bearer, admin=admin),
                params=params,
                json=json,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            logger.error("Auth provider unreachable: %s", exc)
            raise AuthError(f"Auth provider unreachable: {exc}") from exc

        if not response.ok:
            raise AuthError(_error_message(response), status_code=response.status_code)
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _to_user(payload: dict) -> AuthUser:
        return AuthUser(
            id=payload["id"],
            email=payload.get("email", ""),
            metadata=payload.get("user_metadata") or {},
        )

    def _to_session(self, payload: dict) -> AuthSession:
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token", ""),
            expires_in=int(payload.get("expires_in", 3600)),
            user=self._to_user(payload["user"]),
        )

    def sign_up(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        payload = self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        # With auto-confirm on, GoTrue wraps the user in a session payload.
        user = payload.get("user") or payload
        if "id" not in user:
            raise AuthError("Sign-up response did not include a user")
        return self._to_user(user)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        payload = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._to_session(payload)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        try:
            payload = self._request("GET", "/user", bearer=access_token)
        except AuthError as exc:
            if exc.status_code in (401, 403):
                return None
            raise
        return self._to_user(payload)

    def update_user(
        self,
        access_token: str,
        *,
        password: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> AuthUser:
        body: dict = {}
        if password is not None:
            body["password"] = password
        if data:
            body["data"] = data
        payload = self._request("PUT", "/user", bearer=access_token, json=body)
        return self._to_user(payload)

    def admin_create_user(
        self, email: str, password: str, metadata: Optional[dict] = None
    ) -> AuthUser:
        payload = self._request(
            "POST",
            "/admin/users",
            admin=True,
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata or {},
            },
        )
        return self._to_user(payload)

    def admin_update_user(
        self,
        user_id: str,
        *,
        password: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> AuthUser:
        body: dict = {}
        if password is not None:
            body["password"] = password
        if data:
            body["user_metadata"] = data
        payload = self._request("PUT", f"/admin/users/{user_id}", admin=True, json=body)
        return self._to_user(payload)

    def admin_delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/admin/users/{user_id}", admin=True)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if not isinstance(payload, dict):
        return f"HTTP {response.status_code}"
    for key in ("msg", "error_description", "message", "error"):
        if payload.get(key):
            return str(payload[key])
    return f"HTTP {response.status_code}"
