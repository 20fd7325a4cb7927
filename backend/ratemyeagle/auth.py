"""Auth-service client and the bearer gate used by protected routes.

Accounts and tokens are owned by the external auth service (a GoTrue-style
REST API under ``{supabase_url}/auth/v1``). The API never checks passwords
or signs tokens itself; it only asks the service who a bearer token
belongs to.
"""

import logging
from functools import lru_cache
from typing import Any, Optional

import requests
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from ratemyeagle.config import Settings, get_settings
from ratemyeagle.errors import Unauthorized

logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    """Raised when the auth service rejects a sign-up, sign-in or reset."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        first = (self.user_metadata.get("first_name") or "").strip()
        last = (self.user_metadata.get("last_name") or "").strip()
        name = f"{first} {last}".strip()
        if name:
            return name
        if self.email:
            return self.email.split("@")[0]
        return "Anonymous"


class AuthSession(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: AuthUser


class AuthServiceClient:
    """Thin wrapper over the auth service's REST endpoints."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/") + "/auth/v1"
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, token: Optional[str] = None) -> dict:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {token or self.api_key}"
        return headers

    def _post(self, path: str, payload: dict, params: Optional[dict] = None,
              token: Optional[str] = None) -> dict:
        resp = self.http.post(
            f"{self.base_url}{path}",
            json=payload,
            params=params,
            headers=self._headers(token),
            timeout=self.timeout,
        )
        if not resp.ok:
            raise AuthServiceError(_error_message(resp), status_code=resp.status_code)
        return resp.json() if resp.content else {}

    def get_user(self, token: str, raise_on_error: bool = False) -> Optional[AuthUser]:
        """Resolve an access token to its user, or None when the service refuses it.

        An unreachable service also yields None unless ``raise_on_error`` is set,
        in which case the ``requests.RequestException`` propagates.
        """
        try:
            resp = self.http.get(
                f"{self.base_url}/user",
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Auth service unreachable: %s", exc)
            if raise_on_error:
                raise
            return None
        if not resp.ok:
            logger.info("Auth service rejected token (%d)", resp.status_code)
            return None
        return AuthUser.model_validate(resp.json())

    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthSession:
        data = self._post("/signup", {"email": email, "password": password, "data": metadata or {}})
        # With email confirmation enabled the service returns the bare user.
        if "user" not in data:
            return AuthSession(user=AuthUser.model_validate(data))
        return AuthSession.model_validate(data)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        data = self._post("/token", {"email": email, "password": password},
                          params={"grant_type": "password"})
        return AuthSession.model_validate(data)

    def sign_out(self, token: str):
        self._post("/logout", {}, token=token)

    def request_password_reset(self, email: str, redirect_to: Optional[str] = None):
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._post("/recover", {"email": email}, params=params)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"Auth service error ({resp.status_code})"
    for key in ("error_description", "msg", "message", "error"):
        if body.get(key):
            return str(body[key])
    return f"Auth service error ({resp.status_code})"


# ── FastAPI dependencies ─────────────────────────────────────────────────────

_bearer = HTTPBearer(auto_error=False)


@lru_cache()
def get_auth_client() -> AuthServiceClient:
    settings = get_settings()
    return AuthServiceClient(settings.supabase_url, settings.supabase_service_role_key or settings.supabase_anon_key)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    client: AuthServiceClient = Depends(get_auth_client),
) -> AuthUser:
    """Reject the request with 401 unless the bearer token resolves to a user."""
    if credentials is None or not credentials.credentials:
        logger.warning("Request without bearer credential")
        raise Unauthorized()
    user = client.get_user(credentials.credentials)
    if user is None:
        raise Unauthorized()
    return user


def get_forum_reader(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    client: AuthServiceClient = Depends(get_auth_client),
    settings: Settings = Depends(get_settings),
) -> Optional[AuthUser]:
    """Like get_current_user, but the public anon key is also accepted."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    if settings.supabase_anon_key and credentials.credentials == settings.supabase_anon_key:
        return None
    user = client.get_user(credentials.credentials)
    if user is None:
        raise Unauthorized()
    return user
