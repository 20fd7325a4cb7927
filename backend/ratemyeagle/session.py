"""Signed-in user session for the client side.

The session is an explicit object handed to whatever needs identity. It is
kept on disk only as an opaque snapshot and revalidated against the auth
service when the application starts.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

import requests
from pydantic import BaseModel, ValidationError

from ratemyeagle.auth import AuthServiceClient, AuthServiceError, AuthSession, AuthUser
from ratemyeagle.config import get_settings
from ratemyeagle.forms import SignUpForm, email_error, validate_signin, validate_signup

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Raised when a sign-up or sign-in is refused, locally or by the auth service."""


class UserProfile(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    student_id: Optional[str] = None
    graduation: Optional[str] = None
    major: Optional[str] = None

    @classmethod
    def from_auth_user(cls, user: AuthUser) -> "UserProfile":
        meta = user.user_metadata
        email = user.email or ""
        first = meta.get("first_name") or ""
        last = meta.get("last_name") or ""
        if not first and email:
            # older accounts without metadata: derive "jane.doe@..." -> Jane Doe
            parts = email.split("@")[0].split(".")
            first = parts[0].capitalize() if parts[0] else "Student"
            last = parts[1].capitalize() if len(parts) > 1 and parts[1] else "User"
        return cls(
            id=user.id,
            first_name=first,
            last_name=last,
            email=email,
            student_id=meta.get("student_id") or None,
            graduation=meta.get("graduation") or None,
            major=meta.get("major") or None,
        )


class UserSession(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    profile: UserProfile


class SessionStore:
    """Persists a UserSession as an opaque base64 blob."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or get_settings().session_file).expanduser()

    def save(self, session: UserSession):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        blob = base64.urlsafe_b64encode(session.model_dump_json().encode("utf-8"))
        self.path.write_bytes(blob)

    def load(self) -> Optional[UserSession]:
        """Return the saved session, or None when absent or unreadable (the file is removed)."""
        if not self.path.exists():
            return None
        try:
            raw = base64.urlsafe_b64decode(self.path.read_bytes())
            return UserSession.model_validate_json(raw)
        except (binascii.Error, ValueError, ValidationError) as exc:
            logger.warning("Discarding unreadable session snapshot: %s", exc)
            self.clear()
            return None

    def clear(self):
        self.path.unlink(missing_ok=True)


class SessionManager:
    """Owns the current UserSession; sign-in state lives here and nowhere else."""

    def __init__(self, auth_client: AuthServiceClient, store: Optional[SessionStore] = None,
                 email_domain: Optional[str] = None):
        self.auth_client = auth_client
        self.store = store or SessionStore()
        self.email_domain = email_domain
        self.current: Optional[UserSession] = None

    @property
    def is_authenticated(self) -> bool:
        return self.current is not None

    @property
    def access_token(self) -> Optional[str]:
        return self.current.access_token if self.current else None

    def _establish(self, auth_session: AuthSession) -> UserSession:
        if not auth_session.access_token:
            raise SessionError("Check your email to confirm your account, then sign in")
        self.current = UserSession(
            access_token=auth_session.access_token,
            refresh_token=auth_session.refresh_token,
            profile=UserProfile.from_auth_user(auth_session.user),
        )
        self.store.save(self.current)
        logger.info("Signed in as %s", self.current.profile.email)
        return self.current

    def sign_up(self, form: SignUpForm) -> UserSession:
        error = validate_signup(form, self.email_domain)
        if error:
            raise SessionError(error)
        try:
            auth_session = self.auth_client.sign_up(form.email.strip(), form.password, form.metadata())
        except (AuthServiceError, requests.RequestException) as exc:
            logger.error("Sign-up failed for %s: %s", form.email, exc)
            raise SessionError(f"Account creation failed: {exc}") from exc
        return self._establish(auth_session)

    def sign_in(self, email: str, password: str) -> UserSession:
        error = validate_signin(email, password, self.email_domain)
        if error:
            raise SessionError(error)
        try:
            auth_session = self.auth_client.sign_in_with_password(email.strip(), password)
        except (AuthServiceError, requests.RequestException) as exc:
            logger.error("Sign-in failed for %s: %s", email, exc)
            raise SessionError(f"Login failed: {exc}") from exc
        return self._establish(auth_session)

    def request_password_reset(self, email: str, redirect_to: Optional[str] = None):
        error = email_error(email, self.email_domain)
        if error:
            raise SessionError(error)
        try:
            self.auth_client.request_password_reset(email.strip(), redirect_to)
        except (AuthServiceError, requests.RequestException) as exc:
            raise SessionError(str(exc)) from exc

    def sign_out(self):
        if self.current is not None:
            try:
                self.auth_client.sign_out(self.current.access_token)
            except (AuthServiceError, requests.RequestException) as exc:
                logger.warning("Remote sign-out failed, clearing local session anyway: %s", exc)
        self.current = None
        self.store.clear()

    def restore(self) -> Optional[UserSession]:
        """Reload the saved snapshot at startup and keep it only if the token is still valid.

        When the auth service cannot be reached the snapshot stays on disk and
        the manager stays signed out, so a later ``restore`` can retry.
        """
        saved = self.store.load()
        if saved is None:
            return None
        try:
            user = self.auth_client.get_user(saved.access_token, raise_on_error=True)
        except requests.RequestException as exc:
            logger.warning("Could not verify saved session, keeping it for later: %s", exc)
            self.current = None
            return None
        if user is None or user.id != saved.profile.id:
            logger.info("Saved session is no longer valid; signing out")
            self.store.clear()
            self.current = None
            return None
        self.current = saved.model_copy(update={"profile": UserProfile.from_auth_user(user)})
        self.store.save(self.current)
        return self.current
