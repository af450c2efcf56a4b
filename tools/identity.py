"""Identity providers: who is signed in and what role they hold."""
from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from uuid import NAMESPACE_URL, uuid5

import requests

from tailor_app.errors import CollaboratorUnavailable, Unauthenticated, ValidationError
from tailor_app.logging_config import get_logger, log_event
from tools.backend import Backend

LOGGER = get_logger(__name__)

DEMO_ADMIN_EMAIL = "admin@etailor.com"
DEMO_ADMIN_PASSWORD = "admin123456"
ROLES = ("customer", "admin")


@dataclass(frozen=True)
class AuthUser:
    """The authenticated principal for a request or a local run."""

    id: str
    email: str
    role: str = "customer"
    full_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown role '{self.role}'. Allowed: {list(ROLES)}")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class AuthSession:
    user: AuthUser
    access_token: str


AuthCallback = Callable[[Optional[AuthUser]], None]


class IdentityProvider:
    """Interface for identity: the current user, auth changes and sign-in flows."""

    def __init__(self) -> None:
        self._current: Optional[AuthSession] = None
        self._listeners: List[AuthCallback] = []
        self._lock = threading.Lock()

    def current_user(self) -> Optional[AuthUser]:
        return self._current.user if self._current else None

    def on_auth_change(self, callback: AuthCallback) -> Callable[[], None]:
        """Register ``callback`` for sign-in/sign-out; returns an unsubscribe function."""

        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _set_current(self, session: Optional[AuthSession]) -> None:
        self._current = session
        with self._lock:
            listeners = list(self._listeners)
        user = session.user if session else None
        for callback in listeners:
            try:
                callback(user)
            except Exception:
                log_event(LOGGER, logging.ERROR, "auth_listener_failed", exc_info=True)

    def sign_in(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        raise NotImplementedError

    def sign_out(self, access_token: Optional[str] = None) -> None:
        """End the current session, or only the session holding ``access_token``."""

        raise NotImplementedError

    def _ends_current(self, access_token: Optional[str]) -> bool:
        return access_token is None or (
            self._current is not None and self._current.access_token == access_token
        )

    def user_for_token(self, token: str) -> Optional[AuthUser]:
        raise NotImplementedError


def _check_credentials(email: str, password: str) -> str:
    normalized = (email or "").strip().lower()
    fields: Dict[str, str] = {}
    if "@" not in normalized:
        fields["email"] = "Please enter a valid email"
    if not password:
        fields["password"] = "Password is required"
    if fields:
        raise ValidationError("Invalid credentials", fields)
    return normalized


class DemoIdentityProvider(IdentityProvider):
    """Local identity used when no hosted backend is configured.

    The demo admin signs in with a fixed password; any other email becomes a
    customer whose id is stable across runs.
    """

    def __init__(self, backend: Backend) -> None:
        super().__init__()
        self.backend = backend
        self._tokens: Dict[str, AuthUser] = {}

    def _profile_user(self, email: str, role: str, full_name: Optional[str]) -> AuthUser:
        user_id = str(uuid5(NAMESPACE_URL, f"etailor:{email}"))
        profile = self.backend.select_one("profiles", {"id": user_id})
        if profile is None:
            profile = self.backend.insert(
                "profiles",
                {"id": user_id, "email": email, "full_name": full_name, "role": role},
            )
        return AuthUser(
            id=user_id,
            email=email,
            role=str(profile.get("role") or role),
            full_name=profile.get("full_name") or full_name,
        )

    def _issue(self, user: AuthUser) -> AuthSession:
        token = secrets.token_urlsafe(24)
        self._tokens[token] = user
        session = AuthSession(user=user, access_token=token)
        self._set_current(session)
        log_event(LOGGER, logging.INFO, "demo_sign_in", user_id=user.id, role=user.role)
        return session

    def sign_in(self, email: str, password: str) -> AuthSession:
        normalized = _check_credentials(email, password)
        if normalized == DEMO_ADMIN_EMAIL:
            if password != DEMO_ADMIN_PASSWORD:
                raise Unauthenticated("Invalid email or password")
            return self._issue(self._profile_user(normalized, "admin", "Admin User"))
        return self._issue(self._profile_user(normalized, "customer", normalized.split("@")[0]))

    def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        normalized = _check_credentials(email, password)
        if len(password) < 6:
            raise ValidationError("Invalid credentials", {"password": "Password must be at least 6 characters"})
        if normalized == DEMO_ADMIN_EMAIL:
            raise ValidationError("Invalid credentials", {"email": "Email is already registered"})
        return self._issue(self._profile_user(normalized, "customer", full_name))

    def sign_out(self, access_token: Optional[str] = None) -> None:
        token = access_token or (self._current.access_token if self._current else None)
        ends_current = self._ends_current(access_token)
        if token:
            self._tokens.pop(token, None)
        if ends_current:
            self._set_current(None)

    def user_for_token(self, token: str) -> Optional[AuthUser]:
        return self._tokens.get(token)


class RestIdentityProvider(IdentityProvider):
    """Hosted auth service client (GoTrue-style ``/auth/v1`` endpoints).

    Roles come from the ``profiles`` table, read through the persistence backend.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        backend: Backend,
        timeout_seconds: float = 5.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self.http = http or requests.Session()

    def _call(self, method: str, path: str, token: Optional[str] = None, payload: Optional[dict] = None) -> dict:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.http.request(
                method,
                f"{self.base_url}/auth/v1/{path}",
                json=payload,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise CollaboratorUnavailable(f"Auth service unreachable on {path}") from exc
        if response.status_code >= 500:
            raise CollaboratorUnavailable(f"Auth service error on {path}")
        if response.status_code in (400, 401, 403):
            raise Unauthenticated("Invalid email or password")
        if response.status_code >= 400:
            raise ValidationError("Auth request rejected", {"__root__": response.text or "rejected"})
        return response.json() if response.content else {}

    def _user_from_payload(self, payload: dict) -> AuthUser:
        user_id = str(payload["id"])
        email = str(payload.get("email") or "")
        profile = self.backend.select_one("profiles", {"id": user_id}) or {}
        metadata = payload.get("user_metadata") or {}
        return AuthUser(
            id=user_id,
            email=email,
            role=str(profile.get("role") or "customer"),
            full_name=profile.get("full_name") or metadata.get("full_name"),
        )

    def _session_from(self, body: dict) -> AuthSession:
        token = body.get("access_token")
        if not token or "user" not in body:
            raise Unauthenticated("Auth service did not return a session")
        session = AuthSession(user=self._user_from_payload(body["user"]), access_token=str(token))
        self._set_current(session)
        return session

    def sign_in(self, email: str, password: str) -> AuthSession:
        normalized = _check_credentials(email, password)
        body = self._call(
            "POST", "token?grant_type=password", payload={"email": normalized, "password": password}
        )
        return self._session_from(body)

    def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        normalized = _check_credentials(email, password)
        body = self._call(
            "POST",
            "signup",
            payload={"email": normalized, "password": password, "data": {"full_name": full_name}},
        )
        session = self._session_from(body)
        if self.backend.select_one("profiles", {"id": session.user.id}) is None:
            self.backend.insert(
                "profiles",
                {"id": session.user.id, "email": normalized, "full_name": full_name, "role": "customer"},
            )
        return session

    def sign_out(self, access_token: Optional[str] = None) -> None:
        token = access_token or (self._current.access_token if self._current else None)
        ends_current = self._ends_current(access_token)
        if token:
            self._call("POST", "logout", token=token)
        if ends_current:
            self._set_current(None)

    def user_for_token(self, token: str) -> Optional[AuthUser]:
        try:
            payload = self._call("GET", "user", token=token)
        except Unauthenticated:
            return None
        if not payload.get("id"):
            return None
        return self._user_from_payload(payload)


__all__ = [
    "AuthUser",
    "AuthSession",
    "IdentityProvider",
    "DemoIdentityProvider",
    "RestIdentityProvider",
    "DEMO_ADMIN_EMAIL",
]
