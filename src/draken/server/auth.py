"""JWT authentication for the dashboard API and its live transports."""

from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from fastapi import HTTPException, Query, Request

from ..config import AuthSettings
from ..domain.errors import SigningSecretMissing

ALGORITHM = "HS256"


class AuthService:
    """Username/password login issuing HS256 bearer tokens.

    Auth is enabled only when both a username and a password are configured
    and it has not been explicitly disabled. Without a signing secret no token
    is issued or accepted, so a half-configured server fails closed.
    """

    def __init__(self, settings: AuthSettings) -> None:
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def verify_credentials(self, username: str, password: str) -> bool:
        """Check a login attempt against the configured account.

        Args:
            username: Submitted username.
            password: Submitted password.

        Returns:
            True if both match; always False while auth is disabled.
        """
        if not self.enabled:
            return False
        user_ok = hmac.compare_digest(username.encode("utf-8"), (self.settings.username or "").encode("utf-8"))
        password_ok = hmac.compare_digest(password.encode("utf-8"), (self.settings.password or "").encode("utf-8"))
        return user_ok and password_ok

    def create_access_token(self, username: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed token for ``username``.

        Args:
            username: Subject of the token.
            expires_delta: Lifetime; defaults to the configured expiry.

        Returns:
            Encoded JWT.

        Raises:
            SigningSecretMissing: No signing secret is configured.
        """
        if not self.settings.has_secret:
            raise SigningSecretMissing("DRAKEN_JWT_SECRET is not set; refusing to sign tokens")
        lifetime = expires_delta or timedelta(minutes=self.settings.token_expire_minutes)
        now = datetime.now(timezone.utc)
        payload = {"sub": username, "iat": now, "exp": now + lifetime}
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=ALGORITHM)

    def decode_access_token(self, token: str) -> Optional[str]:
        """Decode and verify a token.

        Args:
            token: Encoded JWT.

        Returns:
            Username from the token, or None if it is invalid or expired.
        """
        if not self.settings.has_secret:
            return None
        try:
            payload = jwt.decode(token, self.settings.jwt_secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
        username = payload.get("sub")
        return str(username) if username else None

    def verify_token(self, token: Optional[str]) -> bool:
        if not self.enabled:
            return True
        if not token:
            return False
        return self.decode_access_token(token) is not None


def _bearer(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def _check(auth: AuthService, token: Optional[str]) -> Optional[str]:
    if not auth.enabled:
        return None
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    username = auth.decode_access_token(token)
    if username is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return username


def require_auth(auth: AuthService) -> Callable[[Request], Optional[str]]:
    """Dependency accepting only ``Authorization: Bearer <token>``."""

    def _dependency(request: Request) -> Optional[str]:
        return _check(auth, _bearer(request))

    return _dependency


def require_auth_or_query(auth: AuthService) -> Callable[..., Optional[str]]:
    """Dependency that also accepts ``?token=`` for clients that cannot set headers."""

    def _dependency(request: Request, token: Optional[str] = Query(None)) -> Optional[str]:
        return _check(auth, _bearer(request) or token)

    return _dependency
