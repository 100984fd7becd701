from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException

from ..domain.errors import DrakenError
from .auth import AuthService, require_auth
from .models import AuthStatus, LoginRequest, LoginResponse


def create_auth_router(auth: AuthService) -> APIRouter:
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.get("/status")
    async def auth_status() -> AuthStatus:
        return AuthStatus(enabled=auth.enabled)

    @router.post("/login")
    async def login(body: LoginRequest) -> LoginResponse:
        if not body.username or not body.password:
            raise HTTPException(status_code=400, detail="Username and password are required")
        if not auth.enabled:
            raise HTTPException(status_code=400, detail="Authentication is not configured")
        if not auth.verify_credentials(body.username, body.password):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        try:
            token = auth.create_access_token(body.username)
        except DrakenError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
        return LoginResponse(
            token=token,
            expires_in_minutes=auth.settings.token_expire_minutes,
            username=body.username,
        )

    @router.get("/verify")
    async def verify(username: Optional[str] = Depends(require_auth(auth))) -> dict[str, Any]:
        if not auth.enabled:
            return {"valid": True, "authEnabled": False}
        return {"valid": True, "authEnabled": True, "username": username}

    @router.post("/logout")
    async def logout() -> dict[str, str]:
        return {"message": "Logged out successfully"}

    return router
