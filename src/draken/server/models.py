"""Pydantic request and response models for the dashboard API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_in_minutes: int
    username: str


class AuthStatus(BaseModel):
    enabled: bool


class CreateProjectRequest(BaseModel):
    path: str
    name: Optional[str] = None


class PromptRequest(BaseModel):
    prompt: str = ""


class InputRequest(BaseModel):
    input: str


class TaskResponse(BaseModel):
    """Standard wrapper for task mutation responses."""

    task: dict[str, Any]


class MessageResponse(BaseModel):
    message: str
    task: Optional[dict[str, Any]] = None


class SessionThreadsResponse(BaseModel):
    threads: list[dict[str, Any]] = Field(default_factory=list)
