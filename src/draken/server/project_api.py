from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ..domain.models import Project
from ..runner.images import template_exists
from ..storage.container import Container
from .auth import AuthService, require_auth
from .models import CreateProjectRequest


def project_payload(project: Project) -> dict[str, Any]:
    payload = project.to_dict()
    payload["dockerfile_exists"] = template_exists(project.path)
    return payload


def create_project_router(container: Container, auth: AuthService) -> APIRouter:
    router = APIRouter(prefix="/api/projects", tags=["projects"], dependencies=[Depends(require_auth(auth))])

    @router.get("")
    async def list_projects() -> list[dict[str, Any]]:
        return [project_payload(project) for project in container.projects.list()]

    @router.post("", status_code=201)
    async def create_project(body: CreateProjectRequest) -> dict[str, Any]:
        raw = body.path.strip()
        if not raw:
            raise HTTPException(status_code=400, detail="Path is required")
        path = Path(raw).expanduser().resolve()
        if not path.is_dir():
            raise HTTPException(status_code=400, detail=f"Directory does not exist: {path}")
        if container.projects.get_by_path(str(path)) is not None:
            raise HTTPException(status_code=409, detail="Project with this path already exists")
        name = (body.name or "").strip() or path.name
        project = container.projects.create(name, str(path))
        logger.info("Project {} registered at {}", project.id, project.path)
        return project_payload(project)

    @router.get("/{project_id}")
    async def get_project(project_id: int) -> dict[str, Any]:
        project = container.projects.get(project_id)
        if project is None:
            raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
        return project_payload(project)

    return router
