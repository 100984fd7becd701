"""Task endpoints: submission, follow-ups, control and both live transports.

Mounted under ``/api/tasks`` (plus ``/ws/terminal``) by ``create_app``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket
from fastapi.responses import PlainTextResponse
from loguru import logger
from sse_starlette.sse import EventSourceResponse

from ..domain.errors import DrakenError
from ..domain.models import Task
from ..orchestrator.service import TaskOrchestrator
from ..orchestrator.threads import group_tasks_by_session
from .auth import AuthService, require_auth, require_auth_or_query
from .models import InputRequest, MessageResponse, PromptRequest, SessionThreadsResponse, TaskResponse


def http_error(exc: DrakenError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def create_task_router(orchestrator: TaskOrchestrator, auth: AuthService) -> APIRouter:
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])
    protected = [Depends(require_auth(auth))]

    def _get(task_id: int) -> Task:
        try:
            return orchestrator.get_task(task_id)
        except DrakenError as exc:
            raise http_error(exc) from exc

    @router.get("/project/{project_id}", dependencies=protected)
    async def list_tasks(project_id: int) -> list[dict[str, Any]]:
        try:
            orchestrator.get_project(project_id)
        except DrakenError as exc:
            raise http_error(exc) from exc
        return [task.to_dict() for task in orchestrator.container.tasks.list_for_project(project_id)]

    @router.get("/project/{project_id}/sessions", dependencies=protected)
    async def list_sessions(project_id: int) -> SessionThreadsResponse:
        try:
            orchestrator.get_project(project_id)
        except DrakenError as exc:
            raise http_error(exc) from exc
        tasks = orchestrator.container.tasks.list_for_project(project_id)
        return SessionThreadsResponse(threads=group_tasks_by_session(tasks))

    @router.post("/project/{project_id}", status_code=202, dependencies=protected)
    async def create_task(project_id: int, body: PromptRequest) -> TaskResponse:
        try:
            task = orchestrator.create_task(project_id, body.prompt)
        except DrakenError as exc:
            raise http_error(exc) from exc
        return TaskResponse(task=task.to_dict())

    @router.get("/{task_id}", dependencies=protected)
    async def get_task(task_id: int) -> dict[str, Any]:
        return _get(task_id).to_dict()

    @router.post("/{task_id}/followup", status_code=202, dependencies=protected)
    async def create_followup(task_id: int, body: PromptRequest) -> TaskResponse:
        try:
            task = orchestrator.create_followup(task_id, body.prompt)
        except DrakenError as exc:
            raise http_error(exc) from exc
        return TaskResponse(task=task.to_dict())

    @router.get("/{task_id}/logs", dependencies=[Depends(require_auth_or_query(auth))])
    async def stream_logs(task_id: int) -> EventSourceResponse:
        task = _get(task_id)
        return EventSourceResponse(orchestrator.bus.logs.open_stream(task))

    @router.post("/{task_id}/stop", dependencies=protected)
    async def stop_task(task_id: int) -> MessageResponse:
        try:
            task = await orchestrator.stop_task(task_id)
        except DrakenError as exc:
            raise http_error(exc) from exc
        return MessageResponse(message="Task stopped", task=task.to_dict())

    @router.post("/{task_id}/input", dependencies=protected)
    async def send_input(task_id: int, body: InputRequest) -> MessageResponse:
        try:
            orchestrator.send_input(task_id, body.input)
        except DrakenError as exc:
            raise http_error(exc) from exc
        return MessageResponse(message="Input sent")

    return router


async def _deny(websocket: WebSocket, status_code: int, detail: str) -> None:
    logger.info("terminal: rejected upgrade ({}): {}", status_code, detail)
    if "websocket.http.response" in websocket.scope.get("extensions", {}):
        await websocket.send_denial_response(PlainTextResponse(detail, status_code=status_code))
    else:
        await websocket.close(code=1008, reason=detail)


def _parse_task_id(raw: Optional[str]) -> Optional[int]:
    if not raw or not raw.isdigit():
        return None
    value = int(raw)
    return value if value > 0 else None


def create_terminal_router(orchestrator: TaskOrchestrator, auth: AuthService) -> APIRouter:
    router = APIRouter(tags=["terminal"])

    @router.websocket("/ws/terminal")
    async def terminal(websocket: WebSocket) -> None:
        params = websocket.query_params
        task_id = _parse_task_id(params.get("taskId"))
        if task_id is None:
            await _deny(websocket, 400, "taskId must be a positive integer")
            return
        if auth.enabled and not auth.verify_token(params.get("token")):
            await _deny(websocket, 401, "Unauthorized")
            return
        task = orchestrator.container.tasks.get(task_id)
        if task is None:
            await _deny(websocket, 404, f"Task {task_id} not found")
            return
        await orchestrator.bus.terminal.handle_connection(websocket, task)

    return router
