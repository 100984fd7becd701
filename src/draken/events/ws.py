from __future__ import annotations

import asyncio
import json

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

from ..domain.models import Task
from .messages import encode, end_message
from .subscribers import CLOSE, QueueItem, TaskSubscribers


class TerminalHub(TaskSubscribers):
    """Push transport: live deltas only, closed by the server on the terminal event."""

    name = "terminal"

    async def handle_connection(self, websocket: WebSocket, task: Task) -> None:
        """Accept an authorised socket for ``task`` and run it until either side closes."""
        if task.is_terminal:
            await websocket.accept()
            await websocket.send_text(encode(end_message(task.status, task.exit_code)))
            await websocket.close()
            return

        queue = self.subscribe(task.id)
        try:
            await websocket.accept()
            sender = asyncio.create_task(self._send_loop(websocket, queue))
            reader = asyncio.create_task(self._read_loop(websocket, task.id))
            _, pending = await asyncio.wait({sender, reader}, return_when=asyncio.FIRST_COMPLETED)
            for pending_task in pending:
                pending_task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        finally:
            self.unsubscribe(task.id, queue)

    async def _send_loop(self, websocket: WebSocket, queue: asyncio.Queue[QueueItem]) -> None:
        try:
            while True:
                item = await queue.get()
                if item is CLOSE:
                    await websocket.close()
                    return
                await websocket.send_text(encode(item))  # type: ignore[arg-type]
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("terminal: send stopped: {}", exc)

    async def _read_loop(self, websocket: WebSocket, task_id: int) -> None:
        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    logger.debug("terminal: client for task {} disconnected", task_id)
                    return
                raw = frame.get("text")
                if raw is None:
                    logger.debug("terminal: binary frame for task {} ignored", task_id)
                    continue
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if not isinstance(msg, dict):
                    continue
                if msg.get("type") == "resize":
                    logger.debug("terminal: resize for task {}: {}x{}", task_id, msg.get("cols"), msg.get("rows"))
                elif msg.get("type") == "input":
                    logger.debug("terminal: socket input for task {} ignored", task_id)
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("terminal: client for task {} disconnected", task_id)
