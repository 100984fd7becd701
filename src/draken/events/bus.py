from __future__ import annotations

from typing import Optional

from .messages import Message, end_message, error_message, log_message, session_message
from .sse import LogStreamHub
from .ws import TerminalHub


class TaskEventBus:
    """Feeds both live transports from the orchestrator."""

    def __init__(self, logs: Optional[LogStreamHub] = None, terminal: Optional[TerminalHub] = None) -> None:
        self.logs = logs or LogStreamHub()
        self.terminal = terminal or TerminalHub()

    def publish(self, task_id: int, message: Message) -> None:
        self.logs.publish(task_id, message)
        self.terminal.publish(task_id, message)

    def close(self, task_id: int, message: Message) -> None:
        self.logs.close(task_id, message)
        self.terminal.close(task_id, message)

    def log(self, task_id: int, text: str) -> None:
        self.publish(task_id, log_message(text))

    def session(self, task_id: int, session_id: str) -> None:
        self.publish(task_id, session_message(session_id))

    def end(self, task_id: int, status: str, exit_code: Optional[int]) -> None:
        self.close(task_id, end_message(status, exit_code))

    def error(self, task_id: int, message: str) -> None:
        self.close(task_id, error_message(message))
