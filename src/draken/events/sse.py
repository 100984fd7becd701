from __future__ import annotations

from typing import AsyncIterator

from ..domain.models import Task
from .messages import Message, encode, end_message, log_message
from .subscribers import CLOSE, TaskSubscribers


class LogStreamHub(TaskSubscribers):
    """Pull transport: replays the persisted log, then follows live deltas."""

    name = "log-stream"

    def open_stream(self, task: Task) -> AsyncIterator[dict[str, str]]:
        """Return the server-sent event frames for one client.

        ``task`` must be the freshly loaded row. Live tasks are subscribed here,
        before the caller awaits anything, so no delta published after the row
        was read can be missed or replayed twice.
        """
        queue = None if task.is_terminal else self.subscribe(task.id)

        async def _frames() -> AsyncIterator[dict[str, str]]:
            try:
                if task.logs:
                    yield _frame(log_message(task.logs))
                if queue is None:
                    yield _frame(end_message(task.status, task.exit_code))
                    return
                while True:
                    item = await queue.get()
                    if item is CLOSE:
                        return
                    yield _frame(item)  # type: ignore[arg-type]
            finally:
                if queue is not None:
                    self.unsubscribe(task.id, queue)

        return _frames()


def _frame(message: Message) -> dict[str, str]:
    return {"data": encode(message)}
