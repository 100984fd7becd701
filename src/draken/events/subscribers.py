from __future__ import annotations

import asyncio
from typing import Union

from loguru import logger

from .messages import Message


class _Close:
    """Queue sentinel: the server is closing this subscription."""


CLOSE = _Close()

QueueItem = Union[Message, _Close]


class TaskSubscribers:
    """Per-task sets of subscriber queues.

    Publishing never blocks and never fails: with no subscribers for a task it
    is a no-op. Empty sets are dropped so the map does not grow with every task
    that ever ran.
    """

    name = "subscribers"

    def __init__(self) -> None:
        self._subscribers: dict[int, set[asyncio.Queue[QueueItem]]] = {}

    def subscribe(self, task_id: int) -> asyncio.Queue[QueueItem]:
        queue: asyncio.Queue[QueueItem] = asyncio.Queue()
        self._subscribers.setdefault(task_id, set()).add(queue)
        logger.debug("{}: task {} subscriber added (total={})", self.name, task_id, self.count(task_id))
        return queue

    def unsubscribe(self, task_id: int, queue: asyncio.Queue[QueueItem]) -> None:
        queues = self._subscribers.get(task_id)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[task_id]
        logger.debug("{}: task {} subscriber removed (total={})", self.name, task_id, self.count(task_id))

    def count(self, task_id: int) -> int:
        return len(self._subscribers.get(task_id, ()))

    def task_ids(self) -> list[int]:
        return list(self._subscribers)

    def publish(self, task_id: int, message: Message) -> None:
        for queue in list(self._subscribers.get(task_id, ())):
            queue.put_nowait(message)

    def close(self, task_id: int, message: Message) -> None:
        """Deliver the final message to every subscriber and discard the set."""
        queues = self._subscribers.pop(task_id, set())
        for queue in queues:
            queue.put_nowait(message)
            queue.put_nowait(CLOSE)
