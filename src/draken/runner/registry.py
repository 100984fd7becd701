from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .events import RunEventStream
from .refs import RunRef


@dataclass
class RunHandle:
    """Live run owned by the registry from spawn until the process exits."""

    task_id: int
    run_id: str
    ref: Optional[RunRef]
    events: RunEventStream
    process: Optional[asyncio.subprocess.Process] = None
    supervisor: Optional[asyncio.Task] = field(default=None, repr=False)

    def write_input(self, text: str) -> bool:
        proc = self.process
        if proc is None or proc.returncode is not None or proc.stdin is None:
            return False
        if proc.stdin.is_closing():
            return False
        proc.stdin.write((text + "\n").encode("utf-8"))
        return True


class RunRegistry:
    """Task id -> live run handle.

    Only the runner inserts (at spawn) and removes (at exit). All access happens
    on the event loop thread.
    """

    def __init__(self) -> None:
        self._runs: dict[int, RunHandle] = {}

    def insert(self, handle: RunHandle) -> None:
        self._runs[handle.task_id] = handle

    def remove(self, task_id: int, handle: Optional[RunHandle] = None) -> None:
        current = self._runs.get(task_id)
        if current is None:
            return
        if handle is not None and current is not handle:
            return
        del self._runs[task_id]

    def get(self, task_id: int) -> Optional[RunHandle]:
        return self._runs.get(task_id)

    def is_running(self, task_id: int) -> bool:
        return task_id in self._runs

    def handles(self) -> list[RunHandle]:
        return list(self._runs.values())

    def __len__(self) -> int:
        return len(self._runs)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._runs))
