from __future__ import annotations

from typing import Any, Iterable

from ..domain.models import Task


def _root_id(task: Task, by_id: dict[int, Task]) -> int:
    seen: set[int] = set()
    current = task
    while current.parent_task_id is not None and current.parent_task_id in by_id:
        if current.id in seen:
            break
        seen.add(current.id)
        current = by_id[current.parent_task_id]
    return current.id


def group_tasks_by_session(tasks: Iterable[Task]) -> list[dict[str, Any]]:
    """Group tasks into session threads by walking ``parent_task_id`` to the root.

    A follow-up whose parent is not in ``tasks`` starts its own thread. Tasks
    inside a thread are oldest first; threads are ordered by their newest task,
    newest first.
    """
    items = list(tasks)
    by_id = {task.id: task for task in items}
    groups: dict[int, list[Task]] = {}
    for task in items:
        groups.setdefault(_root_id(task, by_id), []).append(task)

    threads: list[dict[str, Any]] = []
    for root_id, members in groups.items():
        members.sort(key=lambda t: (t.created_at, t.id))
        latest = members[-1]
        root = by_id[root_id]
        threads.append(
            {
                "root_task_id": root_id,
                "orphaned": root.parent_task_id is not None,
                "session_id": latest.session_id or root.session_id,
                "latest_task_id": latest.id,
                "latest_status": latest.status,
                "tasks": [task.to_dict() for task in members],
            }
        )
    threads.sort(key=lambda g: (g["tasks"][-1]["created_at"], g["latest_task_id"]), reverse=True)
    return threads
