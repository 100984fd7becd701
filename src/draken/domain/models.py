from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional


TaskStatus = Literal["pending", "running", "completed", "failed"]

TASK_STATUSES: tuple[str, ...] = ("pending", "running", "completed", "failed")
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# running -> running re-attaches the run reference without changing status.
_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"running", "failed"}),
    "running": frozenset({"running", "completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def can_transition(current: str, target: str) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())


def predecessors(target: str) -> tuple[str, ...]:
    """Return every status from which ``target`` may be entered."""
    return tuple(status for status, allowed in _TRANSITIONS.items() if target in allowed)


@dataclass
class Project:
    id: int
    name: str
    path: str
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Project":
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            path=str(row["path"]),
            created_at=str(row["created_at"] or now_iso()),
        )


@dataclass
class Task:
    id: int
    project_id: int
    prompt: str
    status: TaskStatus = "pending"
    container_id: Optional[str] = None
    logs: str = ""
    session_id: Optional[str] = None
    parent_task_id: Optional[int] = None
    exit_code: Optional[int] = None
    created_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Task":
        parent = row["parent_task_id"]
        exit_code = row["exit_code"]
        return cls(
            id=int(row["id"]),
            project_id=int(row["project_id"]),
            prompt=str(row["prompt"]),
            status=str(row["status"] or "pending"),  # type: ignore[arg-type]
            container_id=row["container_id"],
            logs=str(row["logs"] or ""),
            session_id=row["session_id"],
            parent_task_id=int(parent) if parent is not None else None,
            exit_code=int(exit_code) if exit_code is not None else None,
            created_at=str(row["created_at"] or now_iso()),
            completed_at=row["completed_at"],
        )
