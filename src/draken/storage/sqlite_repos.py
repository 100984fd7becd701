from __future__ import annotations

from typing import Optional

from ..domain.models import TERMINAL_STATUSES, Project, Task, TaskStatus, now_iso, predecessors
from .database import Database
from .interfaces import ProjectRepository, TaskRepository


class SqliteProjectRepository(ProjectRepository):
    def __init__(self, db: Database) -> None:
        self._db = db

    def list(self) -> list[Project]:
        rows = self._db.fetch_all("SELECT * FROM projects ORDER BY created_at DESC, id DESC")
        return [Project.from_row(row) for row in rows]

    def get(self, project_id: int) -> Optional[Project]:
        row = self._db.fetch_one("SELECT * FROM projects WHERE id = ?", (project_id,))
        return Project.from_row(row) if row else None

    def get_by_path(self, path: str) -> Optional[Project]:
        row = self._db.fetch_one("SELECT * FROM projects WHERE path = ?", (path,))
        return Project.from_row(row) if row else None

    def create(self, name: str, path: str) -> Project:
        created_at = now_iso()
        cursor = self._db.execute(
            "INSERT INTO projects (name, path, created_at) VALUES (?, ?, ?)",
            (name, path, created_at),
        )
        return Project(id=int(cursor.lastrowid), name=name, path=path, created_at=created_at)


class SqliteTaskRepository(TaskRepository):
    def __init__(self, db: Database) -> None:
        self._db = db

    def create(self, project_id: int, prompt: str, parent_task_id: Optional[int] = None) -> Task:
        created_at = now_iso()
        cursor = self._db.execute(
            "INSERT INTO tasks (project_id, prompt, status, logs, parent_task_id, created_at) "
            "VALUES (?, ?, 'pending', '', ?, ?)",
            (project_id, prompt, parent_task_id, created_at),
        )
        return Task(
            id=int(cursor.lastrowid),
            project_id=project_id,
            prompt=prompt,
            parent_task_id=parent_task_id,
            created_at=created_at,
        )

    def get(self, task_id: int) -> Optional[Task]:
        row = self._db.fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return Task.from_row(row) if row else None

    def list_for_project(self, project_id: int) -> list[Task]:
        rows = self._db.fetch_all(
            "SELECT * FROM tasks WHERE project_id = ? ORDER BY created_at DESC, id DESC",
            (project_id,),
        )
        return [Task.from_row(row) for row in rows]

    def list_unfinished(self) -> list[Task]:
        rows = self._db.fetch_all(
            "SELECT * FROM tasks WHERE status IN ('pending', 'running') ORDER BY id",
        )
        return [Task.from_row(row) for row in rows]

    def _transition(self, task_id: int, status: str, assignments: str, params: tuple) -> bool:
        allowed = predecessors(status)
        if not allowed:
            return False
        marks = ", ".join("?" for _ in allowed)
        cursor = self._db.execute(
            f"UPDATE tasks SET status = ?{assignments} WHERE id = ? AND status IN ({marks})",
            (status, *params, task_id, *allowed),
        )
        return cursor.rowcount > 0

    def update_status(self, task_id: int, status: TaskStatus, container_id: Optional[str] = None) -> bool:
        if status in TERMINAL_STATUSES:
            raise ValueError(f"use mark_completed for terminal status '{status}'")
        if container_id is None:
            return self._transition(task_id, status, "", ())
        return self._transition(task_id, status, ", container_id = ?", (container_id,))

    def mark_completed(self, task_id: int, status: TaskStatus, exit_code: Optional[int] = None) -> bool:
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"'{status}' is not a terminal status")
        return self._transition(
            task_id,
            status,
            ", exit_code = ?, completed_at = ?",
            (exit_code, now_iso()),
        )

    def append_logs(self, task_id: int, text: str) -> None:
        if not text:
            return
        self._db.execute(
            "UPDATE tasks SET logs = COALESCE(logs, '') || ? WHERE id = ?",
            (text, task_id),
        )

    def set_session_id(self, task_id: int, session_id: str) -> bool:
        cursor = self._db.execute(
            "UPDATE tasks SET session_id = ? WHERE id = ? AND session_id IS NULL",
            (session_id, task_id),
        )
        return cursor.rowcount > 0
