from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models import Project, Task, TaskStatus


class ProjectRepository(ABC):
    @abstractmethod
    def list(self) -> list[Project]:
        raise NotImplementedError

    @abstractmethod
    def get(self, project_id: int) -> Optional[Project]:
        raise NotImplementedError

    @abstractmethod
    def get_by_path(self, path: str) -> Optional[Project]:
        raise NotImplementedError

    @abstractmethod
    def create(self, name: str, path: str) -> Project:
        raise NotImplementedError


class TaskRepository(ABC):
    @abstractmethod
    def create(self, project_id: int, prompt: str, parent_task_id: Optional[int] = None) -> Task:
        raise NotImplementedError

    @abstractmethod
    def get(self, task_id: int) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    def list_for_project(self, project_id: int) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def list_unfinished(self) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def update_status(self, task_id: int, status: TaskStatus, container_id: Optional[str] = None) -> bool:
        """Move a task to a non-terminal status; returns False if the transition is not allowed."""
        raise NotImplementedError

    @abstractmethod
    def mark_completed(self, task_id: int, status: TaskStatus, exit_code: Optional[int] = None) -> bool:
        """Move a task to a terminal status; returns False if it was already terminal."""
        raise NotImplementedError

    @abstractmethod
    def append_logs(self, task_id: int, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_session_id(self, task_id: int, session_id: str) -> bool:
        """Persist the first captured session id; later calls are no-ops returning False."""
        raise NotImplementedError
