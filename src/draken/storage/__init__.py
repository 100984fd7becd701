from .container import Container
from .database import Database
from .interfaces import ProjectRepository, TaskRepository
from .sqlite_repos import SqliteProjectRepository, SqliteTaskRepository

__all__ = [
    "Container",
    "Database",
    "ProjectRepository",
    "SqliteProjectRepository",
    "SqliteTaskRepository",
    "TaskRepository",
]
