from __future__ import annotations

from pathlib import Path

from ..constants import DATABASE_FILE
from .database import Database
from .sqlite_repos import SqliteProjectRepository, SqliteTaskRepository


class Container:
    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir.expanduser().resolve()
        self.db = Database(self.data_dir / DATABASE_FILE)
        self.projects = SqliteProjectRepository(self.db)
        self.tasks = SqliteTaskRepository(self.db)

    def close(self) -> None:
        self.db.close()
