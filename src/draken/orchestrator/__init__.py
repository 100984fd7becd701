from .service import TaskOrchestrator
from .threads import group_tasks_by_session

__all__ = ["TaskOrchestrator", "group_tasks_by_session"]
