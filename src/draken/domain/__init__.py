from .errors import (
    AuthNotConfigured,
    BuildFailed,
    ConfigError,
    DrakenError,
    NoProcess,
    NoSessionToResume,
    NotRunning,
    ProjectNotFound,
    SetupIncomplete,
    TaskNotFound,
)
from .models import TERMINAL_STATUSES, Project, Task, TaskStatus, can_transition, now_iso

__all__ = [
    "Task",
    "Project",
    "TaskStatus",
    "TERMINAL_STATUSES",
    "can_transition",
    "now_iso",
    "DrakenError",
    "SetupIncomplete",
    "AuthNotConfigured",
    "NoSessionToResume",
    "NotRunning",
    "NoProcess",
    "BuildFailed",
    "TaskNotFound",
    "ProjectNotFound",
    "ConfigError",
]
