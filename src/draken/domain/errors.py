"""Error taxonomy shared by the runner, the orchestrator and the HTTP layer.

Every error carries the HTTP status the API layer should answer with, so routes
can translate them without a lookup table.
"""

from __future__ import annotations


class DrakenError(Exception):
    status_code = 500


class ConfigError(DrakenError):
    """Configuration file exists but cannot be used."""


class SetupIncomplete(DrakenError):
    """The project is missing something the user has to provide first."""

    status_code = 400


class AuthNotConfigured(DrakenError):
    """No agent credential (API key or credential directory) is available."""


class SigningSecretMissing(DrakenError):
    """Login is enabled but no token signing secret is configured."""


class NoSessionToResume(DrakenError):
    status_code = 400


class NotRunning(DrakenError):
    status_code = 409


class NoProcess(DrakenError):
    status_code = 409


class TaskNotFound(DrakenError):
    status_code = 404

    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class ProjectNotFound(DrakenError):
    status_code = 404

    def __init__(self, project_id: int) -> None:
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class BuildFailed(DrakenError):
    """Image build failed; ``output`` keeps the build tool's diagnostics verbatim."""

    def __init__(self, image: str, output: str) -> None:
        super().__init__(f"Docker build failed for {image}: {output}")
        self.image = image
        self.output = output
