from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config import AgentSettings
from ..constants import API_KEY_ENV, CONTAINER_AGENT_HOME, SESSIONS_DIR_NAME
from ..domain.errors import AuthNotConfigured


@dataclass
class AgentCredentials:
    """How the agent inside the run authenticates.

    ``docker_args`` only ever names the API key variable; its value is carried in
    ``env`` for the launcher process.
    """

    mount_source: Path
    docker_args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def volume_args(self) -> list[str]:
        return ["-v", f"{self.mount_source}:{CONTAINER_AGENT_HOME}"]


def resolve_credentials(agent: AgentSettings, project_path: Path, api_key: Optional[str] = None) -> AgentCredentials:
    """Pick the agent credential for a run.

    An API key wins; sessions then live in ``<project>/.draken-sessions`` so
    follow-ups can resume them. Otherwise the user's agent config directory is
    mounted when it holds a credentials file.

    Raises:
        AuthNotConfigured: Neither an API key nor a credentials file is available.
    """
    key = api_key if api_key is not None else agent.api_key
    if key:
        sessions_dir = project_path / SESSIONS_DIR_NAME
        sessions_dir.mkdir(parents=True, exist_ok=True)
        return AgentCredentials(
            mount_source=sessions_dir,
            docker_args=["-e", API_KEY_ENV],
            env={API_KEY_ENV: key},
        )
    if agent.credentials_file.is_file():
        return AgentCredentials(mount_source=agent.config_dir)
    raise AuthNotConfigured(
        f"No agent credentials: set {API_KEY_ENV} or log in so that "
        f"{agent.credentials_file} exists"
    )
