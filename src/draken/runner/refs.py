"""Run references: one interface over process-local and container-native runs.

The stored reference string selects the implementation: ``pid-<pid>`` is a
launcher process on this host, anything else is a docker container name or id.
"""

from __future__ import annotations

import asyncio
import os
import signal
from abc import ABC, abstractmethod
from typing import Any, Literal, Optional

import docker
from docker.errors import APIError, DockerException, NotFound
from loguru import logger

from ..constants import PROCESS_REF_PREFIX

RunStatus = Literal["running", "removed"]


class RunRef(ABC):
    @property
    @abstractmethod
    def value(self) -> str:
        """String persisted as the task's container id."""

    @abstractmethod
    async def stop(self, grace_seconds: float) -> None:
        """Ask the run to terminate; a target that is already gone is not an error."""

    @abstractmethod
    async def status(self) -> RunStatus:
        """Return ``running`` or ``removed``; never raises."""

    def __str__(self) -> str:
        return self.value


class ProcessRunRef(RunRef):
    def __init__(self, pid: int) -> None:
        self.pid = pid

    @property
    def value(self) -> str:
        return f"{PROCESS_REF_PREFIX}{self.pid}"

    def signal(self, sig: int) -> bool:
        try:
            os.kill(self.pid, sig)
        except ProcessLookupError:
            return False
        return True

    async def stop(self, grace_seconds: float) -> None:
        if self.signal(signal.SIGTERM):
            logger.info("Sent SIGTERM to {}", self.value)
        else:
            logger.debug("{} already exited", self.value)

    async def status(self) -> RunStatus:
        try:
            os.kill(self.pid, 0)
        except PermissionError:
            return "running"
        except OSError:
            return "removed"
        return "running"


class ContainerRunRef(RunRef):
    def __init__(self, container: str, client: Any = None) -> None:
        self.container = container
        self._client = client

    @property
    def value(self) -> str:
        return self.container

    def _docker(self) -> Any:
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    def _stop_sync(self, grace_seconds: float) -> None:
        try:
            self._docker().containers.get(self.container).stop(timeout=int(round(grace_seconds)))
        except NotFound:
            logger.debug("Container {} already removed", self.container)
        except APIError as exc:
            if exc.status_code == 304:
                logger.debug("Container {} already stopped", self.container)
                return
            raise

    async def stop(self, grace_seconds: float) -> None:
        await asyncio.to_thread(self._stop_sync, grace_seconds)
        logger.info("Stopped container {}", self.container)

    def _status_sync(self) -> RunStatus:
        try:
            container = self._docker().containers.get(self.container)
        except (DockerException, OSError) as exc:
            logger.debug("Container {} not inspectable: {}", self.container, exc)
            return "removed"
        return "running" if getattr(container, "status", None) == "running" else "removed"

    async def status(self) -> RunStatus:
        return await asyncio.to_thread(self._status_sync)


def parse_run_ref(value: str, client: Optional[Any] = None) -> RunRef:
    """Rebuild a run reference from its persisted string."""
    value = value.strip()
    if value.startswith(PROCESS_REF_PREFIX):
        suffix = value[len(PROCESS_REF_PREFIX):]
        if suffix.isdigit():
            return ProcessRunRef(int(suffix))
    if not value:
        raise ValueError("empty run reference")
    return ContainerRunRef(value, client=client)
