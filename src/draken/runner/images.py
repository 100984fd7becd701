"""Per-project isolation template and image management via the docker CLI."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence, Union

from loguru import logger

from ..constants import TEMPLATE_FILE_NAME
from ..domain.errors import BuildFailed

PathLike = Union[str, Path]


def template_path(project_path: PathLike) -> Path:
    return Path(project_path) / TEMPLATE_FILE_NAME


def template_exists(project_path: PathLike) -> bool:
    return template_path(project_path).is_file()


async def _run_docker(argv: Sequence[str], cwd: PathLike | None = None) -> tuple[int, str]:
    proc = await asyncio.create_subprocess_exec(
        *argv,
        cwd=str(cwd) if cwd is not None else None,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    output = stderr.decode("utf-8", errors="replace").strip()
    if not output:
        output = stdout.decode("utf-8", errors="replace").strip()
    return int(proc.returncode or 0), output


class ImageManager:
    """Builds and reuses one container image per project.

    Builds for the same project are serialised so concurrent submissions share
    a single build.
    """

    def __init__(self, docker_command: Sequence[str], image_prefix: str) -> None:
        self.docker_command = list(docker_command)
        self.image_prefix = image_prefix
        self._locks: dict[int, asyncio.Lock] = {}

    def image_name(self, project_id: int) -> str:
        return f"{self.image_prefix}{project_id}"

    async def image_exists(self, project_id: int) -> bool:
        try:
            code, _ = await _run_docker([*self.docker_command, "image", "inspect", self.image_name(project_id)])
        except OSError as exc:
            logger.warning("Could not inspect image {}: {}", self.image_name(project_id), exc)
            return False
        return code == 0

    async def build_image(self, project_path: PathLike, project_id: int) -> str:
        """Build the project image from its template.

        Raises:
            BuildFailed: The build exited nonzero or the docker CLI could not be run.
        """
        image = self.image_name(project_id)
        argv = [*self.docker_command, "build", "-t", image, "-f", TEMPLATE_FILE_NAME, "."]
        logger.info("Building image {} from {}", image, template_path(project_path))
        try:
            code, output = await _run_docker(argv, cwd=project_path)
        except OSError as exc:
            raise BuildFailed(image, str(exc)) from exc
        if code != 0:
            logger.error("Image build for {} exited with {}", image, code)
            raise BuildFailed(image, output or "Unknown build error")
        logger.info("Built image {}", image)
        return image

    async def ensure_image(self, project_path: PathLike, project_id: int) -> str:
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        async with lock:
            if await self.image_exists(project_id):
                return self.image_name(project_id)
            return await self.build_image(project_path, project_id)
