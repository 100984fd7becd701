"""Launch one agent run per task inside the project's container image."""

from __future__ import annotations

import asyncio
import codecs
import os
import signal
import uuid
from pathlib import Path
from typing import Any, Callable, Optional, Union

from loguru import logger

from ..config import Settings
from ..constants import CONTAINER_NAME_PREFIX, CONTAINER_WORKSPACE
from ..logging_utils import preview
from .credentials import AgentCredentials, resolve_credentials
from .events import RunEventStream
from .images import ImageManager
from .refs import ContainerRunRef, ProcessRunRef, RunRef, RunStatus, parse_run_ref
from .registry import RunHandle, RunRegistry
from .stream import StreamJsonParser

_READ_CHUNK = 64 * 1024


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass


async def _pump(reader: Optional[asyncio.StreamReader], on_chunk: Callable[[bytes], None]) -> None:
    if reader is None:
        return
    while True:
        chunk = await reader.read(_READ_CHUNK)
        if not chunk:
            return
        on_chunk(chunk)


class IsolatedRunner:
    """Runs the coding agent for a task and exposes its output as run events.

    ``start_run`` builds or reuses the project image, spawns ``docker run`` and
    returns a ``RunHandle`` whose event stream yields log/session events followed
    by exactly one terminal event. The handle is registered in ``registry`` for
    as long as the launcher process is alive.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        registry: Optional[RunRegistry] = None,
        images: Optional[ImageManager] = None,
        docker_client: Any = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or RunRegistry()
        self.images = images or ImageManager(settings.runner.docker_command, settings.runner.image_prefix)
        self._docker_client = docker_client
        self._background: set[asyncio.Task] = set()

    @property
    def backend(self) -> str:
        return self.settings.runner.backend

    def build_command(
        self,
        image: str,
        project_path: Path,
        credentials: AgentCredentials,
        prompt: str,
        resume_session_id: Optional[str] = None,
        container_name: Optional[str] = None,
    ) -> list[str]:
        argv = [*self.settings.runner.docker_command, "run", "--rm"]
        if container_name:
            argv += ["--name", container_name]
        argv += ["-v", f"{project_path}:{CONTAINER_WORKSPACE}"]
        argv += credentials.volume_args()
        argv += credentials.docker_args
        argv += [
            image,
            "-p",
            prompt,
            "--verbose",
            "--output-format",
            "stream-json",
            "--dangerously-skip-permissions",
        ]
        if resume_session_id:
            argv += ["--resume", resume_session_id]
        return argv

    async def start_run(
        self,
        project_path: Union[str, Path],
        project_id: int,
        prompt: str,
        task_id: int,
        resume_session_id: Optional[str] = None,
    ) -> RunHandle:
        """Start a run for ``task_id``.

        Raises:
            AuthNotConfigured: No agent credential is available.
            BuildFailed: The project image had to be built and the build failed.

        Failures after this point, including a launcher that cannot be spawned,
        are reported as an ``ErrorEvent`` on the returned handle's stream.
        """
        path = Path(project_path).expanduser().resolve()
        credentials = resolve_credentials(self.settings.agent, path)
        image = await self.images.ensure_image(path, project_id)

        container_name = None
        if self.backend == "container":
            container_name = f"{CONTAINER_NAME_PREFIX}{task_id}-{uuid.uuid4().hex[:8]}"
        argv = self.build_command(image, path, credentials, prompt, resume_session_id, container_name)
        env = {**os.environ, **credentials.env}

        stream = RunEventStream()
        if resume_session_id:
            logger.info("Task {} resuming session {}", task_id, resume_session_id)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            logger.error("Could not launch run for task {}: {}", task_id, exc)
            stream.fail(exc)
            return RunHandle(task_id=task_id, run_id="", ref=None, events=stream)

        ref: RunRef
        if container_name:
            ref = ContainerRunRef(container_name, client=self._docker_client)
        else:
            ref = ProcessRunRef(proc.pid)
        handle = RunHandle(task_id=task_id, run_id=ref.value, ref=ref, events=stream, process=proc)
        self.registry.insert(handle)
        handle.supervisor = asyncio.create_task(self._supervise(handle, proc))
        logger.info("Task {} started run {} ({})", task_id, ref.value, preview(prompt))
        return handle

    async def _drain(self, events: RunEventStream, proc: asyncio.subprocess.Process) -> int:
        parser = StreamJsonParser()
        stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        def _on_stdout(chunk: bytes) -> None:
            for event in parser.feed(chunk):
                events.emit(event)

        def _on_stderr(chunk: bytes) -> None:
            events.log(stderr_decoder.decode(chunk))

        await asyncio.gather(_pump(proc.stdout, _on_stdout), _pump(proc.stderr, _on_stderr))
        parser.close()
        events.log(stderr_decoder.decode(b"", final=True))
        return await proc.wait()

    async def _supervise(self, handle: RunHandle, proc: asyncio.subprocess.Process) -> None:
        try:
            code = await self._drain(handle.events, proc)
        except asyncio.CancelledError:
            _kill(proc)
            self.registry.remove(handle.task_id, handle)
            handle.events.fail(RuntimeError("Run supervision cancelled"))
            raise
        except Exception as exc:
            logger.exception("Run {} for task {} failed", handle.run_id, handle.task_id)
            _kill(proc)
            self.registry.remove(handle.task_id, handle)
            handle.events.fail(exc)
            return
        self.registry.remove(handle.task_id, handle)
        logger.info("Run {} for task {} exited with {}", handle.run_id, handle.task_id, code)
        handle.events.finish(code)

    def send_input(self, task_id: int, text: str) -> bool:
        """Write ``text`` plus a newline to the live run's stdin; best effort."""
        handle = self.registry.get(task_id)
        if handle is None:
            return False
        try:
            return handle.write_input(text)
        except (ConnectionError, RuntimeError) as exc:
            logger.warning("Input for task {} not delivered: {}", task_id, exc)
            return False

    async def stop_run(self, ref: Union[RunRef, str]) -> None:
        """Terminate a run; stopping one that already ended is a no-op."""
        if isinstance(ref, str):
            ref = parse_run_ref(ref, client=self._docker_client)
        grace = self.settings.runner.stop_grace_seconds
        await ref.stop(grace)
        if isinstance(ref, ProcessRunRef):
            task = asyncio.create_task(self._escalate(ref, grace))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _escalate(self, ref: ProcessRunRef, grace: float) -> None:
        await asyncio.sleep(grace)
        for handle in self.registry.handles():
            if handle.process is not None and handle.process.pid == ref.pid:
                if handle.process.returncode is None:
                    logger.warning("{} ignored SIGTERM; killing", ref.value)
                    _kill(handle.process)
                return
        if await ref.status() == "running":
            logger.warning("{} ignored SIGTERM; killing", ref.value)
            ref.signal(signal.SIGKILL)

    async def get_run_status(self, ref: Union[RunRef, str]) -> RunStatus:
        try:
            if isinstance(ref, str):
                ref = parse_run_ref(ref, client=self._docker_client)
            return await ref.status()
        except Exception as exc:
            logger.debug("Status lookup for {} failed: {}", ref, exc)
            return "removed"

    async def stop_all(self) -> None:
        """Stop every live run and wait for their supervisors to finish."""
        handles = self.registry.handles()
        for handle in handles:
            if handle.ref is None:
                continue
            try:
                await self.stop_run(handle.ref)
            except Exception as exc:
                logger.warning("Could not stop {}: {}", handle.run_id, exc)
        supervisors = [h.supervisor for h in handles if h.supervisor is not None]
        if supervisors:
            timeout = self.settings.runner.stop_grace_seconds + 1.0
            _, pending = await asyncio.wait(supervisors, timeout=timeout)
            for task in pending:
                task.cancel()
        for task in list(self._background):
            task.cancel()
