from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from ..config import Settings
from ..constants import (
    INTERRUPTED_BY_RESTART_MARKER,
    INTERRUPTED_BY_SHUTDOWN_MARKER,
    STOPPED_BY_USER_MARKER,
)
from ..domain.errors import (
    NoProcess,
    NoSessionToResume,
    NotRunning,
    ProjectNotFound,
    SetupIncomplete,
    TaskNotFound,
)
from ..domain.models import Project, Task
from ..events.bus import TaskEventBus
from ..logging_utils import preview
from ..runner.events import EndEvent, ErrorEvent, LogEvent, RunEvent, SessionEvent
from ..runner.images import template_exists
from ..runner.isolated import IsolatedRunner
from ..storage.container import Container


class TaskOrchestrator:
    """Owns the task lifecycle: pending -> running -> completed | failed.

    Runs are started in the background on the running event loop. At most
    ``runner.concurrency`` runs are live at once; a task waiting for a slot
    stays ``pending``. Every runner event is persisted before it is fanned out
    to the live transports, so a reader that loads the row and then subscribes
    sees each delta exactly once.
    """

    def __init__(
        self,
        container: Container,
        runner: IsolatedRunner,
        bus: TaskEventBus,
        settings: Settings,
    ) -> None:
        self.container = container
        self.runner = runner
        self.bus = bus
        self.settings = settings
        self._slots = asyncio.Semaphore(settings.runner.concurrency)
        self._inflight: dict[int, asyncio.Task] = {}

    # -- lookups -----------------------------------------------------------

    def get_task(self, task_id: int) -> Task:
        task = self.container.tasks.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def get_project(self, project_id: int) -> Project:
        project = self.container.projects.get(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    @property
    def active_task_ids(self) -> list[int]:
        return sorted(self._inflight)

    # -- submission --------------------------------------------------------

    def create_task(self, project_id: int, prompt: str) -> Task:
        """Create a pending task and schedule its run.

        Raises:
            SetupIncomplete: Empty prompt, or the project has no isolation template.
            ProjectNotFound: Unknown project id.
        """
        text = (prompt or "").strip()
        if not text:
            raise SetupIncomplete("Prompt is required")
        project = self.get_project(project_id)
        if not template_exists(project.path):
            raise SetupIncomplete("Dockerfile not found. Generate it first.")
        task = self.container.tasks.create(project.id, text)
        logger.info("Task {} created for project {}: {}", task.id, project.id, preview(text))
        self._schedule(task, project, None)
        return task

    def create_followup(self, parent_task_id: int, prompt: str) -> Task:
        """Create a task that resumes the parent's agent session.

        Raises:
            NoSessionToResume: The parent never reported a session id.
        """
        text = (prompt or "").strip()
        if not text:
            raise SetupIncomplete("Prompt is required")
        parent = self.get_task(parent_task_id)
        if not parent.session_id:
            raise NoSessionToResume(f"Task {parent.id} has no session to resume")
        project = self.get_project(parent.project_id)
        if not template_exists(project.path):
            raise SetupIncomplete("Dockerfile not found. Generate it first.")
        task = self.container.tasks.create(project.id, text, parent_task_id=parent.id)
        logger.info("Task {} follows up task {} (session {})", task.id, parent.id, parent.session_id)
        self._schedule(task, project, parent.session_id)
        return task

    def _schedule(self, task: Task, project: Project, resume_session_id: Optional[str]) -> None:
        loop = asyncio.get_running_loop()
        job = loop.create_task(self._execute(task.id, project, task.prompt, resume_session_id))
        self._inflight[task.id] = job
        job.add_done_callback(lambda _: self._inflight.pop(task.id, None))

    # -- run lifecycle -----------------------------------------------------

    async def _execute(
        self,
        task_id: int,
        project: Project,
        prompt: str,
        resume_session_id: Optional[str],
    ) -> None:
        async with self._slots:
            tasks = self.container.tasks
            if not tasks.update_status(task_id, "running"):
                logger.info("Task {} no longer pending; not starting", task_id)
                return
            try:
                handle = await self.runner.start_run(
                    project.path,
                    project.id,
                    prompt,
                    task_id,
                    resume_session_id=resume_session_id,
                )
            except Exception as exc:
                logger.error("Task {} could not start: {}", task_id, exc)
                self._fail(task_id, str(exc) or type(exc).__name__)
                return

            try:
                if handle.ref is not None:
                    tasks.update_status(task_id, "running", container_id=handle.ref.value)
                async for event in handle.events:
                    self._dispatch(task_id, event)
            except Exception as exc:
                logger.exception("Task {} run supervision failed", task_id)
                self._fail(task_id, str(exc) or type(exc).__name__)

    def _dispatch(self, task_id: int, event: RunEvent) -> None:
        tasks = self.container.tasks
        if isinstance(event, LogEvent):
            tasks.append_logs(task_id, event.text)
            self.bus.log(task_id, event.text)
        elif isinstance(event, SessionEvent):
            if tasks.set_session_id(task_id, event.session_id):
                logger.info("Task {} captured session {}", task_id, event.session_id)
            self.bus.session(task_id, event.session_id)
        elif isinstance(event, EndEvent):
            status = "completed" if event.exit_code == 0 else "failed"
            if tasks.mark_completed(task_id, status, event.exit_code):
                logger.info("Task {} {} (exit code {})", task_id, status, event.exit_code)
                self.bus.end(task_id, status, event.exit_code)
        elif isinstance(event, ErrorEvent):
            self._fail(task_id, event.message)

    def _fail(self, task_id: int, message: str) -> None:
        if self.container.tasks.mark_completed(task_id, "failed"):
            self.container.tasks.append_logs(task_id, f"\nError: {message}\n")
            logger.error("Task {} failed: {}", task_id, message)
        self.bus.error(task_id, message)

    # -- control -----------------------------------------------------------

    async def stop_task(self, task_id: int) -> Task:
        """Stop a running task; it always ends ``failed``.

        Raises:
            NotRunning: The task is not running or has no run reference yet.
        """
        task = self.get_task(task_id)
        if task.status != "running" or not task.container_id:
            raise NotRunning(f"Task {task_id} is not running")
        tasks = self.container.tasks
        if tasks.mark_completed(task_id, "failed"):
            tasks.append_logs(task_id, STOPPED_BY_USER_MARKER)
            self.bus.log(task_id, STOPPED_BY_USER_MARKER)
            self.bus.end(task_id, "failed", None)
            logger.info("Task {} stopped by user", task_id)
        try:
            await self.runner.stop_run(task.container_id)
        except Exception as exc:
            logger.warning("Stopping run {} for task {} failed: {}", task.container_id, task_id, exc)
        return self.get_task(task_id)

    def send_input(self, task_id: int, text: str) -> None:
        """Forward one line of input to the live run and echo it to the log.

        Raises:
            NotRunning: The task is not in ``running`` status.
            NoProcess: No live process is registered for the task.
        """
        task = self.get_task(task_id)
        if task.status != "running":
            raise NotRunning(f"Task {task_id} is not running")
        if not self.runner.registry.is_running(task_id):
            raise NoProcess(f"Task {task_id} process not found")
        if not self.runner.send_input(task_id, text):
            raise NoProcess(f"Task {task_id} did not accept input")
        echo = f"\n> {text}\n"
        self.container.tasks.append_logs(task_id, echo)
        self.bus.log(task_id, echo)

    # -- process lifecycle -------------------------------------------------

    def recover_interrupted_tasks(self) -> list[int]:
        """Fail tasks a previous server process left pending or running."""
        recovered: list[int] = []
        for task in self.container.tasks.list_unfinished():
            if task.id in self._inflight:
                continue
            if self.container.tasks.mark_completed(task.id, "failed"):
                self.container.tasks.append_logs(task.id, INTERRUPTED_BY_RESTART_MARKER)
                recovered.append(task.id)
        if recovered:
            logger.info("Marked {} interrupted task(s) failed: {}", len(recovered), recovered)
        return recovered

    async def shutdown(self) -> None:
        """Stop every live run; their tasks end ``failed``."""
        jobs = list(self._inflight.items())
        for task_id, _ in jobs:
            if self.container.tasks.mark_completed(task_id, "failed"):
                self.container.tasks.append_logs(task_id, INTERRUPTED_BY_SHUTDOWN_MARKER)
                self.bus.log(task_id, INTERRUPTED_BY_SHUTDOWN_MARKER)
                self.bus.end(task_id, "failed", None)
        if jobs:
            logger.info("Shutting down {} active run(s)", len(jobs))
        await self.runner.stop_all()
        for _, job in jobs:
            job.cancel()
        await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)
