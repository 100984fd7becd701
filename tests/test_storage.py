from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator

import pytest

from draken.domain.models import can_transition
from draken.storage.container import Container


@pytest.fixture
def container(tmp_path: Path) -> Iterator[Container]:
    store = Container(tmp_path / "data")
    yield store
    store.close()


def test_database_file_lives_in_data_dir(container: Container) -> None:
    assert container.db.path == container.data_dir / "draken.db"
    assert container.db.path.exists()


def test_projects_create_get_and_unique_path(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")

    assert container.projects.get(project.id) == project
    assert container.projects.get_by_path("/srv/demo") == project
    assert [p.id for p in container.projects.list()] == [project.id]
    with pytest.raises(sqlite3.IntegrityError):
        container.projects.create("again", "/srv/demo")


def test_task_defaults(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "list files")

    assert container.tasks.get(task.id) == task
    assert task.status == "pending"
    assert task.logs == ""
    assert task.session_id is None
    assert task.parent_task_id is None
    assert task.completed_at is None


def test_transitions_are_monotonic(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "go")

    assert container.tasks.update_status(task.id, "running")
    assert container.tasks.update_status(task.id, "running", container_id="pid-42")
    assert container.tasks.get(task.id).container_id == "pid-42"
    assert container.tasks.mark_completed(task.id, "completed", exit_code=0)

    assert not container.tasks.mark_completed(task.id, "failed")
    assert not container.tasks.update_status(task.id, "running")
    stored = container.tasks.get(task.id)
    assert stored.status == "completed"
    assert stored.exit_code == 0
    assert stored.completed_at is not None


def test_pending_cannot_complete_successfully(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "go")

    assert not can_transition("pending", "completed")
    assert not container.tasks.mark_completed(task.id, "completed", exit_code=0)
    assert container.tasks.mark_completed(task.id, "failed")


def test_status_helpers_reject_wrong_kind(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "go")
    with pytest.raises(ValueError):
        container.tasks.update_status(task.id, "completed")
    with pytest.raises(ValueError):
        container.tasks.mark_completed(task.id, "running")


def test_append_logs_accumulates(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "go")

    for chunk in ("a", "b\n", "", "c"):
        container.tasks.append_logs(task.id, chunk)

    assert container.tasks.get(task.id).logs == "ab\nc"


def test_session_id_first_capture_wins(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "go")

    assert container.tasks.set_session_id(task.id, "first")
    assert not container.tasks.set_session_id(task.id, "second")
    assert container.tasks.get(task.id).session_id == "first"


def test_list_for_project_newest_first_and_unfinished(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    first = container.tasks.create(project.id, "one")
    second = container.tasks.create(project.id, "two", parent_task_id=first.id)
    container.tasks.mark_completed(first.id, "failed")

    assert [t.id for t in container.tasks.list_for_project(project.id)] == [second.id, first.id]
    assert [t.id for t in container.tasks.list_unfinished()] == [second.id]
    assert container.tasks.get(second.id).parent_task_id == first.id


def test_project_delete_cascades_to_tasks(container: Container) -> None:
    project = container.projects.create("demo", "/srv/demo")
    task = container.tasks.create(project.id, "go")

    container.db.execute("DELETE FROM projects WHERE id = ?", (project.id,))

    assert container.tasks.get(task.id) is None
