from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest
from loguru import logger

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from draken.config import Settings, load_settings
from draken.constants import TEMPLATE_FILE_NAME

FAKE_DOCKER = Path(__file__).resolve().parent / "fake_docker.py"


@pytest.fixture(autouse=True)
def _restore_log_sink() -> Iterator[None]:
    yield
    logger.remove()
    logger.add(sys.stderr, level="INFO")


@pytest.fixture
def fake_docker_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    state = tmp_path / "fake-docker"
    state.mkdir()
    monkeypatch.setenv("FAKE_DOCKER_STATE", str(state))
    monkeypatch.delenv("FAKE_DOCKER_BUILD_FAIL", raising=False)
    return state


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    (path / TEMPLATE_FILE_NAME).write_text("FROM scratch\n", encoding="utf-8")
    (path / "README.md").write_text("# demo\n", encoding="utf-8")
    return path


@pytest.fixture
def make_settings(tmp_path: Path, fake_docker_state: Path) -> Callable[..., Settings]:
    def _make(env: Optional[dict[str, str]] = None, **runner_overrides: object) -> Settings:
        base = {"ANTHROPIC_API_KEY": "sk-test-key", "DRAKEN_NO_AUTH": "true"}
        base.update(env or {})
        settings = load_settings(data_dir=tmp_path / "data", env=base)
        settings.agent.config_dir = tmp_path / "claude-home"
        settings.runner.docker_command = [sys.executable, str(FAKE_DOCKER)]
        settings.runner.stop_grace_seconds = 0.5
        for key, value in runner_overrides.items():
            setattr(settings.runner, key, value)
        return settings

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


def poll_until(predicate: Callable[[], bool], timeout: float = 10.0, interval: float = 0.05) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(interval)
    raise AssertionError("condition not met before timeout")


async def apoll_until(predicate: Callable[[], bool], timeout: float = 10.0, interval: float = 0.02) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        await asyncio.sleep(interval)
    raise AssertionError("condition not met before timeout")
