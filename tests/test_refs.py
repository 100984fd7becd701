from __future__ import annotations

import asyncio
import signal
import subprocess
import sys
from typing import Any, Optional

import pytest
import requests
from docker.errors import APIError, NotFound

from draken.runner.refs import ContainerRunRef, ProcessRunRef, parse_run_ref


class _FakeContainer:
    def __init__(self, status: str = "running", stop_error: Optional[Exception] = None) -> None:
        self.status = status
        self.stop_error = stop_error
        self.stop_calls: list[int] = []

    def stop(self, timeout: int = 10) -> None:
        self.stop_calls.append(timeout)
        if self.stop_error is not None:
            raise self.stop_error
        self.status = "exited"


class _FakeContainers:
    def __init__(self, containers: dict[str, _FakeContainer]) -> None:
        self._containers = containers

    def get(self, name: str) -> _FakeContainer:
        if name not in self._containers:
            raise NotFound(f"No such container: {name}")
        return self._containers[name]


class _FakeDockerClient:
    def __init__(self, **containers: _FakeContainer) -> None:
        self.containers = _FakeContainers(dict(containers))


def _api_error(status_code: int) -> APIError:
    response = requests.Response()
    response.status_code = status_code
    return APIError("docker said no", response=response)


def test_parse_run_ref_picks_backend() -> None:
    process_ref = parse_run_ref("pid-4321")
    container_ref = parse_run_ref("draken-task-7-abcd1234")

    assert isinstance(process_ref, ProcessRunRef)
    assert process_ref.pid == 4321
    assert str(process_ref) == "pid-4321"
    assert isinstance(container_ref, ContainerRunRef)
    assert container_ref.value == "draken-task-7-abcd1234"
    with pytest.raises(ValueError):
        parse_run_ref("   ")


def test_process_ref_stop_and_status_for_live_process() -> None:
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    try:
        ref = ProcessRunRef(proc.pid)
        assert asyncio.run(ref.status()) == "running"
        asyncio.run(ref.stop(1.0))
        assert proc.wait(timeout=10) == -signal.SIGTERM
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


def test_process_ref_stop_is_idempotent_for_exited_process() -> None:
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    ref = ProcessRunRef(proc.pid)

    asyncio.run(ref.stop(1.0))
    asyncio.run(ref.stop(1.0))
    assert asyncio.run(ref.status()) == "removed"


def test_container_ref_stop_uses_grace_period() -> None:
    container = _FakeContainer()
    client = _FakeDockerClient(**{"draken-task-1-x": container})
    ref = ContainerRunRef("draken-task-1-x", client=client)

    assert asyncio.run(ref.status()) == "running"
    asyncio.run(ref.stop(5.0))

    assert container.stop_calls == [5]
    assert asyncio.run(ref.status()) == "removed"


def test_container_ref_already_gone_is_not_an_error() -> None:
    ref = ContainerRunRef("draken-task-2-x", client=_FakeDockerClient())

    asyncio.run(ref.stop(5.0))
    assert asyncio.run(ref.status()) == "removed"


def test_container_ref_not_modified_is_not_an_error() -> None:
    stopped = _FakeContainer(status="exited", stop_error=_api_error(304))
    ref = ContainerRunRef("c", client=_FakeDockerClient(c=stopped))

    asyncio.run(ref.stop(5.0))


def test_container_ref_other_api_errors_propagate() -> None:
    broken = _FakeContainer(stop_error=_api_error(500))
    ref = ContainerRunRef("c", client=_FakeDockerClient(c=broken))

    with pytest.raises(APIError):
        asyncio.run(ref.stop(5.0))


def test_container_status_never_raises() -> None:
    class _Exploding:
        @property
        def containers(self) -> Any:
            raise APIError("daemon unreachable")

    ref = ContainerRunRef("c", client=_Exploding())
    assert asyncio.run(ref.status()) == "removed"
