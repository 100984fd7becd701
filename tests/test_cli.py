from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

import draken.cli as cli
from draken import __version__

_AUTH_VARS = (
    "DRAKEN_USERNAME",
    "DRAKEN_PASSWORD",
    "DRAKEN_JWT_SECRET",
    "DRAKEN_NO_AUTH",
    "DRAKEN_DATA_DIR",
    "DRAKEN_PORT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _AUTH_VARS:
        monkeypatch.delenv(name, raising=False)


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_project_add_list_and_task_list(
    tmp_path: Path, project_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    data_dir = str(tmp_path / "state")

    assert cli.main(["project", "add", str(project_dir), "--name", "Demo", "--data-dir", data_dir]) == 0
    added = json.loads(capsys.readouterr().out)
    assert added["name"] == "Demo"
    assert added["dockerfile_exists"] is True

    assert cli.main(["project", "add", str(project_dir), "--data-dir", data_dir]) == 1
    assert "already registered" in capsys.readouterr().err

    assert cli.main(["project", "list", "--data-dir", data_dir]) == 0
    assert [p["id"] for p in json.loads(capsys.readouterr().out)] == [added["id"]]

    assert cli.main(["task", "list", str(added["id"]), "--data-dir", data_dir]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_project_add_rejects_missing_directory(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["project", "add", str(tmp_path / "nowhere"), "--data-dir", str(tmp_path / "state")])

    assert code == 1
    assert "Invalid path" in capsys.readouterr().err


def test_server_refuses_to_start_without_auth_decision(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **k: pytest.fail("server should not start"))

    assert cli.main(["server", "--data-dir", str(tmp_path)]) == 1
    assert "DRAKEN_NO_AUTH" in capsys.readouterr().err


def test_server_starts_with_auth_explicitly_disabled(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setenv("DRAKEN_NO_AUTH", "true")
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

    assert cli.main(["server", "--data-dir", str(tmp_path), "--port", "5055", "--host", "0.0.0.0"]) == 0
    assert calls == [{"host": "0.0.0.0", "port": 5055, "log_level": "info"}]


def test_config_error_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (tmp_path / "config.yaml").write_text("runner: [oops\n", encoding="utf-8")

    assert cli.main(["project", "list", "--data-dir", str(tmp_path)]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_server_refuses_auth_without_signing_secret(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DRAKEN_USERNAME", "admin")
    monkeypatch.setenv("DRAKEN_PASSWORD", "hunter2")
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **k: pytest.fail("server should not start"))

    assert cli.main(["server", "--data-dir", str(tmp_path)]) == 1
    assert "DRAKEN_JWT_SECRET" in capsys.readouterr().err


def test_server_starts_with_full_auth_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[Any] = []
    monkeypatch.setenv("DRAKEN_USERNAME", "admin")
    monkeypatch.setenv("DRAKEN_PASSWORD", "hunter2")
    monkeypatch.setenv("DRAKEN_JWT_SECRET", "a-long-random-signing-secret")
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append(app))

    assert cli.main(["server", "--data-dir", str(tmp_path)]) == 0
    assert len(calls) == 1
    assert calls[0].state.auth.enabled is True
