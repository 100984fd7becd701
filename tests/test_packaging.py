"""Test packaging metadata and installation extras."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / "src"))


def _load_pyproject() -> dict[str, Any]:
    pyproject_path = PROJECT_ROOT / "pyproject.toml"
    raw = pyproject_path.read_text(encoding="utf-8")
    if sys.version_info >= (3, 11):
        import tomllib

        return tomllib.loads(raw)

    import tomli

    return tomli.loads(raw)


def _names(requirements: list[str]) -> set[str]:
    return {re.split(r"[<>=!~;\[ ]", item.strip(), maxsplit=1)[0].lower() for item in requirements}


def test_pyproject_declares_test_extras() -> None:
    """Ensure `pyproject.toml` declares pytest and httpx under the test extra."""
    data = _load_pyproject()
    test_deps = data.get("project", {}).get("optional-dependencies", {}).get("test", [])
    assert {"pytest", "httpx"} <= _names(test_deps)


def test_runtime_dependencies_cover_server_stack() -> None:
    deps = _names(_load_pyproject()["project"]["dependencies"])
    assert {"fastapi", "uvicorn", "pydantic", "loguru", "pyyaml", "pyjwt", "sse-starlette", "docker"} <= deps


def test_version_matches_package() -> None:
    from draken import __version__

    project = _load_pyproject()["project"]
    assert project["name"] == "draken"
    assert project["version"] == __version__
    assert project["scripts"]["draken"] == "draken.cli:main"
