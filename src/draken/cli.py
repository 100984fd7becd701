from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

import uvicorn
from loguru import logger

from . import __version__
from .config import Settings, load_settings
from .constants import API_KEY_ENV
from .domain.errors import ConfigError
from .logging_utils import configure_logging
from .runner.images import template_exists
from .server import create_app
from .storage.container import Container


def _settings(args: argparse.Namespace) -> Settings:
    data_dir = Path(args.data_dir) if getattr(args, "data_dir", None) else None
    settings = load_settings(data_dir=data_dir)
    if getattr(args, "log_level", None):
        settings.log_level = args.log_level
    configure_logging(settings.log_level)
    return settings


def _server(args: argparse.Namespace) -> int:
    settings = _settings(args)
    if args.host:
        settings.server.host = args.host
    if args.port:
        settings.server.port = args.port

    if not settings.auth.enabled and not settings.auth.disabled:
        sys.stderr.write(
            "Authentication is not configured. Set DRAKEN_USERNAME and DRAKEN_PASSWORD, "
            "or DRAKEN_NO_AUTH=true to run without authentication.\n"
        )
        return 1
    if settings.auth.enabled and not settings.auth.has_secret:
        sys.stderr.write(
            "DRAKEN_JWT_SECRET is not set. Set it to a long random value so login tokens "
            "cannot be forged, or DRAKEN_NO_AUTH=true to run without authentication.\n"
        )
        return 1
    if settings.auth.disabled:
        logger.warning("Authentication disabled; the dashboard is open to anyone who can reach it")
    if not settings.agent.api_key and not settings.agent.credentials_file.is_file():
        logger.warning(
            "No agent credentials found: set {} or log in so {} exists",
            API_KEY_ENV,
            settings.agent.credentials_file,
        )

    app = create_app(settings)
    logger.info("Draken dashboard on http://{}:{}", settings.server.host, settings.server.port)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_level=settings.log_level.lower())
    return 0


def _project_add(args: argparse.Namespace) -> int:
    container = Container(_settings(args).data_dir)
    try:
        path = Path(args.path).expanduser().resolve()
        if not path.is_dir():
            sys.stderr.write(f"Invalid path: {path}\n")
            return 1
        if container.projects.get_by_path(str(path)) is not None:
            sys.stderr.write(f"Project already registered: {path}\n")
            return 1
        project = container.projects.create(args.name or path.name, str(path))
        payload = project.to_dict()
        payload["dockerfile_exists"] = template_exists(project.path)
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        return 0
    finally:
        container.close()


def _project_list(args: argparse.Namespace) -> int:
    container = Container(_settings(args).data_dir)
    try:
        payload = [project.to_dict() for project in container.projects.list()]
    finally:
        container.close()
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    return 0


def _task_list(args: argparse.Namespace) -> int:
    container = Container(_settings(args).data_dir)
    try:
        tasks = container.tasks.list_for_project(args.project_id)
    finally:
        container.close()
    payload = [
        {key: value for key, value in task.to_dict().items() if key != "logs"}
        for task in tasks
    ]
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="draken", description="Draken coding-agent task dashboard")
    parser.add_argument("--version", action="version", version=f"draken {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data-dir", default=None, help="State directory (default: ~/.draken)")
    common.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server = subparsers.add_parser("server", parents=[common], help="Start the dashboard server")
    server.add_argument("--host", default=None)
    server.add_argument("--port", default=None, type=int)
    server.set_defaults(func=_server)

    project = subparsers.add_parser("project", help="Manage registered projects")
    project_sub = project.add_subparsers(dest="project_cmd", required=True)
    padd = project_sub.add_parser("add", parents=[common], help="Register a project directory")
    padd.add_argument("path")
    padd.add_argument("--name", default=None)
    padd.set_defaults(func=_project_add)
    plist = project_sub.add_parser("list", parents=[common], help="List registered projects")
    plist.set_defaults(func=_project_list)

    task = subparsers.add_parser("task", help="Inspect tasks")
    task_sub = task.add_subparsers(dest="task_cmd", required=True)
    tlist = task_sub.add_parser("list", parents=[common], help="List tasks for a project")
    tlist.add_argument("project_id", type=int)
    tlist.set_defaults(func=_task_list)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except ConfigError as exc:
        sys.stderr.write(f"Configuration error: {exc}\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
