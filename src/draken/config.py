"""Load dashboard settings from defaults, `<data_dir>/config.yaml` and the environment."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import yaml

from .constants import (
    AGENT_CREDENTIALS_FILE,
    API_KEY_ENV,
    CONFIG_FILE,
    DATA_DIR_NAME,
    DEFAULT_CONCURRENCY,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_STOP_GRACE_SECONDS,
    DEFAULT_TOKEN_EXPIRE_MINUTES,
    IMAGE_PREFIX,
)
from .domain.errors import ConfigError

VALID_BACKENDS = {"process", "container"}


@dataclass
class ServerSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class AuthSettings:
    username: Optional[str] = None
    password: Optional[str] = None
    jwt_secret: Optional[str] = None
    token_expire_minutes: int = DEFAULT_TOKEN_EXPIRE_MINUTES
    disabled: bool = False

    @property
    def enabled(self) -> bool:
        return not self.disabled and bool(self.username) and bool(self.password)

    @property
    def has_secret(self) -> bool:
        return bool(self.jwt_secret)


@dataclass
class RunnerSettings:
    docker_command: list[str] = field(default_factory=lambda: ["docker"])
    backend: str = "process"
    concurrency: int = DEFAULT_CONCURRENCY
    stop_grace_seconds: float = DEFAULT_STOP_GRACE_SECONDS
    image_prefix: str = IMAGE_PREFIX


@dataclass
class AgentSettings:
    api_key: Optional[str] = None
    config_dir: Path = field(default_factory=lambda: Path.home() / ".claude")

    @property
    def credentials_file(self) -> Path:
        return self.config_dir / AGENT_CREDENTIALS_FILE


@dataclass
class Settings:
    data_dir: Path = field(default_factory=lambda: Path.home() / DATA_DIR_NAME)
    log_level: str = "INFO"
    server: ServerSettings = field(default_factory=ServerSettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    runner: RunnerSettings = field(default_factory=RunnerSettings)
    agent: AgentSettings = field(default_factory=AgentSettings)


def _truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _truthy(value)
    if isinstance(value, int):
        return value != 0
    raise TypeError(f"expected a boolean, got {type(value).__name__}")


def _get_nested(config: Mapping[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def _as_command(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(part) for part in value]
    return shlex.split(str(value))


def load_config_file(path: Path) -> dict[str, Any]:
    """Read the optional YAML config file.

    Args:
        path: Location of `config.yaml`.

    Returns:
        The parsed mapping, or an empty dict when the file does not exist.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return raw


# config path -> (settings section, attribute, coercion)
_FILE_KEYS: dict[tuple[str, ...], tuple[str, str, Callable[[Any], Any]]] = {
    ("log_level",): ("", "log_level", str),
    ("server", "host"): ("server", "host", str),
    ("server", "port"): ("server", "port", int),
    ("auth", "username"): ("auth", "username", str),
    ("auth", "password"): ("auth", "password", str),
    ("auth", "jwt_secret"): ("auth", "jwt_secret", str),
    ("auth", "token_expire_minutes"): ("auth", "token_expire_minutes", int),
    ("auth", "disabled"): ("auth", "disabled", _as_bool),
    ("runner", "docker_command"): ("runner", "docker_command", _as_command),
    ("runner", "backend"): ("runner", "backend", str),
    ("runner", "concurrency"): ("runner", "concurrency", int),
    ("runner", "stop_grace_seconds"): ("runner", "stop_grace_seconds", float),
    ("runner", "image_prefix"): ("runner", "image_prefix", str),
    ("agent", "config_dir"): ("agent", "config_dir", lambda v: Path(str(v)).expanduser()),
}


def _apply_file(settings: Settings, config: Mapping[str, Any]) -> None:
    for keys, (section, attr, coerce) in _FILE_KEYS.items():
        value = _get_nested(config, *keys)
        if value is None:
            continue
        target = getattr(settings, section) if section else settings
        try:
            setattr(target, attr, coerce(value))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {'.'.join(keys)}: {value!r}") from exc


def _apply_env(settings: Settings, env: Mapping[str, str]) -> None:
    if env.get("DRAKEN_LOG_LEVEL"):
        settings.log_level = env["DRAKEN_LOG_LEVEL"]
    if env.get("DRAKEN_HOST"):
        settings.server.host = env["DRAKEN_HOST"]
    if env.get("DRAKEN_PORT"):
        settings.server.port = int(env["DRAKEN_PORT"])

    auth = settings.auth
    if env.get("DRAKEN_USERNAME"):
        auth.username = env["DRAKEN_USERNAME"]
    if env.get("DRAKEN_PASSWORD"):
        auth.password = env["DRAKEN_PASSWORD"]
    if env.get("DRAKEN_JWT_SECRET"):
        auth.jwt_secret = env["DRAKEN_JWT_SECRET"]
    if env.get("DRAKEN_TOKEN_EXPIRE_MINUTES"):
        auth.token_expire_minutes = int(env["DRAKEN_TOKEN_EXPIRE_MINUTES"])
    if "DRAKEN_NO_AUTH" in env:
        auth.disabled = _truthy(env["DRAKEN_NO_AUTH"])

    runner = settings.runner
    if env.get("DRAKEN_DOCKER"):
        runner.docker_command = _as_command(env["DRAKEN_DOCKER"])
    if env.get("DRAKEN_RUNNER_BACKEND"):
        runner.backend = env["DRAKEN_RUNNER_BACKEND"]
    if env.get("DRAKEN_CONCURRENCY"):
        runner.concurrency = int(env["DRAKEN_CONCURRENCY"])

    if env.get(API_KEY_ENV):
        settings.agent.api_key = env[API_KEY_ENV]
    if env.get("CLAUDE_CONFIG_DIR"):
        settings.agent.config_dir = Path(env["CLAUDE_CONFIG_DIR"]).expanduser()


def _validate(settings: Settings) -> None:
    if settings.runner.backend not in VALID_BACKENDS:
        raise ConfigError(
            f"Unsupported runner backend '{settings.runner.backend}' "
            f"(expected one of {sorted(VALID_BACKENDS)})"
        )
    if settings.runner.concurrency < 1:
        raise ConfigError("runner.concurrency must be at least 1")
    if not settings.runner.docker_command:
        raise ConfigError("runner.docker_command must not be empty")


def load_settings(
    data_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build the settings tree for one server process.

    Args:
        data_dir: Explicit data directory; overrides `DRAKEN_DATA_DIR`.
        env: Environment mapping (defaults to `os.environ`).

    Returns:
        Fully resolved settings.
    """
    env = os.environ if env is None else env
    settings = Settings()
    if data_dir is not None:
        settings.data_dir = Path(data_dir).expanduser()
    elif env.get("DRAKEN_DATA_DIR"):
        settings.data_dir = Path(env["DRAKEN_DATA_DIR"]).expanduser()

    _apply_file(settings, load_config_file(settings.data_dir / CONFIG_FILE))
    try:
        _apply_env(settings, env)
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric value in environment: {exc}") from exc
    _validate(settings)
    return settings
