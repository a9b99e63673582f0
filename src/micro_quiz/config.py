"""Configuration for the micro-quiz CLI.

Settings live in ``microquiz.toml``. The file is optional: when the default
location has no file the built-in defaults apply. Unknown keys and
ill-typed values raise :class:`ConfigError` rather than being ignored.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .core.config import (
    TomlConfigError,
    load_toml,
    merge_defaults,
    write_toml_template,
)
from .core.workspace import WorkspaceLayout, ensure_workspace

__all__ = [
    "CONFIG_PATH_ENV",
    "CONFIG_FILENAME",
    "ConfigError",
    "PathsConfig",
    "SessionConfig",
    "LoggingConfig",
    "QuizConfig",
    "default_tree",
    "config_template",
    "resolve_config_path",
    "load_config",
    "write_template",
]

CONFIG_PATH_ENV = "MICRO_QUIZ_CONFIG"
CONFIG_FILENAME = "microquiz.toml"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class PathsConfig:
    data_home: Optional[Path]


@dataclass(frozen=True)
class SessionConfig:
    show_explanations: bool
    recent_limit: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizConfig:
    paths: PathsConfig
    session: SessionConfig
    logging: LoggingConfig
    source: Optional[Path] = None

    def workspace(self, *, create: bool = True) -> WorkspaceLayout:
        return ensure_workspace(path=self.paths.data_home, create=create)


_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "data_home": "",
    },
    "session": {
        "show_explanations": True,
        "recent_limit": 5,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


def default_tree() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _build_paths(section: Mapping[str, Any]) -> PathsConfig:
    raw = section.get("data_home")
    if raw in (None, ""):
        return PathsConfig(data_home=None)
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError("'paths.data_home' must be a string path.")
    return PathsConfig(data_home=Path(raw.strip()).expanduser())


def _build_session(section: Mapping[str, Any]) -> SessionConfig:
    return SessionConfig(
        show_explanations=_require_bool(
            section.get("show_explanations"),
            field="session.show_explanations",
        ),
        recent_limit=_require_positive_int(
            section.get("recent_limit"), field="session.recent_limit"
        ),
    )


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = section.get("level")
    if not isinstance(level, str) or level.strip().upper() not in _LOG_LEVELS:
        raise ConfigError(
            "logging.level must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    return LoggingConfig(
        level=level.strip().upper(),
        verbose=_require_bool(section.get("verbose"), field="logging.verbose"),
    )


def _build_config(tree: Mapping[str, Any], source: Optional[Path]) -> QuizConfig:
    return QuizConfig(
        paths=_build_paths(tree["paths"]),
        session=_build_session(tree["session"]),
        logging=_build_logging(tree["logging"]),
        source=source,
    )


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> tuple[Path, bool]:
    """Return the config path and whether the caller asked for it explicitly."""

    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve(), True
    override = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if override:
        return Path(override).expanduser().resolve(), True
    layout = ensure_workspace(env=env_map, create=False)
    return layout.path_for("config") / CONFIG_FILENAME, False


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> QuizConfig:
    """Load, merge, and validate the configuration."""

    path, explicit = resolve_config_path(explicit_path=explicit_path, env=env)
    tree = default_tree()
    if path.exists() or explicit:
        try:
            merge_defaults(tree, load_toml(path))
        except TomlConfigError as exc:
            raise ConfigError(str(exc)) from exc
        return _build_config(tree, path)
    return _build_config(tree, None)


def config_template() -> str:
    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(path: Path, *, overwrite: bool = False) -> Path:
    try:
        return write_toml_template(
            path, template=config_template(), overwrite=overwrite
        )
    except TomlConfigError as exc:
        raise ConfigError(str(exc)) from exc


_CONFIG_TEMPLATE = """
# micro-quiz configuration

[paths]
# Override the workspace root (defaults to MICRO_QUIZ_DATA_HOME or
# ~/.micro-quiz-data). Leave empty to use the default.
data_home = ""

[session]
# Show answer explanations in the summary after a quiz
show_explanations = true
# Number of recent attempts listed by `microquiz results`
recent_limit = 5

[logging]
level = "INFO"
# Mirror log records to stderr
verbose = false
"""
