"""Resolve server settings from defaults, an optional config file, and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import (
    DEFAULT_FILE_PATH,
    DEFAULT_LOG_LEVEL,
    ENV_CONFIG,
    ENV_FILE_PATH,
    ENV_LOG_LEVEL,
    VALID_LOG_LEVELS,
)
from .io_utils import _load_data_with_error


@dataclass(frozen=True)
class Settings:
    file_path: Path = DEFAULT_FILE_PATH
    log_level: str = DEFAULT_LOG_LEVEL


def load_config_file(path: Path) -> tuple[dict[str, Any], str | None]:
    """Load an optional YAML/JSON config file.

    Args:
        path: Location of the config file.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, error)`
        since the caller asked for it explicitly.
    """
    path = path.expanduser()
    if not path.exists():
        return {}, f"{path}: config file not found"
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _normalize_level(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    level = raw.strip().upper()
    return level if level in VALID_LOG_LEVELS else None


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    file_path: Optional[str | Path] = None,
    log_level: Optional[str] = None,
) -> tuple[Settings, list[str]]:
    """Build :class:`Settings`; later sources override earlier ones.

    Precedence: defaults, the file named by ``TASK_MANAGER_CONFIG``, the
    ``TASK_MANAGER_FILE_PATH`` / ``TASK_MANAGER_LOG_LEVEL`` variables, then the
    explicit arguments (CLI flags).

    Returns:
        A tuple of `(settings, warnings)`. Unusable values are skipped and
        reported rather than applied.
    """
    env = os.environ if environ is None else environ
    warnings: list[str] = []
    resolved_path: Path = DEFAULT_FILE_PATH
    resolved_level = DEFAULT_LOG_LEVEL

    config_path = env.get(ENV_CONFIG)
    if config_path:
        config, err = load_config_file(Path(config_path))
        if err:
            warnings.append(err)
        if config.get("file_path"):
            resolved_path = Path(str(config["file_path"]))
        if "log_level" in config:
            level = _normalize_level(config.get("log_level"))
            if level:
                resolved_level = level
            else:
                warnings.append(f"Ignoring invalid log_level in config: {config.get('log_level')!r}")

    if env.get(ENV_FILE_PATH):
        resolved_path = Path(env[ENV_FILE_PATH])
    if env.get(ENV_LOG_LEVEL):
        level = _normalize_level(env[ENV_LOG_LEVEL])
        if level:
            resolved_level = level
        else:
            warnings.append(f"Ignoring invalid {ENV_LOG_LEVEL}: {env[ENV_LOG_LEVEL]!r}")

    if file_path:
        resolved_path = Path(file_path)
    if log_level:
        level = _normalize_level(log_level)
        if level:
            resolved_level = level
        else:
            warnings.append(f"Ignoring invalid log level: {log_level!r}")

    return Settings(file_path=resolved_path.expanduser(), log_level=resolved_level), warnings
