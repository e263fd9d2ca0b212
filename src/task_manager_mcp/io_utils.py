"""Whole-document JSON/YAML persistence with atomic replacement."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import IO, Any, Callable

import yaml

YAML_SUFFIXES = {".yaml", ".yml"}


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in YAML_SUFFIXES


def _dump_json(data: dict[str, Any], handle: IO[str]) -> None:
    json.dump(data, handle, indent=2, ensure_ascii=False)


def _dump_yaml(data: dict[str, Any], handle: IO[str]) -> None:
    yaml.safe_dump(data, handle, sort_keys=False, allow_unicode=True)


def _atomic_write(path: Path, data: dict[str, Any], dump: Callable[[dict[str, Any], IO[str]], None]) -> None:
    """Write beside *path* and swap it in, so readers never see a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            dump(data, handle)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _save_data(path: Path, data: dict[str, Any]) -> None:
    _atomic_write(path, data, _dump_yaml if _is_yaml(path) else _dump_json)


def _load_data_with_error(
    path: Path,
    default: dict[str, Any],
) -> tuple[dict[str, Any], str | None]:
    """Load a JSON/YAML mapping and return ``(data, error_message)``.

    A missing file is not an error. Unreadable, undecodable or non-mapping
    content yields ``default`` plus a message for the caller to log.
    """
    if not path.exists():
        return default, None
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) if _is_yaml(path) else json.load(handle)
    # JSONDecodeError and UnicodeDecodeError are both ValueErrors
    except (OSError, ValueError, yaml.YAMLError) as exc:
        return default, f"{path.name}: {exc.__class__.__name__}: {exc}"
    if not isinstance(data, dict):
        return default, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None
