"""Test packaging metadata and installation extras."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _load_pyproject() -> dict[str, Any]:
    pyproject_path = PROJECT_ROOT / "pyproject.toml"
    raw = pyproject_path.read_text(encoding="utf-8")
    if sys.version_info >= (3, 11):
        import tomllib

        return tomllib.loads(raw)

    import tomli

    return tomli.loads(raw)


def _names(requirements: list[str]) -> set[str]:
    names = set()
    for item in requirements:
        name = str(item).strip().lower()
        for sep in ("<", ">", "=", "!", "~", ";", "["):
            name = name.split(sep, 1)[0]
        names.add(name.strip())
    return names


def test_pyproject_declares_test_extras() -> None:
    """Ensure `pyproject.toml` declares pytest under `[project.optional-dependencies].test`."""
    data = _load_pyproject()
    test_deps = data.get("project", {}).get("optional-dependencies", {}).get("test", [])
    assert "pytest" in _names(test_deps)


def test_pyproject_declares_runtime_stack() -> None:
    deps = _names(_load_pyproject()["project"]["dependencies"])
    assert {"mcp", "pydantic", "pyyaml", "loguru", "rich", "anyio"} <= deps


def test_console_script_points_at_cli() -> None:
    scripts = _load_pyproject()["project"]["scripts"]
    assert scripts["task-manager-mcp"] == "task_manager_mcp.cli:main"


def test_version_matches_package() -> None:
    from task_manager_mcp import __version__
    from task_manager_mcp.constants import SERVER_VERSION

    assert _load_pyproject()["project"]["version"] == __version__ == SERVER_VERSION


def test_mcp_pinned_to_low_level_server_api() -> None:
    """The server uses the 1.x decorator API (`Server.list_tools`, `Tool.inputSchema`)."""
    deps = _load_pyproject()["project"]["dependencies"]
    mcp_req = next(d for d in deps if d.lower().startswith("mcp"))
    assert "<2" in mcp_req.replace(" ", "")
