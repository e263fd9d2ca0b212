"""Shared constants for the task manager server."""

from __future__ import annotations

from pathlib import Path

SERVER_NAME = "task-manager-server"
SERVER_VERSION = "2.0.1"

# Environment
ENV_FILE_PATH = "TASK_MANAGER_FILE_PATH"
ENV_LOG_LEVEL = "TASK_MANAGER_LOG_LEVEL"
ENV_CONFIG = "TASK_MANAGER_CONFIG"

DEFAULT_FILE_PATH = Path.home() / "Documents" / "tasks.json"
DEFAULT_LOG_LEVEL = "INFO"
VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}

# Id prefixes
REQUEST_ID_PREFIX = "req-"
TASK_ID_PREFIX = "task-"

# Default texts written by lifecycle transitions
DEFAULT_COMPLETED_DETAILS = "Completed successfully"
DEFAULT_FAILURE_REASON = "No reason provided"
AUTO_COMPLETED_DETAILS = "Automatically completed as all subtasks are terminal."
AUTO_COMPLETED_AFTER_FAILURE_DETAILS = (
    "Automatically completed as all subtasks are terminal (some may have failed)."
)
