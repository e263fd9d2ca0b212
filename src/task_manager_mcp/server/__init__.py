"""MCP stdio server exposing the task engine as tools."""

from __future__ import annotations

from .mcp_server import create_server, dispatch_tool, run_stdio, tool_definitions

__all__ = ["create_server", "dispatch_tool", "run_stdio", "tool_definitions"]
