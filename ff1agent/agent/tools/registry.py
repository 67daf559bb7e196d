"""Tool registry for dynamic tool management."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from ff1agent.agent.tools.base import Tool
from ff1agent.errors import ArgumentValidationError


class ToolRegistry:
    """
    Registry for agent tools.

    Allows dynamic registration and execution of tools.  Every call is
    validated against the tool's schema first; a malformed call comes back
    as an error result rather than an exception so the model can retry.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def get_definitions(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        """Get tool definitions in OpenAI format, optionally restricted to *names*."""
        tools = self._tools.values() if names is None else [
            self._tools[n] for n in names if n in self._tools
        ]
        return [tool.to_schema() for tool in tools]

    async def execute(self, name: str, params: dict[str, Any]) -> str:
        """
        Execute a tool by name with given parameters.

        Returns:
            JSON string result (``{"error": ...}`` on failure).
        """
        tool = self._tools.get(name)
        if not tool:
            return json.dumps({
                "success": False,
                "error": f"Unknown function: {name}",
                "availableFunctions": self.tool_names,
            })

        problems = tool.validate_params(params)
        if problems:
            err = ArgumentValidationError(name, problems)
            logger.warning(str(err))
            return json.dumps({"success": False, "error": str(err)})

        try:
            return await tool.execute(**params)
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return json.dumps({"success": False, "error": f"Error executing {name}: {e}"})

    @property
    def tool_names(self) -> list[str]:
        """Get list of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
