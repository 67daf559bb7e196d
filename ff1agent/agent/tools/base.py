"""Base class for agent tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from jsonschema import Draft7Validator

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def _error_path(path: Any) -> str:
    label = ""
    for part in path:
        if isinstance(part, int):
            label += f"[{part}]"
        else:
            label += f".{part}" if label else str(part)
    return label or "arguments"


class Tool(ABC):
    """
    Abstract base class for agent tools.

    Tools are the only way the model acts: each one declares a JSON-schema
    ``parameters`` block and returns a JSON string from :meth:`execute`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name used in function calls."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of what the tool does."""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """
        Execute the tool with given parameters.

        Returns:
            JSON string result of the tool execution.
        """

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Check *params* against :attr:`parameters`; returns ``path: message`` problems."""
        validator = Draft7Validator(self.parameters or _EMPTY_SCHEMA)
        errors = sorted(validator.iter_errors(params), key=lambda e: _error_path(e.absolute_path))
        return [f"{_error_path(e.absolute_path)}: {e.message}" for e in errors]

    def to_schema(self) -> dict[str, Any]:
        """Convert tool to OpenAI function schema format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
