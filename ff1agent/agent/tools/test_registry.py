import json
from typing import Any

import pytest

from ff1agent.agent.tools.base import Tool
from ff1agent.agent.tools.registry import ToolRegistry


class EchoTool(Tool):
    def __init__(self, fail: bool = False):
        self.fail = fail

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo the arguments back."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "text": {"type": "string", "minLength": 1},
                "count": {"type": "integer", "minimum": 1},
                "mode": {"type": ["string", "null"], "enum": ["loud", "quiet", None]},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["text"],
            "additionalProperties": False,
        }

    async def execute(self, **kwargs: Any) -> str:
        if self.fail:
            raise RuntimeError("boom")
        return json.dumps(kwargs)


def test_validate_params_reports_every_problem() -> None:
    problems = EchoTool().validate_params(
        {"count": 0, "mode": "shout", "tags": ["a", 3], "extra": True}
    )

    assert "arguments: 'text' is a required property" in problems
    assert "count: 0 is less than the minimum of 1" in problems
    assert any(p.startswith("mode: 'shout' is not one of") for p in problems)
    assert "tags[1]: 3 is not of type 'string'" in problems
    assert any(p.startswith("arguments: Additional properties") and "extra" in p for p in problems)


def test_validate_params_rejects_bool_for_integer() -> None:
    assert EchoTool().validate_params({"text": "x", "count": True}) == ["count: True is not of type 'integer'"]
    assert EchoTool().validate_params({"text": "x", "count": 2.0, "mode": None}) == []


@pytest.mark.asyncio
async def test_execute_returns_errors_as_json_results() -> None:
    registry = ToolRegistry()
    registry.register(EchoTool())

    ok = json.loads(await registry.execute("echo", {"text": "hi"}))
    invalid = json.loads(await registry.execute("echo", {"text": ""}))
    unknown = json.loads(await registry.execute("mint", {}))

    assert ok == {"text": "hi"}
    assert invalid["success"] is False
    assert "Invalid arguments for 'echo'" in invalid["error"]
    assert unknown["error"] == "Unknown function: mint"
    assert unknown["availableFunctions"] == ["echo"]


@pytest.mark.asyncio
async def test_execute_catches_tool_exceptions() -> None:
    registry = ToolRegistry()
    registry.register(EchoTool(fail=True))

    result = json.loads(await registry.execute("echo", {"text": "hi"}))

    assert result == {"success": False, "error": "Error executing echo: boom"}


def test_definitions_use_openai_function_format() -> None:
    registry = ToolRegistry()
    registry.register(EchoTool())

    [definition] = registry.get_definitions()

    assert definition["type"] == "function"
    assert definition["function"]["name"] == "echo"
    assert registry.get_definitions(["other"]) == []
    assert "echo" in registry
