"""Conversation session: message history plus turn accounting.

Both model conversations (intent resolution and orchestration) keep their
history here.  Messages are only ever appended; synthetic system and user
turns are added next to the model's own turns, never in place of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ff1agent.providers.base import LLMResponse


@dataclass
class Session:
    """An append-only conversation with a per-entry turn budget."""

    max_turns: int = 20
    messages: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    turns: int = 0
    total_turns: int = 0

    def add_message(self, role: str, content: str, **kwargs: Any) -> dict[str, Any]:
        msg: dict[str, Any] = {"role": role, "content": content, **kwargs}
        self.messages.append(msg)
        return msg

    def add_system(self, content: str) -> None:
        self.add_message("system", content)

    def add_user(self, content: str) -> None:
        self.add_message("user", content)

    def add_assistant_message(
        self,
        content: str | None,
        tool_calls: list[dict[str, Any]] | None = None,
        reasoning_content: str | None = None,
    ) -> None:
        msg: dict[str, Any] = {"role": "assistant", "content": content or ""}
        if tool_calls:
            msg["tool_calls"] = tool_calls
        # Thinking models reject history without this
        if reasoning_content:
            msg["reasoning_content"] = reasoning_content
        self.messages.append(msg)

    def add_response(self, response: LLMResponse) -> None:
        """Append the model's turn, including any tool calls it made."""
        self.add_assistant_message(
            response.content,
            [tc.to_message_dict() for tc in response.tool_calls] or None,
            reasoning_content=response.reasoning_content,
        )

    def add_tool_result(self, tool_call_id: str, tool_name: str, result: str) -> None:
        self.messages.append({
            "role": "tool",
            "tool_call_id": tool_call_id,
            "name": tool_name,
            "content": result,
        })

    # Turn accounting

    def start_entry(self) -> None:
        """Reset the per-entry counter; called on every run and resume."""
        self.turns = 0

    def next_turn(self) -> int:
        self.turns += 1
        self.total_turns += 1
        return self.turns

    @property
    def exhausted(self) -> bool:
        return self.turns >= self.max_turns

    @property
    def turns_left(self) -> int:
        return max(0, self.max_turns - self.turns)

    def get_history(self, max_messages: int = 50) -> list[dict[str, Any]]:
        """Recent messages without the system prompt(s), for resuming elsewhere."""
        recent = [m for m in self.messages if m["role"] != "system"]
        return recent[-max_messages:]
