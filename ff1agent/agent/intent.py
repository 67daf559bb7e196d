"""Intent resolution: free text → one accepted terminal payload.

The resolver runs a short model conversation.  Lookup calls
(``get_configured_devices``, ``get_feed_servers``, ``verify_addresses``) are
executed and fed back; a terminal call (``parse_requirements``,
``confirm_send_playlist``, ``confirm_publish_playlist``) ends the
conversation once its arguments are accepted.  Plain text from the model is
a question for the user.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal, Union

from loguru import logger

from ff1agent.agent.models import PublishConfirmation, RequirementSet, SendConfirmation
from ff1agent.agent.prompts import build_intent_prompt, build_lookup_limit_directive
from ff1agent.agent.session import Session
from ff1agent.agent.tools.lookup import (
    GetConfiguredDevicesTool,
    GetFeedServersTool,
    VerifyAddressesTool,
)
from ff1agent.agent.tools.registry import ToolRegistry
from ff1agent.agent.tools.terminal import (
    ConfirmPublishPlaylistTool,
    ConfirmSendPlaylistTool,
    ParseRequirementsTool,
    TerminalTool,
)
from ff1agent.config.schema import Config
from ff1agent.errors import (
    ArgumentValidationError,
    NeedsClarificationError,
    ProviderError,
    RequirementValidationError,
)
from ff1agent.providers.base import LLMProvider, LLMResponse, ToolCallRequest

Payload = Union[RequirementSet, SendConfirmation, PublishConfirmation]

INTENT_MAX_TOKENS = 2000
DEFAULT_QUESTION = "Could you tell me a bit more about the playlist you want?"


@dataclass
class IntentResult:
    status: Literal["requirements", "send", "publish", "clarification"]
    payload: Payload | None = None
    question: str | None = None

    @property
    def needs_clarification(self) -> bool:
        return self.status == "clarification"


def _status_for(payload: Payload) -> Literal["requirements", "send", "publish"]:
    if isinstance(payload, RequirementSet):
        return "requirements"
    if isinstance(payload, SendConfirmation):
        return "send"
    return "publish"


class IntentResolver:
    """Multi-turn conversation that ends in a requirement set or a confirmation.

    In interactive mode questions come back as ``IntentResult(status="clarification")``
    and the caller continues with :meth:`resolve` on the user's reply.  In
    non-interactive mode a question raises ``NeedsClarificationError``.
    """

    def __init__(
        self,
        provider: LLMProvider,
        config: Config,
        model_name: str | None = None,
        interactive: bool = True,
    ):
        self.provider = provider
        self.config = config
        self.interactive = interactive
        model_cfg = config.get_model(model_name)
        self.model = (model_cfg.model if model_cfg else None) or provider.get_default_model()
        self.base_url = model_cfg.base_url if model_cfg else ""
        self.temperature = model_cfg.temperature if model_cfg else 0.3
        self.max_lookup_depth = config.agent.max_lookup_depth

        self.lookups = ToolRegistry()
        self.lookups.register(GetConfiguredDevicesTool(config))
        self.lookups.register(GetFeedServersTool(config))
        self.lookups.register(VerifyAddressesTool())

        self.terminals: dict[str, TerminalTool] = {
            t.name: t
            for t in (
                ParseRequirementsTool(config),
                ConfirmSendPlaylistTool(config),
                ConfirmPublishPlaylistTool(),
            )
        }
        self.session = Session(max_turns=self.max_lookup_depth)
        self.reset()

    def reset(self) -> None:
        """Start a fresh conversation (new system prompt, empty history)."""
        self.session.messages.clear()
        self.session.add_system(build_intent_prompt(self.config))

    def _all_definitions(self) -> list[dict[str, Any]]:
        return self.lookups.get_definitions() + self._terminal_definitions()

    def _terminal_definitions(self) -> list[dict[str, Any]]:
        return [t.to_schema() for t in self.terminals.values()]

    async def _chat(self, tools: list[dict[str, Any]]) -> LLMResponse:
        try:
            return await self.provider.chat(
                messages=self.session.messages,
                tools=tools,
                model=self.model,
                max_tokens=INTENT_MAX_TOKENS,
                temperature=self.temperature,
            )
        except ProviderError as e:
            raise ProviderError(
                f"Intent parser failed (model={self.model}, baseURL={self.base_url}): {e}",
                model=self.model,
                base_url=self.base_url,
            ) from e

    async def resolve(self, text: str) -> IntentResult:
        """Feed the user's text (a request or a reply) and run until a result."""
        self.session.add_user(text)
        self.session.start_entry()

        while True:
            response = await self._chat(self._all_definitions())
            self.session.add_response(response)
            if not response.has_tool_calls:
                return self._clarify(response.content)

            outcome = await self._handle_calls(response)
            if outcome is not None:
                return outcome

            self.session.next_turn()
            if self.session.exhausted:
                return await self._final_directive()

    async def _handle_calls(self, response: LLMResponse) -> IntentResult | None:
        """Answer every call in order; returns a result when the turn ends the conversation."""
        payload: Payload | None = None
        question: str | None = None

        for tc in response.tool_calls:
            if payload is not None or question is not None:
                self._tool_result(tc, {"skipped": True, "reason": "conversation already resolved"})
                continue

            if tc.name in self.terminals:
                try:
                    payload = self._accept(tc)
                except RequirementValidationError as e:
                    self._tool_result(tc, {"success": False, "error": str(e)})
                    if tc.name == "parse_requirements":
                        if not self.interactive:
                            raise
                        # Fed back so the model can correct the payload on its next turn
                        logger.warning(f"Rejected requirements: {e}")
                        continue
                    question = str(e)
                    continue
                self._tool_result(tc, {"success": True, "accepted": tc.name})
                continue

            if tc.name in self.lookups:
                result = await self.lookups.execute(tc.name, tc.arguments)
                self.session.add_tool_result(tc.id, tc.name, result)
                if tc.name == "verify_addresses":
                    question = self._invalid_addresses(result)
                continue

            logger.warning(f"Intent model called unknown function {tc.name}")
            self._tool_result(tc, {"error": f"Unknown function: {tc.name}"})
            question = response.content or f"Encountered unknown function: {tc.name}"

        if payload is not None:
            logger.info(f"Intent resolved via {type(payload).__name__}")
            return IntentResult(status=_status_for(payload), payload=payload)
        if question is not None:
            return self._clarify(question)
        return None

    def _accept(self, tc: ToolCallRequest) -> Payload:
        tool = self.terminals[tc.name]
        problems = tool.validate_params(tc.arguments)
        if problems:
            raise RequirementValidationError(str(ArgumentValidationError(tc.name, problems)))
        return tool.accept(**tc.arguments)

    @staticmethod
    def _invalid_addresses(result: str) -> str | None:
        try:
            data = json.loads(result)
        except json.JSONDecodeError:
            return None
        if data.get("valid") is False and data.get("errors"):
            return (
                f"Some addresses are invalid. {' '.join(data['errors'])} "
                "Please provide correct addresses."
            )
        return None

    async def _final_directive(self) -> IntentResult:
        """One last turn restricted to the terminal payloads."""
        logger.warning(f"Lookup depth {self.max_lookup_depth} reached; asking for a final payload")
        self.session.add_system(build_lookup_limit_directive())
        response = await self._chat(self._terminal_definitions())
        self.session.add_response(response)
        if response.has_tool_calls:
            outcome = await self._handle_calls(response)
            if outcome is not None:
                return outcome
        return self._clarify(response.content)

    def _tool_result(self, tc: ToolCallRequest, data: dict[str, Any]) -> None:
        self.session.add_tool_result(tc.id, tc.name, json.dumps(data))

    def _clarify(self, question: str | None) -> IntentResult:
        question = (question or "").strip() or DEFAULT_QUESTION
        if not self.interactive:
            raise NeedsClarificationError(question)
        return IntentResult(status="clarification", question=question)
