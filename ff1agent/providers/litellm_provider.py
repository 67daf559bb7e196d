"""LiteLLM provider implementation for OpenAI-compatible chat models."""

from __future__ import annotations

import json
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from ff1agent.config.schema import ModelConfig
from ff1agent.errors import ConfigError, ProviderError
from ff1agent.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ff1agent.utils.retry import RetryPolicy, is_rate_limit_error


def _is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, litellm.RateLimitError) or is_rate_limit_error(exc)


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM.

    Every configured model (Grok, GPT, Gemini, ...) is reached through an
    OpenAI-compatible endpoint, so a model with a ``base_url`` is routed as
    ``openai/<model>`` and the base URL is passed per call.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "",
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(should_retry=_is_rate_limited)

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    @classmethod
    def from_model_config(cls, model: ModelConfig | None) -> "LiteLLMProvider":
        if model is None or not model.model:
            raise ConfigError("Model is not configured")
        return cls(
            api_key=model.api_key or None,
            api_base=model.base_url or None,
            default_model=model.model,
            timeout=model.timeout,
            retry_policy=RetryPolicy(
                max_attempts=model.max_retries,
                should_retry=_is_rate_limited,
            ),
        )

    def _resolve_model(self, model: str) -> str:
        """Route custom endpoints through litellm's OpenAI-compatible adapter."""
        if self.api_base and not model.startswith("openai/"):
            return f"openai/{model}"
        return model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Rate limits are retried by the retry policy; anything else is raised
        as :class:`ProviderError` carrying the model and base URL.
        """
        raw_model = model or self.default_model
        resolved = self._resolve_model(raw_model)

        kwargs: dict[str, Any] = {
            "model": resolved,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": self.timeout,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await self.retry_policy.run(
                acompletion, description=f"model {raw_model}", **kwargs
            )
        except Exception as e:
            logger.error(f"LLM call failed ({resolved}): {e}")
            raise ProviderError(
                str(e), model=raw_model, base_url=self.api_base or ""
            ) from e
        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        if hasattr(message, "tool_calls") and message.tool_calls:
            for tc in message.tool_calls:
                # Parse arguments from JSON string if needed
                args = tc.function.arguments
                if isinstance(args, str):
                    try:
                        args = json.loads(args) if args.strip() else {}
                    except json.JSONDecodeError:
                        args = {"raw": args}
                if not isinstance(args, dict):
                    args = {"raw": args}

                tool_calls.append(ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=args,
                ))

        usage = {}
        if hasattr(response, "usage") and response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
            reasoning_content=getattr(message, "reasoning_content", None),
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
