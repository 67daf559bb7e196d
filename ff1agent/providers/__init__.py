"""LLM provider abstraction module."""

from ff1agent.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ff1agent.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider", "ToolCallRequest"]
