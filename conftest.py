"""Shared pytest fixtures for ff1agent tests."""

from __future__ import annotations

import itertools
import random
from typing import Any, Callable, Union
from unittest.mock import AsyncMock

import pytest
from loguru import logger

from ff1agent.agent.services import Services
from ff1agent.config.schema import Config, DeviceConfig
from ff1agent.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ff1agent.utils.atomic_io import AtomicFileWriter

_call_ids = itertools.count(1)

Step = Union[LLMResponse, Callable[[list[dict[str, Any]]], LLMResponse]]


class ScriptedProvider(LLMProvider):
    """LLM provider that replays a fixed list of responses and records every request."""

    def __init__(self, steps: list[Step]):
        super().__init__(api_key="test")
        self.steps = list(steps)
        self.requests: list[dict[str, Any]] = []

    @staticmethod
    def call(name: str, arguments: dict[str, Any] | None = None, content: str | None = None) -> LLMResponse:
        tc = ToolCallRequest(id=f"call_{next(_call_ids)}", name=name, arguments=arguments or {})
        return LLMResponse(content=content, tool_calls=[tc], finish_reason="tool_calls")

    @staticmethod
    def calls(*pairs: tuple[str, dict[str, Any]]) -> LLMResponse:
        tool_calls = [
            ToolCallRequest(id=f"call_{next(_call_ids)}", name=name, arguments=args)
            for name, args in pairs
        ]
        return LLMResponse(content=None, tool_calls=tool_calls, finish_reason="tool_calls")

    @staticmethod
    def say(text: str, finish_reason: str = "stop") -> LLMResponse:
        return LLMResponse(content=text, finish_reason=finish_reason)

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.3,
    ) -> LLMResponse:
        self.requests.append({
            "messages": [dict(m) for m in messages],
            "tools": [t["function"]["name"] for t in tools or []],
            "model": model,
        })
        if not self.steps:
            raise AssertionError(f"ScriptedProvider ran out of responses after {len(self.requests) - 1}")
        step = self.steps.pop(0)
        return step(messages) if callable(step) else step

    def get_default_model(self) -> str:
        return "scripted-model"


@pytest.fixture(autouse=True)
def _quiet_logs():
    logger.disable("ff1agent")
    yield
    logger.enable("ff1agent")


@pytest.fixture
def scripted_provider() -> type[ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def config(tmp_path) -> Config:
    cfg = Config()
    cfg.models["grok"].api_key = "test-key"
    cfg.agent.output_path = str(tmp_path / "playlist.json")
    cfg.ff1_devices.devices.append(
        DeviceConfig(host="http://ff1-living.local:1111", name="Living Room")
    )
    return cfg


@pytest.fixture
def make_item() -> Callable[..., dict[str, Any]]:
    """Factory for DP-1 items as the indexer and the feeds return them."""

    def _make(
        token_id: int | str,
        contract: str = "0x" + "ab" * 20,
        duration: int = 10,
        title: str | None = None,
    ) -> dict[str, Any]:
        return {
            "id": f"item-{contract[-6:]}-{token_id}",
            "title": title or f"Token #{token_id}",
            "source": f"https://media.example.com/{contract}/{token_id}.mp4",
            "duration": duration,
            "license": "open",
            "created": "2025-01-01T00:00:00Z",
            "provenance": {
                "type": "onChain",
                "contract": {
                    "chain": "tezos" if contract.startswith("KT") else "evm",
                    "standard": "other",
                    "address": contract,
                    "tokenId": str(token_id),
                },
            },
        }

    return _make


@pytest.fixture
def services(config) -> Services:
    """Services with every network adapter replaced by an AsyncMock."""
    return Services(
        config=config,
        indexer=AsyncMock(),
        domains=AsyncMock(),
        feed=AsyncMock(max_items=500),
        device=AsyncMock(),
        publisher=AsyncMock(),
        writer=AtomicFileWriter(),
        rng=random.Random(7),
    )
