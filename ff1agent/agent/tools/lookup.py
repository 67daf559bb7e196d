"""Lookup operations the intent resolver interposes before accepting a payload."""

from __future__ import annotations

import json
from typing import Any

from ff1agent.agent.tools.base import Tool
from ff1agent.collaborators.addresses import validate_addresses
from ff1agent.config.schema import Config


class GetConfiguredDevicesTool(Tool):
    """Lists configured FF1 devices (API keys are never included)."""

    def __init__(self, config: Config):
        self.config = config

    @property
    def name(self) -> str:
        return "get_configured_devices"

    @property
    def description(self) -> str:
        return (
            "Get the list of configured FF1 devices. Call this when the user refers to a "
            'generic device such as "FF1", "my FF1" or "my device".'
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "additionalProperties": False}

    async def execute(self, **kwargs: Any) -> str:
        return json.dumps(self.config.list_devices())


class GetFeedServersTool(Tool):

    def __init__(self, config: Config):
        self.config = config

    @property
    def name(self) -> str:
        return "get_feed_servers"

    @property
    def description(self) -> str:
        return "Get the list of configured feed servers that playlists can be published to."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}, "additionalProperties": False}

    async def execute(self, **kwargs: Any) -> str:
        return json.dumps(self.config.list_feed_servers())


class VerifyAddressesTool(Tool):

    @property
    def name(self) -> str:
        return "verify_addresses"

    @property
    def description(self) -> str:
        return (
            "Validate Ethereum (0x...), Tezos (tz1/tz2/tz3/KT1) addresses and .eth/.tez "
            "domains. Call this BEFORE parse_requirements whenever the user gives an address."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "addresses": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "description": "Addresses or domains exactly as the user wrote them",
                },
            },
            "required": ["addresses"],
            "additionalProperties": False,
        }

    async def execute(self, addresses: list[str], **kwargs: Any) -> str:
        return json.dumps(validate_addresses(addresses))
