"""Terminal payloads of the intent conversation.

Calling one of these ends intent resolution: ``parse_requirements`` hands a
requirement set to the orchestrator, the two ``confirm_*`` calls hand an
existing playlist file to the send or publish path.  :meth:`accept` turns
the raw arguments into the typed payload and raises
``RequirementValidationError`` when they cannot be accepted.
"""

from __future__ import annotations

import json
from abc import abstractmethod
from pathlib import Path
from typing import Any

from loguru import logger

from ff1agent.agent.models import (
    Exact,
    PublishConfirmation,
    RequirementSet,
    SendConfirmation,
    apply_quantity_caps,
    clean_optional_str,
    is_null,
    parse_feed_server,
    parse_requirements,
    parse_settings,
)
from ff1agent.agent.tools.acquisition import REQUIREMENT_SCHEMA
from ff1agent.agent.tools.base import Tool
from ff1agent.collaborators.verifier import verify_playlist_file
from ff1agent.config.schema import Config
from ff1agent.errors import RequirementValidationError

DEFAULT_PLAYLIST_FILE = "./playlist.json"

_FEED_SERVER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "baseUrl": {"type": "string", "minLength": 1, "description": "Feed server base URL"},
        "apiKey": {"type": ["string", "null"], "description": "Feed server API key"},
    },
    "required": ["baseUrl"],
    "additionalProperties": False,
}


class TerminalTool(Tool):
    """A tool whose call is the result of the conversation, not an intermediate step."""

    @abstractmethod
    def accept(self, **kwargs: Any) -> Any:
        """Convert validated arguments into the typed payload."""

    async def execute(self, **kwargs: Any) -> str:
        try:
            payload = self.accept(**kwargs)
        except RequirementValidationError as e:
            return json.dumps({"accepted": False, "error": str(e)})
        return json.dumps({"accepted": True, "payload": type(payload).__name__})


class ParseRequirementsTool(TerminalTool):

    def __init__(self, config: Config):
        self.config = config

    @property
    def name(self) -> str:
        return "parse_requirements"

    @property
    def description(self) -> str:
        return (
            "Submit the parsed build request: one or more requirements plus optional "
            "playlist settings. Call this once every address is verified and every "
            "generic device or feed server reference is resolved."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "requirements": {
                    "type": "array",
                    "items": REQUIREMENT_SCHEMA,
                    "minItems": 1,
                    "description": "Requirements in the order the user gave them",
                },
                "playlistSettings": {
                    "type": ["object", "null"],
                    "properties": {
                        "title": {"type": ["string", "null"]},
                        "slug": {"type": ["string", "null"]},
                        "durationPerItem": {
                            "type": ["number", "string", "null"],
                            "description": "Seconds per item",
                        },
                        "totalDuration": {
                            "type": ["number", "null"],
                            "description": "Total playlist length in seconds",
                        },
                        "preserveOrder": {"type": ["boolean", "string", "null"]},
                        "deviceName": {
                            "type": ["string", "null"],
                            "description": "Device to display on; null for the first device",
                        },
                        "feedServer": {**_FEED_SERVER_SCHEMA, "type": ["object", "null"]},
                    },
                    "additionalProperties": False,
                },
            },
            "required": ["requirements"],
            "additionalProperties": False,
        }

    def accept(
        self,
        requirements: list[dict[str, Any]],
        playlistSettings: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> RequirementSet:
        parsed = parse_requirements(requirements)
        parsed = apply_quantity_caps(
            parsed,
            per_requirement=self.config.agent.max_items_per_requirement,
            total=self.config.agent.max_total_items,
        )
        raw_settings = dict(playlistSettings or {})
        total = raw_settings.pop("totalDuration", None)
        if is_null(raw_settings.get("durationPerItem")) and not is_null(total):
            raw_settings["durationPerItem"] = self._spread(total, parsed)
        settings = parse_settings(raw_settings, self.config.default_duration)
        logger.info(f"Accepted {len(parsed)} requirement(s)")
        return RequirementSet(requirements=tuple(parsed), settings=settings)

    def _spread(self, total: Any, requirements: list[Any]) -> int | None:
        """Per-item duration for a total length, when the item count is known up front."""
        counts = [r.quantity.count for r in requirements if isinstance(r.quantity, Exact)]
        if len(counts) != len(requirements) or not sum(counts):
            return None
        try:
            return max(1, int(float(total)) // sum(counts))
        except (TypeError, ValueError):
            return None


class ConfirmSendPlaylistTool(TerminalTool):

    def __init__(self, config: Config):
        self.config = config

    @property
    def name(self) -> str:
        return "confirm_send_playlist"

    @property
    def description(self) -> str:
        return (
            "Send an existing playlist file to an FF1 device. The file is verified first. "
            f'filePath defaults to "{DEFAULT_PLAYLIST_FILE}".'
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "filePath": {"type": ["string", "null"], "description": "Playlist file path"},
                "deviceName": {
                    "type": ["string", "null"],
                    "description": "Device name; omit for the first configured device",
                },
            },
            "additionalProperties": False,
        }

    def _match_device(self, device_name: str | None) -> str | None:
        devices = [d for d in self.config.ff1_devices.devices if d.host]
        if not devices:
            raise RequirementValidationError(
                'No FF1 devices configured. Add one to config.json under "ff1Devices".'
            )
        if not device_name:
            return None
        for device in devices:
            if device.name == device_name:
                return device.name
        wanted = device_name.lower()
        matches = [d for d in devices if d.name.lower() == wanted]
        if len(matches) == 1:
            return matches[0].name
        names = ", ".join(d.name or d.host for d in devices)
        raise RequirementValidationError(
            f'Device "{device_name}" not found. Available devices: {names}. Please choose a device.'
        )

    def accept(
        self, filePath: str | None = None, deviceName: str | None = None, **kwargs: Any
    ) -> SendConfirmation:
        file_path = clean_optional_str(filePath) or DEFAULT_PLAYLIST_FILE
        checked = verify_playlist_file(file_path)
        if not checked["valid"]:
            problems = "".join(
                f"\n  - {d['path']}: {d['message']}" for d in checked.get("details", [])[:3]
            )
            raise RequirementValidationError(
                f"Cannot send {file_path}: {checked['error']}{problems}"
            )
        device = self._match_device(clean_optional_str(deviceName))
        return SendConfirmation(
            file_path=str(Path(file_path)), playlist=checked["playlist"], device_name=device
        )


class ConfirmPublishPlaylistTool(TerminalTool):

    @property
    def name(self) -> str:
        return "confirm_publish_playlist"

    @property
    def description(self) -> str:
        return (
            "Publish an existing playlist file to a feed server. Resolve the server with "
            "get_feed_servers first."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "filePath": {"type": "string", "minLength": 1, "description": "Playlist file path"},
                "feedServer": _FEED_SERVER_SCHEMA,
            },
            "required": ["filePath", "feedServer"],
            "additionalProperties": False,
        }

    def accept(
        self, filePath: str, feedServer: dict[str, Any], **kwargs: Any
    ) -> PublishConfirmation:
        if not Path(filePath).exists():
            raise RequirementValidationError(f"Playlist file not found: {filePath}")
        server = parse_feed_server(feedServer)
        if server is None:
            raise RequirementValidationError("feedServer.baseUrl is required")
        return PublishConfirmation(file_path=filePath, feed_server=server)
