"""Side-effecting operations: cast to an FF1 device, publish to a feed."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from ff1agent.agent.models import FeedServer, clean_optional_str, parse_feed_server
from ff1agent.agent.run import RunContext
from ff1agent.agent.services import Services
from ff1agent.agent.tools.base import Tool
from ff1agent.errors import RequirementValidationError


async def send_artifact(
    run: RunContext, services: Services, artifact_id: str, device_name: str | None = None
) -> dict[str, Any]:
    playlist = run.registry.get_playlist(artifact_id)
    if playlist is None:
        return {"success": False, "error": f"Unknown artifact id: {artifact_id}"}
    if not run.verified or run.artifact_id != artifact_id:
        return {"success": False, "error": "Playlist must be verified before it is sent"}

    device_name = clean_optional_str(device_name) or run.settings.device_name
    result = await services.device.send(playlist, device_name)
    if result["success"]:
        run.sent_to_device = True
        run.delivered_to = result.get("deviceName")
        return {"success": True, "deviceName": result.get("deviceName")}
    return {"success": False, "deviceName": device_name, "error": result.get("error")}


class SendToDeviceTool(Tool):

    def __init__(self, run: RunContext, services: Services):
        self.run = run
        self.services = services

    @property
    def name(self) -> str:
        return "send_to_device"

    @property
    def description(self) -> str:
        return "Send a verified playlist to an FF1 device for immediate display."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "artifactId": {
                    "type": "string",
                    "minLength": 1,
                    "description": "artifactId of the verified playlist",
                },
                "deviceName": {
                    "type": ["string", "null"],
                    "description": "Device name; omit to use the first configured device",
                },
            },
            "required": ["artifactId"],
            "additionalProperties": False,
        }

    async def execute(self, artifactId: str, deviceName: str | None = None, **kwargs: Any) -> str:
        return json.dumps(await send_artifact(self.run, self.services, artifactId, deviceName))


class PublishPlaylistTool(Tool):
    """Publishes a playlist file to a DP-1 feed server."""

    def __init__(self, services: Services):
        self.services = services

    @property
    def name(self) -> str:
        return "publish_playlist"

    @property
    def description(self) -> str:
        return "Publish a saved playlist file to a DP-1 feed server."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Path of the playlist file",
                },
                "feedServer": {
                    "type": "object",
                    "properties": {
                        "baseUrl": {"type": "string", "minLength": 1},
                        "apiKey": {"type": ["string", "null"]},
                    },
                    "required": ["baseUrl"],
                    "additionalProperties": False,
                },
            },
            "required": ["filePath", "feedServer"],
            "additionalProperties": False,
        }

    async def execute(self, filePath: str, feedServer: dict[str, Any], **kwargs: Any) -> str:
        try:
            server = parse_feed_server(feedServer)
        except RequirementValidationError as e:
            return json.dumps({"success": False, "error": str(e)})
        if server is None:
            return json.dumps({"success": False, "error": "feedServer.baseUrl is required"})
        return json.dumps(await self.publish(filePath, server))

    async def publish(self, file_path: str | Path, server: FeedServer) -> dict[str, Any]:
        """Publish a saved playlist file; failures are logged and returned."""
        result = await self.services.publisher.publish(file_path, server.base_url, server.api_key)
        if not result["success"]:
            logger.error(f"Publish failed: {result.get('error')}")
        return result
