"""FF1 device client: casts a DP-1 playlist to a configured display."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from ff1agent.collaborators.http import HttpCollaborator
from ff1agent.config.schema import DeviceConfig


class DeviceClient(HttpCollaborator):
    """Sends playlists to FF1 devices over their local cast API."""

    def __init__(self, devices: list[DeviceConfig], **kwargs: Any):
        super().__init__(**kwargs)
        self.devices = [d for d in devices if d.host]

    def find_device(self, device_name: str | None = None) -> DeviceConfig | dict[str, Any]:
        """Exact-name lookup, or the first device when no name is given.

        Returns the device, or a ``{success: False, error}`` dict.
        """
        if not self.devices:
            return {
                "success": False,
                "error": 'No FF1 devices configured. Please add devices to config.json under "ff1Devices"',
            }
        if not device_name:
            logger.info("Using first configured device")
            return self.devices[0]
        for device in self.devices:
            if device.name == device_name:
                return device
        names = ", ".join(d.name for d in self.devices if d.name) or "none with names"
        return {
            "success": False,
            "error": f'Device "{device_name}" not found. Available devices: {names}',
        }

    async def send(
        self,
        playlist: dict[str, Any],
        device_name: str | None = None,
        intent: str = "now_display",
    ) -> dict[str, Any]:
        """Cast ``playlist``; returns ``{success, deviceName?, error?}``. Never raises."""
        if not isinstance(playlist, dict) or not playlist:
            return {"success": False,
                    "error": "Invalid playlist: must provide a valid DP1 playlist object"}

        device = self.find_device(device_name)
        if isinstance(device, dict):
            return device

        url = f"{device.host.rstrip('/')}/api/cast"
        params = {"topicID": device.topic_id} if device.topic_id.strip() else None
        headers = {"Content-Type": "application/json"}
        if device.api_key:
            headers["API-KEY"] = device.api_key
        body = {
            "command": "displayPlaylist",
            "request": {"dp1_call": playlist, "intent": {"action": intent}},
        }

        logger.info(f"Sending playlist to FF1 device: {device.host}")
        try:
            resp = await self._post(url, body, headers=headers, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Error sending playlist to device: {e}")
            return {"success": False, "error": str(e)}

        if resp.is_error:
            logger.error(f"Failed to cast to device: {resp.status_code} {resp.reason_phrase}")
            return {
                "success": False,
                "error": f"Device returned error {resp.status_code}: {resp.reason_phrase}",
                "details": resp.text,
            }

        try:
            data = resp.json()
        except ValueError:
            data = {}
        logger.info("Successfully sent playlist to FF1 device")
        return {
            "success": True,
            "device": device.host,
            "deviceName": device.name or device.host,
            "response": data,
            "message": "Playlist successfully sent to FF1 device",
        }
