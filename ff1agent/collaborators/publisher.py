"""Publishes verified playlist files to a DP-1 feed server."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from ff1agent.collaborators.http import HttpCollaborator
from ff1agent.collaborators.verifier import validate_dp1_playlist


class FeedPublisher(HttpCollaborator):

    async def publish(
        self, file_path: str | Path, server_url: str, api_key: str | None = None
    ) -> dict[str, Any]:
        """Read, validate and POST a playlist file.

        Returns ``{success, playlistId?, message?, error?, feedServer?}``.
        """
        path = Path(file_path)
        if not path.exists():
            return {"success": False, "error": f"Playlist file not found: {path}"}
        try:
            playlist = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {"success": False, "error": f"Invalid JSON in playlist file: {path}"}

        check = validate_dp1_playlist(playlist)
        if not check["valid"]:
            return {
                "success": False,
                "error": f"Playlist validation failed: {check['error']}",
                "message": "\n".join(f"  • {d['path']}: {d['message']}" for d in check["details"]),
            }

        server_url = server_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        try:
            resp = await self._post(f"{server_url}/playlists", playlist, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Publish to {server_url} failed: {e}")
            return {"success": False, "error": f"Failed to publish: {e}"}

        if resp.status_code in (201, 202):
            try:
                data = resp.json()
            except ValueError:
                data = {}
            state = "queued" if resp.status_code == 202 else "created"
            logger.info(f"Published playlist to {server_url} ({state})")
            return {
                "success": True,
                "playlistId": data.get("id") or data.get("uuid"),
                "message": f"Published to feed server ({state})",
                "feedServer": server_url,
            }

        if resp.is_error:
            return {"success": False, "error": f"Failed to publish: {resp.text or resp.status_code}",
                    "feedServer": server_url}
        return {"success": False, "error": f"Unexpected response status: {resp.status_code}",
                "feedServer": server_url}
