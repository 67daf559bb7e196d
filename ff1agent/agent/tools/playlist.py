"""Build and verify operations over registry-held items and playlists."""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from ff1agent.agent.models import clean_optional_str
from ff1agent.agent.run import RunContext
from ff1agent.agent.services import Services
from ff1agent.agent.tools.base import Tool
from ff1agent.collaborators.document import build_dp1_playlist
from ff1agent.collaborators.verifier import validate_dp1_playlist


async def build_artifact(
    run: RunContext,
    services: Services,
    item_ids: list[str],
    title: str | None = None,
    slug: str | None = None,
    shuffle: bool | None = None,
) -> dict[str, Any]:
    """Build a DP-1 playlist from registry ids, store it and write it to disk.

    Unknown ids are dropped and reported as ``missingItemIds``.
    """
    items: list[dict[str, Any]] = []
    missing: list[str] = []
    for item_id in item_ids:
        item = run.registry.get_item(item_id)
        if item is None:
            missing.append(item_id)
        else:
            items.append(item)
    if missing:
        logger.warning(f"build_playlist: {len(missing)} unknown item id(s) dropped: {missing}")
    if not items:
        return {
            "success": False,
            "error": "None of the given item ids are known. Query requirements first.",
            "missingItemIds": missing,
        }

    if shuffle is None:
        shuffle = run.settings.shuffle
    if shuffle:
        items = run.rng.sample(items, len(items))

    playlist = build_dp1_playlist(
        items,
        title=clean_optional_str(title) or run.settings.title,
        slug=clean_optional_str(slug) or run.settings.slug,
        private_key=run.private_key,
        default_duration=run.settings.duration_per_item,
    )
    artifact_id = run.registry.store_playlist(playlist)

    file_path = str(run.output_path)
    try:
        await services.writer.write_json(run.output_path, playlist)
    except OSError as e:
        logger.error(f"Could not save playlist to {file_path}: {e}")
        file_path = None
    run.set_artifact(artifact_id, file_path)
    logger.info(f'Built playlist "{playlist["title"]}" with {len(items)} item(s)')

    result: dict[str, Any] = {
        "success": True,
        "artifactId": artifact_id,
        "itemCount": len(items),
        "title": playlist["title"],
        "hasSignature": "signature" in playlist,
        "filePath": file_path,
    }
    if missing:
        result["missingItemIds"] = missing
    return result


def verify_artifact(run: RunContext, artifact_id: str) -> dict[str, Any]:
    """Validate a stored playlist and record the outcome on the run."""
    playlist = run.registry.get_playlist(artifact_id)
    if playlist is None:
        return {"valid": False, "error": f"Unknown artifact id: {artifact_id}", "details": []}

    result = validate_dp1_playlist(playlist)
    run.record_verification(artifact_id, result)
    if result["valid"]:
        return {"valid": True, "itemCount": result["itemCount"]}
    return {
        "valid": False,
        "error": result["error"],
        "details": result["details"][:3],
        "message": "Playlist validation failed. Fix the listed problems and rebuild.",
    }


class BuildPlaylistTool(Tool):

    def __init__(self, run: RunContext, services: Services):
        self.run = run
        self.services = services

    @property
    def name(self) -> str:
        return "build_playlist"

    @property
    def description(self) -> str:
        return (
            "Build a DP-1 playlist from the item ids returned by the query operations. "
            "Pass ALL collected ids. Returns an artifactId for verify_playlist."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "itemIds": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "description": "Ids of every collected item, in order",
                },
                "title": {
                    "type": ["string", "null"],
                    "description": "Playlist title, or null to generate one",
                },
                "slug": {
                    "type": ["string", "null"],
                    "description": "Playlist slug, or null to derive it from the title",
                },
                "shuffle": {"type": "boolean", "description": "Shuffle item order"},
            },
            "required": ["itemIds"],
            "additionalProperties": False,
        }

    async def execute(
        self,
        itemIds: list[str],
        title: str | None = None,
        slug: str | None = None,
        shuffle: bool | None = None,
        **kwargs: Any,
    ) -> str:
        result = await build_artifact(self.run, self.services, itemIds, title, slug, shuffle)
        return json.dumps(result)


class VerifyPlaylistTool(Tool):

    def __init__(self, run: RunContext):
        self.run = run

    @property
    def name(self) -> str:
        return "verify_playlist"

    @property
    def description(self) -> str:
        return "Validate a built playlist against the DP-1 schema. Required before finishing."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "artifactId": {
                    "type": "string",
                    "minLength": 1,
                    "description": "artifactId returned by build_playlist",
                },
            },
            "required": ["artifactId"],
            "additionalProperties": False,
        }

    async def execute(self, artifactId: str, **kwargs: Any) -> str:
        return json.dumps(verify_artifact(self.run, artifactId))
