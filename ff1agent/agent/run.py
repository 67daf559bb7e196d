"""Per-run state shared by the operations and the orchestrator.

Everything a single run accumulates lives on :class:`RunContext`: the
object registry, the query cache, the feed candidate map and the
build/verify/send progress.  Nothing here is module-level, so two runs in
the same process never see each other's items.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from ff1agent.agent.models import PlaylistSettings
from ff1agent.agent.registry import Registry
from ff1agent.utils.helpers import canonical_json, truncate


def project_item(item: dict[str, Any]) -> dict[str, Any]:
    """The minimal view of an item the model is allowed to see."""
    projection: dict[str, Any] = {
        "id": item.get("id"),
        "title": item.get("title"),
        "source": truncate(item.get("source"), 80),
        "duration": item.get("duration"),
    }
    contract = ((item.get("provenance") or {}).get("contract")) or {}
    if contract.get("address"):
        projection["provenance"] = (
            f"{contract.get('chain', 'other')}:{contract['address']}#{contract.get('tokenId', '')}"
        )
    return projection


@dataclass
class RunContext:
    """State of one orchestrated (or direct) build."""

    settings: PlaylistSettings
    output_path: Path = Path("playlist.json")
    private_key: str | None = None
    rng: random.Random = field(default_factory=random.Random)
    registry: Registry = field(default_factory=Registry)

    query_cache: dict[str, str] = field(default_factory=dict)
    playlist_map: dict[str, dict[str, Any]] = field(default_factory=dict)
    # Insertion-ordered set of item ids
    acquired: dict[str, None] = field(default_factory=dict)
    failed_requirements: list[dict[str, Any]] = field(default_factory=list)

    artifact_id: str | None = None
    file_path: str | None = None
    verified_id: str | None = None
    sent_to_device: bool = False
    delivered_to: str | None = None
    verification_failures: int = 0
    last_verification: dict[str, Any] | None = None

    # Items and cache

    def add_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Store items and record them as acquired; returns their projections."""
        projections = []
        for item in items:
            item_id = self.registry.store_item(item)
            self.acquired.setdefault(item_id, None)
            projections.append(project_item(item))
        return projections

    @property
    def acquired_ids(self) -> list[str]:
        return list(self.acquired)

    @staticmethod
    def cache_key(requirement: dict[str, Any], duration: int) -> str:
        return canonical_json({"requirement": requirement, "duration": duration})

    def mark_failed(self, requirement: str, error: str) -> None:
        entry = {"requirement": requirement, "error": error}
        if entry in self.failed_requirements:
            return
        logger.warning(f"Requirement failed: {requirement}: {error}")
        self.failed_requirements.append(entry)

    # Artifact progress

    def set_artifact(self, artifact_id: str, file_path: str | None) -> None:
        self.artifact_id = artifact_id
        self.file_path = file_path
        self.sent_to_device = False
        self.delivered_to = None

    @property
    def verified(self) -> bool:
        return self.artifact_id is not None and self.verified_id == self.artifact_id

    @property
    def artifact(self) -> dict[str, Any] | None:
        if not self.artifact_id:
            return None
        return self.registry.get_playlist(self.artifact_id)

    def record_verification(self, artifact_id: str, result: dict[str, Any]) -> None:
        """Track a verify outcome; failures only ever increase the counter."""
        self.last_verification = result
        if result.get("valid"):
            self.verified_id = artifact_id
        else:
            self.verification_failures += 1
            logger.warning(
                f"Playlist verification failed ({self.verification_failures}): {result.get('error')}"
            )

    def close(self) -> None:
        self.registry.clear()
        self.query_cache.clear()
        self.playlist_map.clear()
