"""DP-1 playlist document builder."""

from __future__ import annotations

import json
import re
import unicodedata
import uuid
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from ff1agent.collaborators.signer import sign_playlist

DP_VERSION = "1.0.0"

DEFAULT_DISPLAY = {"scaling": "fit", "background": "#111", "margin": 0}


def slugify(value: str | None) -> str:
    base = (value or "").strip().lower()
    if not base:
        return f"playlist-{uuid.uuid4().hex[:8]}"
    base = unicodedata.normalize("NFD", base)
    base = "".join(c for c in base if not unicodedata.combining(c))
    base = re.sub(r"[^a-z0-9\s-]", "", base)
    base = re.sub(r"\s+", "-", base)
    base = re.sub(r"-+", "-", base).strip("-")
    return base or f"playlist-{uuid.uuid4().hex[:8]}"


def generate_title(items: list[dict[str, Any]]) -> str:
    if not items:
        return "DP1 Playlist"
    contracts = {
        item["provenance"]["contract"]["address"]
        for item in items
        if (item.get("provenance") or {}).get("type") == "onChain"
        and ((item["provenance"].get("contract") or {}).get("address"))
    }
    if len(contracts) == 1:
        return "NFT Collection Playlist"
    if len(contracts) > 1:
        return "Multi-Collection NFT Playlist"
    noun = "item" if len(items) == 1 else "items"
    return f"DP1 Playlist ({len(items)} {noun})"


def build_dp1_playlist(
    items: list[Any],
    title: str | None = None,
    slug: str | None = None,
    private_key: str | None = None,
    default_duration: int = 10,
    playlist_id: str | None = None,
    created: str | None = None,
) -> dict[str, Any]:
    """Assemble a DP-1 playlist and sign it when a key is given.

    ``playlist_id``/``created`` pin the otherwise random id and timestamp.
    Raises ``ValueError`` when there are no items.
    """
    if not items:
        raise ValueError("Playlist must contain at least one item")

    # Some models hand back items as JSON strings
    parsed = []
    for item in items:
        if isinstance(item, str):
            try:
                item = json.loads(item)
            except json.JSONDecodeError:
                pass
        parsed.append(item)

    title = title or generate_title(parsed)
    playlist: dict[str, Any] = {
        "dpVersion": DP_VERSION,
        "id": playlist_id or str(uuid.uuid4()),
        "slug": slug or slugify(title),
        "title": title,
        "created": created or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "defaults": {
            "display": dict(DEFAULT_DISPLAY),
            "license": "token",
            "duration": default_duration,
        },
        "items": parsed,
    }

    if private_key:
        try:
            playlist["signature"] = sign_playlist(playlist, private_key)
        except ValueError as e:
            logger.warning(f"Failed to sign playlist: {e}")
    return playlist
