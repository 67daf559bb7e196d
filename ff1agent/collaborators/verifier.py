"""DP-1 schema validation backed by pydantic models."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class _DP1Model(BaseModel):
    model_config = ConfigDict(extra="allow")


class ProvenanceContract(_DP1Model):
    chain: Literal["evm", "tezos", "bitmark", "other"]
    standard: str | None = None
    address: str | None = None
    tokenId: str | None = None
    uri: str | None = None


class Provenance(_DP1Model):
    type: Literal["onChain", "seriesRegistry", "offChainURI"]
    contract: ProvenanceContract | None = None


class PlaylistItem(_DP1Model):
    id: str | None = None
    title: str | None = Field(default=None, max_length=256)
    source: str = Field(min_length=1)
    duration: float = Field(ge=1)
    license: Literal["open", "token", "subscription"]
    created: str | None = None
    provenance: Provenance | None = None


class Playlist(_DP1Model):
    dpVersion: str = Field(min_length=1)
    id: str = Field(min_length=1)
    slug: str | None = None
    title: str = Field(min_length=1, max_length=256)
    created: str | None = None
    defaults: dict[str, Any] | None = None
    items: list[PlaylistItem] = Field(min_length=1, max_length=1024)
    signature: str | None = None


def _path(loc: tuple[Any, ...]) -> str:
    parts = []
    for part in loc:
        if isinstance(part, int):
            parts.append(f"[{part}]")
        else:
            parts.append(("." if parts else "") + str(part))
    return "".join(parts) or "(root)"


def validate_dp1_playlist(playlist: Any) -> dict[str, Any]:
    """Validate a playlist document.

    Returns ``{"valid": True, "itemCount": n}`` or
    ``{"valid": False, "error": ..., "details": [{"path", "message"}, ...]}``.
    """
    if not isinstance(playlist, dict):
        return {"valid": False, "error": "Playlist must be a JSON object",
                "details": [{"path": "(root)", "message": "expected an object"}]}
    try:
        parsed = Playlist.model_validate(playlist)
    except ValidationError as exc:
        details = [{"path": _path(e["loc"]), "message": e["msg"]} for e in exc.errors()]
        return {
            "valid": False,
            "error": f"Playlist does not conform to DP-1 ({len(details)} problem(s))",
            "details": details,
        }
    return {"valid": True, "itemCount": len(parsed.items)}


def verify_playlist_file(path: str | Path) -> dict[str, Any]:
    """Read a playlist file and validate it; the parsed playlist is included when valid."""
    path = Path(path)
    if not path.exists():
        return {"valid": False, "error": f"Playlist file not found: {path}"}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        return {"valid": False, "error": f"Invalid JSON: {e}"}

    result = validate_dp1_playlist(data)
    if result["valid"]:
        result["playlist"] = data
    return result
