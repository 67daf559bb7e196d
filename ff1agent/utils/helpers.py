"""Small helpers shared across ff1agent."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def truncate(text: str | None, limit: int = 80) -> str:
    """Shorten *text* to ``limit`` characters, marking the cut with an ellipsis."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."


def canonical_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def read_json_file(path: str | Path) -> Any:
    """Read and parse a JSON file.

    Raises ``FileNotFoundError`` or ``json.JSONDecodeError``.
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)
