"""Run-scoped object registry.

The model never sees full items or playlists, only their ids.  The registry
maps those ids back to the real objects for the duration of one run.
"""

from __future__ import annotations

from typing import Any, Literal

from loguru import logger

from ff1agent.errors import InvalidIdError

Kind = Literal["item", "playlist"]


class Registry:
    """Two keyed stores (items, playlists) with a full-clear lifetime."""

    def __init__(self) -> None:
        self._stores: dict[str, dict[str, Any]] = {"item": {}, "playlist": {}}

    def put(self, kind: Kind, obj_id: str, value: Any) -> None:
        if not obj_id:
            raise InvalidIdError(f"{kind.capitalize()} ID is required")
        self._store(kind)[obj_id] = value

    def get(self, kind: Kind, obj_id: str) -> Any | None:
        """Return the stored value, or ``None`` when the id is unknown."""
        return self._store(kind).get(obj_id)

    def has(self, kind: Kind, obj_id: str) -> bool:
        return obj_id in self._store(kind)

    # Convenience wrappers used by the operations

    def store_item(self, item: dict[str, Any]) -> str:
        item_id = str(item.get("id") or "")
        self.put("item", item_id, item)
        return item_id

    def get_item(self, item_id: str) -> dict[str, Any] | None:
        return self.get("item", item_id)

    def store_playlist(self, playlist: dict[str, Any]) -> str:
        playlist_id = str(playlist.get("id") or "")
        self.put("playlist", playlist_id, playlist)
        return playlist_id

    def get_playlist(self, playlist_id: str) -> dict[str, Any] | None:
        return self.get("playlist", playlist_id)

    def clear(self) -> None:
        counts = self.stats()
        for store in self._stores.values():
            store.clear()
        logger.debug(
            f"Registry cleared ({counts['item_count']} items, "
            f"{counts['playlist_count']} playlists)"
        )

    def stats(self) -> dict[str, int]:
        return {
            "item_count": len(self._stores["item"]),
            "playlist_count": len(self._stores["playlist"]),
        }

    def _store(self, kind: str) -> dict[str, Any]:
        try:
            return self._stores[kind]
        except KeyError:
            raise ValueError(f"Unknown registry kind '{kind}'") from None
