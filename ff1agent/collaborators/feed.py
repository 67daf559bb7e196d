"""DP-1 feed client: playlist search, lookup and item sampling."""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from difflib import SequenceMatcher
from typing import Any

import httpx
from loguru import logger

from ff1agent.collaborators.http import HttpCollaborator
from ff1agent.errors import AcquisitionError

MIN_MATCH_SCORE = 0.3


def match_score(term: str, title: str) -> float:
    """Similarity in [0, 1]; a title containing the term scores at least 0.8."""
    term, title = term.lower().strip(), (title or "").lower().strip()
    if not term or not title:
        return 0.0
    ratio = SequenceMatcher(None, term, title).ratio()
    if term in title:
        return max(ratio, 0.8 + 0.2 * ratio)
    return ratio


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class FeedClient(HttpCollaborator):
    """Reads playlists from one or more DP-1 feed servers."""

    def __init__(
        self,
        base_urls: list[str],
        rng: random.Random | None = None,
        page_size: int = 50,
        top_n: int = 10,
        max_items: int = 500,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.base_urls = [u.rstrip("/") for u in base_urls]
        self.page_size = page_size
        self.top_n = top_n
        self.max_items = max_items
        self._rng = rng or random.Random()

    async def _search_feed(self, feed_url: str, term: str) -> list[dict[str, Any]]:
        """Walk one feed page by page, keeping the best ``top_n`` titles of each page."""
        matches: list[dict[str, Any]] = []
        offset = 0
        while offset < self.max_items:
            limit = min(self.page_size, self.max_items - offset)
            try:
                data = await self._get(
                    f"{feed_url}/playlists",
                    params={"limit": limit, "offset": offset, "sort": "-created"},
                )
            except httpx.HTTPError as e:
                logger.warning(f"Feed {feed_url} page at offset {offset} failed: {e}")
                break

            playlists = (data or {}).get("items") or []
            if not playlists:
                break

            scored = [
                (match_score(term, p.get("title", "")), p) for p in playlists if p.get("title")
            ]
            scored = [s for s in scored if s[0] >= MIN_MATCH_SCORE]
            scored.sort(key=lambda s: s[0], reverse=True)
            for score, p in scored[: self.top_n]:
                matches.append(
                    {"title": p["title"], "id": p.get("id"), "feedUrl": feed_url, "score": score}
                )

            if len(playlists) < limit:
                break
            offset += len(playlists)
        return matches

    async def search(self, term: str) -> dict[str, Any]:
        """Fuzzy search across every feed.

        Returns ``{success, bestMatch, candidates, playlistMap}`` where
        ``playlistMap`` maps each candidate title to ``{id, feedUrl}``.
        """
        per_feed = await asyncio.gather(*(self._search_feed(u, term) for u in self.base_urls))
        matches = [m for feed_matches in per_feed for m in feed_matches]
        if not matches:
            return {"success": False, "error": f'No matching playlists found for "{term}"'}

        matches.sort(key=lambda m: m["score"], reverse=True)
        playlist_map: dict[str, dict[str, Any]] = {}
        for m in matches:
            playlist_map.setdefault(m["title"], {"id": m["id"], "feedUrl": m["feedUrl"]})

        best = matches[0]["title"]
        logger.info(f'Feed search "{term}" → "{best}" ({len(playlist_map)} candidates)')
        return {
            "success": True,
            "bestMatch": best,
            "candidates": list(playlist_map),
            "playlistMap": playlist_map,
        }

    async def get_playlist(self, id_or_slug: str, feed_url: str | None = None) -> dict[str, Any]:
        """Fetch a full playlist, trying each feed in turn."""
        for url in [feed_url.rstrip("/")] if feed_url else self.base_urls:
            try:
                return await self._get(f"{url}/playlists/{id_or_slug}")
            except httpx.HTTPError as e:
                logger.debug(f"Playlist {id_or_slug} not on {url}: {e}")
        raise AcquisitionError(f'Playlist "{id_or_slug}" not found in any feed')

    def extract_items(
        self,
        playlist: dict[str, Any],
        quantity: int,
        duration: int | None,
        shuffle: bool = True,
    ) -> list[dict[str, Any]]:
        """Sample up to ``quantity`` items, overriding duration and backfilling ``created``."""
        items = list(playlist.get("items") or [])
        if shuffle and len(items) > quantity:
            items = self._rng.sample(items, quantity)
        items = items[:quantity]
        return [
            {
                **item,
                "duration": duration or item.get("duration"),
                "created": item.get("created") or _now_iso(),
            }
            for item in items
        ]

    async def fetch_items(
        self,
        name: str,
        quantity: int,
        duration: int,
        playlist_map: dict[str, dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Resolve ``name`` through ``playlist_map`` (or use it as an id) and sample items."""
        entry = (playlist_map or {}).get(name)
        playlist_id = entry["id"] if entry else name
        feed_url = entry["feedUrl"] if entry else None
        try:
            playlist = await self.get_playlist(playlist_id, feed_url)
        except AcquisitionError as e:
            return {"success": False, "error": str(e), "items": []}
        items = self.extract_items(playlist, quantity, duration)
        logger.info(f'Got {len(items)} item(s) from "{playlist.get("title") or playlist_id}"')
        return {"success": True, "playlist": playlist, "items": items}

    async def fetch_exact(self, name: str, quantity: int, duration: int) -> dict[str, Any]:
        """Deterministic lookup: only a case-insensitive exact title match is accepted."""
        found = await self.search(name)
        if not found["success"]:
            return {"success": False, "error": found["error"], "items": []}
        wanted = name.lower().strip()
        for title, entry in found["playlistMap"].items():
            if title.lower().strip() == wanted:
                return await self.fetch_items(title, quantity, duration, {title: entry})
        return {
            "success": False,
            "error": f'No exact match found for playlist "{name}"',
            "items": [],
        }
