"""Acquisition operations: turn requirements into registry-held items.

The model only ever gets projections back (id, title, truncated source,
duration, provenance summary).  Full items stay in the run's registry and
are looked up again by id when the playlist is built.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from ff1agent.agent.models import (
    REQUIREMENT_TYPES,
    ByContract,
    ByFeedName,
    ByOwner,
    Exact,
    Requirement,
    parse_requirement,
)
from ff1agent.agent.run import RunContext
from ff1agent.agent.services import Services
from ff1agent.agent.tools.base import Tool
from ff1agent.errors import AcquisitionError, RequirementValidationError

REQUIREMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": (
        "The COMPLETE requirement object. Pass every field of the original "
        "requirement without modification or truncation."
    ),
    "properties": {
        "type": {
            "type": "string",
            "enum": list(REQUIREMENT_TYPES),
            "description": "Type of requirement",
        },
        "blockchain": {
            "type": ["string", "null"],
            "description": "Blockchain network (REQUIRED for build_playlist)",
        },
        "contractAddress": {
            "type": ["string", "null"],
            "description": "FULL contract address (REQUIRED for build_playlist)",
        },
        "tokenIds": {
            "type": ["array", "null"],
            "items": {"type": ["string", "integer"]},
            "description": "ALL token ids, never truncated",
        },
        "ownerAddress": {
            "type": ["string", "null"],
            "description": "Owner address or .eth/.tez domain (REQUIRED for query_address)",
        },
        "playlistName": {
            "type": ["string", "null"],
            "description": "Feed playlist name (REQUIRED for fetch_feed)",
        },
        "quantity": {
            "type": ["integer", "string", "null"],
            "description": 'Maximum number of items, or "all"',
        },
        "source": {"type": ["string", "null"]},
    },
    "required": ["type"],
    "additionalProperties": False,
}


async def _fetch_requirement(
    req: Requirement,
    duration: int,
    run: RunContext,
    services: Services,
    exact_feed: bool = False,
) -> list[dict[str, Any]]:
    if isinstance(req, ByContract):
        if req.token_ids:
            items = await services.indexer.get_tokens_by_ids(
                req.chain, req.contract_address, list(req.token_ids), duration
            )
            if isinstance(req.quantity, Exact):
                items = items[: req.quantity.count]
            return items
        count = req.quantity.limit(services.config.indexer.owner_limit) if req.quantity else 5
        return await services.indexer.get_tokens_by_contract(
            req.chain, req.contract_address, count, duration
        )

    if isinstance(req, ByOwner):
        owner = req.owner_address
        if req.is_domain:
            resolved = await services.domains.resolve(owner)
            if not resolved["resolved"]:
                raise AcquisitionError(
                    resolved.get("error") or f"Could not resolve domain {owner}"
                )
            logger.info(f"Resolved {owner} to {resolved['address']}")
            owner = resolved["address"]
        quantity = req.quantity.count if isinstance(req.quantity, Exact) else None
        return await services.indexer.get_tokens_by_owner(owner, quantity, duration)

    if isinstance(req, ByFeedName):
        count = req.quantity.limit(services.feed.max_items)
        if exact_feed:
            fetched = await services.feed.fetch_exact(req.playlist_name, count, duration)
        else:
            found = await services.feed.search(req.playlist_name)
            if not found["success"]:
                raise AcquisitionError(found["error"])
            run.playlist_map.update(found["playlistMap"])
            fetched = await services.feed.fetch_items(
                found["bestMatch"], count, duration, found["playlistMap"]
            )
        if not fetched["success"]:
            raise AcquisitionError(fetched["error"])
        return fetched["items"]

    raise AcquisitionError(f"Unsupported requirement: {req!r}")


async def acquire(
    requirement: Requirement,
    duration: int,
    run: RunContext,
    services: Services,
    exact_feed: bool = False,
) -> dict[str, Any]:
    """Fetch one requirement into the run registry.

    Repeating the same (requirement, duration) pair returns the cached
    result, failures included, without touching the collaborators again.
    """
    key = RunContext.cache_key(requirement.to_dict(), duration)
    if key in run.query_cache:
        logger.debug(f"Query cache hit: {requirement.describe()}")
        return json.loads(run.query_cache[key])

    label = requirement.describe()
    try:
        items = await _fetch_requirement(requirement, duration, run, services, exact_feed)
    except (AcquisitionError, httpx.HTTPError, ValueError) as e:
        items, error = [], str(e)
    else:
        error = None if items else f"No items found for: {label}"

    if error:
        run.mark_failed(label, error)
        result = {"success": False, "requirement": label, "error": error,
                  "itemCount": 0, "items": []}
        run.query_cache[key] = json.dumps(result)
        return result

    result = {
        "success": True,
        "requirement": label,
        "itemCount": len(items),
        "items": run.add_items(items),
    }
    run.query_cache[key] = json.dumps(result)
    return result


class QueryRequirementTool(Tool):
    """Fetches items for one requirement of any type."""

    def __init__(self, run: RunContext, services: Services):
        self.run = run
        self.services = services

    @property
    def name(self) -> str:
        return "query_requirement"

    @property
    def description(self) -> str:
        return (
            "Query data for a requirement. Supports build_playlist (tokens from a contract), "
            "query_address (tokens owned by an address or .eth/.tez domain) and fetch_feed "
            "(items from a feed playlist). Returns item ids for build_playlist."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "requirement": REQUIREMENT_SCHEMA,
                "duration": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Display duration per item in seconds",
                },
            },
            "required": ["requirement", "duration"],
            "additionalProperties": False,
        }

    async def execute(self, requirement: dict[str, Any], duration: int, **kwargs: Any) -> str:
        try:
            req = parse_requirement(requirement)
        except RequirementValidationError as e:
            return json.dumps({"success": False, "error": str(e)})
        result = await acquire(req, int(duration), self.run, self.services)
        return json.dumps(result)


class SearchFeedPlaylistTool(Tool):

    def __init__(self, run: RunContext, services: Services):
        self.run = run
        self.services = services

    @property
    def name(self) -> str:
        return "search_feed_playlist"

    @property
    def description(self) -> str:
        return (
            "Fuzzy search for a playlist by name across all configured feed servers. "
            "Returns the best match and other candidate titles."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "playlistName": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Playlist name to search for",
                },
            },
            "required": ["playlistName"],
            "additionalProperties": False,
        }

    async def execute(self, playlistName: str, **kwargs: Any) -> str:
        try:
            found = await self.services.feed.search(playlistName)
        except httpx.HTTPError as e:
            logger.error(f"Feed search failed: {e}")
            return json.dumps({"success": False, "error": f"Feed search failed: {e}"})
        if not found["success"]:
            return json.dumps(found)
        self.run.playlist_map.update(found["playlistMap"])
        return json.dumps({
            "success": True,
            "bestMatch": found["bestMatch"],
            "candidates": found["candidates"],
        })


class FetchFeedPlaylistItemsTool(Tool):

    def __init__(self, run: RunContext, services: Services):
        self.run = run
        self.services = services

    @property
    def name(self) -> str:
        return "fetch_feed_playlist_items"

    @property
    def description(self) -> str:
        return (
            "Fetch a random sample of items from a feed playlist. Use the exact title "
            "returned by search_feed_playlist."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "playlistName": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Exact playlist title (bestMatch from search_feed_playlist)",
                },
                "quantity": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Number of items to sample",
                },
                "duration": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Display duration per item in seconds",
                },
            },
            "required": ["playlistName", "quantity", "duration"],
            "additionalProperties": False,
        }

    async def execute(
        self, playlistName: str, quantity: int, duration: int, **kwargs: Any
    ) -> str:
        label = f'Fetch {quantity} items from playlist "{playlistName}"'
        try:
            fetched = await self.services.feed.fetch_items(
                playlistName, int(quantity), int(duration), self.run.playlist_map
            )
        except httpx.HTTPError as e:
            logger.error(f"Feed fetch failed: {e}")
            fetched = {"success": False, "error": f"Feed fetch failed: {e}", "items": []}

        if not fetched["success"] or not fetched["items"]:
            error = fetched.get("error") or f'Playlist "{playlistName}" has no items'
            self.run.mark_failed(label, error)
            return json.dumps({"success": False, "error": error, "itemCount": 0, "items": []})

        items = self.run.add_items(fetched["items"])
        return json.dumps({
            "success": True,
            "playlist": (fetched.get("playlist") or {}).get("title") or playlistName,
            "itemCount": len(items),
            "items": items,
        })


class ResolveDomainsTool(Tool):

    def __init__(self, services: Services):
        self.services = services

    @property
    def name(self) -> str:
        return "resolve_domains"

    @property
    def description(self) -> str:
        return (
            "Resolve .eth (ENS) and .tez (Tezos Domains) names to wallet addresses. "
            "Unresolved names are listed in errors; the rest still resolve."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "domains": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "description": "Domain names, e.g. ['reas.eth', 'einstein-rosen.tez']",
                },
            },
            "required": ["domains"],
            "additionalProperties": False,
        }

    async def execute(self, domains: list[str], **kwargs: Any) -> str:
        result = await self.services.domains.resolve_batch(domains)
        return json.dumps({
            "success": result["success"],
            "domainMap": result["domainMap"],
            "resolutions": result["resolutions"],
            "errors": result["errors"],
        })
