"""NFT indexer client.

Talks to the Feral File indexer (GraphQL v2) and converts indexed tokens
into DP-1 playlist items.  Token identifiers use the CAIP-2 style
``{chain}:{standard}:{contract}:{token}`` form the indexer expects.
"""

from __future__ import annotations

import asyncio
import hashlib
import random
from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from ff1agent.collaborators.http import HttpCollaborator
from ff1agent.config.schema import IndexerConfig
from ff1agent.errors import AcquisitionError

_TOKENS_QUERY = """
query getTokens($owner: [String!], $token_cids: [String!], $contract_addresses: [String!], $limit: Uint8, $offset: Uint64) {
  tokens(owner: $owner, token_cids: $token_cids, contract_addresses: $contract_addresses, limit: $limit, offset: $offset, expand: ["metadata", "enrichment_source", "metadata_media_assets"]) {
    token_cid
    chain
    standard
    contract_address
    token_number
    current_owner
    burned
    metadata {
      name
      description
      mime_type
      image_url
      animation_url
      artists { did name }
    }
    enrichment_source {
      name
      description
      image_url
      animation_url
      artists { did name }
    }
    metadata_media_assets {
      source_url
      mime_type
      variant_urls
    }
  }
}
"""

_TRIGGER_TOKENS_MUTATION = """
mutation TriggerIndexing($token_cids: [String!]!) {
  triggerIndexing(token_cids: $token_cids) { workflow_id run_id }
}
"""

_TRIGGER_ADDRESSES_MUTATION = """
mutation TriggerIndexing($addresses: [String!]!) {
  triggerIndexing(addresses: $addresses) { workflow_id run_id }
}
"""

_CAIP2 = {
    "ethereum": "eip155:1",
    "tezos": "tezos:mainnet",
}

# Chain names as DP-1 provenance spells them
_DP1_CHAINS = {
    "ethereum": "evm",
    "polygon": "evm",
    "arbitrum": "evm",
    "optimism": "evm",
    "base": "evm",
    "zora": "evm",
    "tezos": "tezos",
    "bitmark": "bitmark",
}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def correct_chain(chain: str, contract_address: str) -> str:
    """Fix a chain that contradicts the contract address prefix."""
    chain = (chain or "").lower()
    if contract_address.startswith("KT") and chain != "tezos":
        logger.warning(
            f"Contract {contract_address} starts with KT but chain={chain!r}; using tezos"
        )
        return "tezos"
    if contract_address.startswith("0x") and chain == "tezos":
        logger.warning(
            f"Contract {contract_address} starts with 0x but chain='tezos'; using ethereum"
        )
        return "ethereum"
    return chain


def detect_token_standard(chain: str, contract_address: str) -> str:
    chain = chain.lower()
    if chain == "tezos" or contract_address.startswith("KT"):
        return "fa2"
    if chain == "ethereum":
        return "erc721"
    return "other"


def build_token_cid(chain: str, contract_address: str, token_id: str) -> str:
    """``eip155:1:erc721:0xabc:1`` / ``tezos:mainnet:fa2:KT1abc:7``."""
    caip2 = _CAIP2.get(chain.lower())
    if not caip2:
        raise ValueError(f"Unsupported chain: {chain}. Only ethereum and tezos are supported.")
    standard = detect_token_standard(chain, contract_address)
    return f"{caip2}:{standard}:{contract_address}:{token_id}"


def item_id_for(contract_address: str, token_id: str) -> str:
    """Deterministic UUID-shaped id derived from contract and token number."""
    digest = hashlib.sha256(f"{contract_address}-{token_id}".encode()).hexdigest()
    return f"{digest[:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"


def _usable(url: str | None) -> bool:
    return bool(url) and not url.startswith("data:")


def best_source(
    metadata: dict[str, Any],
    enrichment: dict[str, Any],
    media_assets: list[dict[str, Any]],
) -> str:
    """Pick the display URL: animation, then media asset, then image."""
    candidates = [
        metadata.get("animation_url"),
        enrichment.get("animation_url"),
        *(a.get("source_url") for a in media_assets or []),
        metadata.get("image_url"),
        enrichment.get("image_url"),
    ]
    for url in candidates:
        if _usable(url):
            return url
    return ""


def token_to_item(token: dict[str, Any], chain: str, duration: int) -> dict[str, Any] | None:
    """Convert one indexer token into a DP-1 item, or ``None`` if it has no usable media."""
    metadata = token.get("metadata") or {}
    enrichment = token.get("enrichment_source") or {}
    contract = token.get("contract_address") or ""
    token_number = str(token.get("token_number") or "")

    source = best_source(metadata, enrichment, token.get("metadata_media_assets") or [])
    if not source:
        logger.warning(f"No usable source URL for token {contract}:{token_number}")
        return None

    title = metadata.get("name") or enrichment.get("name") or f"Token #{token_number}"
    return {
        "id": item_id_for(contract, token_number),
        "title": title,
        "source": source,
        "duration": duration,
        "license": "open",
        "created": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "provenance": {
            "type": "onChain",
            "contract": {
                "chain": _DP1_CHAINS.get(chain.lower(), "other"),
                "standard": "other",
                "address": contract,
                "tokenId": token_number,
            },
        },
    }


def chain_for_contract(contract_address: str) -> str:
    return "tezos" if contract_address.startswith("KT") else "ethereum"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class IndexerClient(HttpCollaborator):
    """Fetches tokens by id, by contract or by owner and returns DP-1 items."""

    def __init__(
        self,
        config: IndexerConfig | None = None,
        rng: random.Random | None = None,
        **kwargs: Any,
    ):
        self.config = config or IndexerConfig()
        kwargs.setdefault("timeout", self.config.timeout)
        super().__init__(**kwargs)
        self._rng = rng or random.Random()

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        async def _once() -> dict[str, Any]:
            resp = await self._post(
                self.config.endpoint,
                {"query": query, "variables": variables},
                headers={"Content-Type": "application/json"},
            )
            resp.raise_for_status()
            return resp.json()

        result = await self.retry_policy.run(_once, description="indexer GraphQL")
        if result.get("errors"):
            messages = ", ".join(e.get("message", "") for e in result["errors"])
            raise AcquisitionError(f"GraphQL errors: {messages}")
        return result.get("data") or {}

    async def query_tokens(
        self,
        token_cids: list[str] | None = None,
        owners: list[str] | None = None,
        contract_addresses: list[str] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        variables = {
            "owner": owners or None,
            "token_cids": token_cids or None,
            "contract_addresses": contract_addresses or None,
            "limit": limit,
            "offset": offset,
        }
        data = await self._graphql(_TOKENS_QUERY, variables)
        return data.get("tokens") or []

    async def trigger_indexing(
        self,
        token_cids: list[str] | None = None,
        addresses: list[str] | None = None,
    ) -> dict[str, Any]:
        """Start a background indexing workflow; never raises."""
        if token_cids:
            mutation, variables = _TRIGGER_TOKENS_MUTATION, {"token_cids": token_cids}
        else:
            mutation, variables = _TRIGGER_ADDRESSES_MUTATION, {"addresses": addresses or []}
        try:
            data = await self._graphql(mutation, variables)
        except (httpx.HTTPError, AcquisitionError) as e:
            logger.error(f"Indexing trigger failed: {e}")
            return {"success": False, "error": str(e)}

        triggered = data.get("triggerIndexing") or {}
        if not triggered.get("workflow_id"):
            return {"success": False, "error": "No workflow ID returned"}
        logger.info(f"Indexing workflow started ({triggered['workflow_id']})")
        return {
            "success": True,
            "workflow_id": triggered["workflow_id"],
            "run_id": triggered.get("run_id"),
        }

    async def _token_item(
        self, sem: asyncio.Semaphore, chain: str, contract: str, token_id: str, duration: int
    ) -> dict[str, Any] | None:
        async with sem:
            cid = build_token_cid(chain, contract, token_id)
            try:
                tokens = await self.query_tokens(token_cids=[cid], limit=1)
            except (httpx.HTTPError, AcquisitionError) as e:
                logger.error(f"Token lookup failed for {cid}: {e}")
                return None
            if not tokens:
                logger.info(f"Token {cid} not indexed yet, triggering indexing")
                await self.trigger_indexing(token_cids=[cid])
                return None
            return token_to_item(tokens[0], chain, duration)

    async def get_tokens_by_ids(
        self, chain: str, contract_address: str, token_ids: list[str], duration: int
    ) -> list[dict[str, Any]]:
        """Fetch specific tokens concurrently; tokens that fail are skipped."""
        chain = correct_chain(chain, contract_address)
        if chain not in _CAIP2:
            raise AcquisitionError(f"Unsupported blockchain: {chain}")
        sem = asyncio.Semaphore(max(1, self.config.concurrency))
        results = await asyncio.gather(*(
            self._token_item(sem, chain, contract_address, t, duration) for t in token_ids
        ))
        items = [r for r in results if r]
        logger.info(f"Indexer returned {len(items)}/{len(token_ids)} tokens from {contract_address}")
        return items

    async def get_tokens_by_contract(
        self, chain: str, contract_address: str, quantity: int, duration: int
    ) -> list[dict[str, Any]]:
        """Sample up to ``quantity`` tokens from a contract."""
        chain = correct_chain(chain, contract_address)
        try:
            tokens = await self.query_tokens(
                contract_addresses=[contract_address], limit=min(quantity, 255)
            )
        except httpx.HTTPError as e:
            raise AcquisitionError(f"Indexer request failed: {e}") from e
        items = [i for t in tokens if (i := token_to_item(t, chain, duration))]
        return items[:quantity]

    async def get_tokens_by_owner(
        self, owner_address: str, quantity: int | None, duration: int
    ) -> list[dict[str, Any]]:
        """Tokens held by ``owner_address``; ``quantity=None`` means all of them.

        An owner with nothing indexed gets an indexing workflow started and
        an empty result.
        """
        try:
            tokens = await self.query_tokens(owners=[owner_address], limit=self.config.owner_limit)
        except httpx.HTTPError as e:
            raise AcquisitionError(f"Indexer request failed: {e}") from e

        if not tokens:
            logger.info(f"No tokens found for {owner_address}, starting indexing")
            await self.trigger_indexing(addresses=[owner_address])
            return []

        if quantity and len(tokens) > quantity:
            tokens = self._rng.sample(tokens, quantity)

        items = []
        for token in tokens:
            chain = chain_for_contract(token.get("contract_address") or "")
            item = token_to_item(token, chain, duration)
            if item:
                items.append(item)
        logger.info(f"Got {len(items)} token(s) for owner {owner_address}")
        return items
