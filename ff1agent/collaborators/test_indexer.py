import json
import random

import httpx
import pytest

from ff1agent.collaborators.indexer import (
    IndexerClient,
    best_source,
    build_token_cid,
    correct_chain,
    item_id_for,
    token_to_item,
)
from ff1agent.config.schema import IndexerConfig
from ff1agent.errors import AcquisitionError

CONTRACT = "0xb932a70a57673d89f4acffbe830e8ed7f75fb9e0"
OWNER = "0x" + "12" * 20


def _token(number: int, contract: str = CONTRACT, image: str | None = None) -> dict:
    return {
        "token_cid": f"eip155:1:erc721:{contract}:{number}",
        "contract_address": contract,
        "token_number": str(number),
        "metadata": {
            "name": f"Work {number}",
            "animation_url": None,
            "image_url": image or f"https://img.example.com/{number}.png",
        },
        "enrichment_source": None,
        "metadata_media_assets": [],
    }


class FakeIndexer:
    """GraphQL endpoint double; records every request body."""

    def __init__(self, tokens: list[dict]):
        self.tokens = tokens
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.bodies.append(body)
        if "triggerIndexing" in body["query"]:
            return httpx.Response(200, json={"data": {"triggerIndexing": {"workflow_id": "wf", "run_id": "r"}}})
        variables = body["variables"]
        tokens = self.tokens
        if variables["token_cids"]:
            tokens = [t for t in tokens if t["token_cid"] in variables["token_cids"]]
        return httpx.Response(200, json={"data": {"tokens": tokens[: variables["limit"]]}})

    @property
    def triggers(self) -> list[dict]:
        return [b["variables"] for b in self.bodies if "triggerIndexing" in b["query"]]


def _client(fake: FakeIndexer, seed: int = 1) -> IndexerClient:
    return IndexerClient(
        IndexerConfig(endpoint="https://indexer.test/graphql"),
        rng=random.Random(seed),
        transport=httpx.MockTransport(fake),
    )


def test_token_cid_and_chain_correction() -> None:
    assert build_token_cid("ethereum", CONTRACT, "5") == f"eip155:1:erc721:{CONTRACT}:5"
    assert build_token_cid("tezos", "KT1abc", "7") == "tezos:mainnet:fa2:KT1abc:7"
    assert correct_chain("ethereum", "KT1abc") == "tezos"
    assert correct_chain("tezos", CONTRACT) == "ethereum"
    with pytest.raises(ValueError):
        build_token_cid("solana", "abc", "1")


def test_token_to_item_prefers_animation_and_skips_data_urls() -> None:
    assert best_source(
        {"animation_url": "data:text/html,x", "image_url": "https://i/1.png"},
        {},
        [{"source_url": "https://cdn/1.mp4"}],
    ) == "https://cdn/1.mp4"

    item = token_to_item(_token(3), "ethereum", 12)
    assert item["id"] == item_id_for(CONTRACT, "3")
    assert item["duration"] == 12
    assert item["provenance"]["contract"] == {
        "chain": "evm", "standard": "other", "address": CONTRACT, "tokenId": "3",
    }
    assert token_to_item(_token(4, image="data:image/png;base64,AA"), "ethereum", 10) is None


@pytest.mark.asyncio
async def test_get_tokens_by_ids_skips_and_triggers_unindexed_tokens() -> None:
    fake = FakeIndexer([_token(1), _token(2)])

    items = await _client(fake).get_tokens_by_ids("ethereum", CONTRACT, ["1", "2", "99"], 10)

    assert [i["title"] for i in items] == ["Work 1", "Work 2"]
    assert fake.triggers == [{"token_cids": [f"eip155:1:erc721:{CONTRACT}:99"]}]


@pytest.mark.asyncio
async def test_get_tokens_by_owner_samples_quantity() -> None:
    fake = FakeIndexer([_token(n) for n in range(10)])

    items = await _client(fake).get_tokens_by_owner(OWNER, 3, 10)

    assert len(items) == 3
    assert len({i["id"] for i in items}) == 3
    assert fake.bodies[0]["variables"]["owner"] == [OWNER]
    assert fake.bodies[0]["variables"]["limit"] == 100


@pytest.mark.asyncio
async def test_get_tokens_by_owner_with_nothing_indexed_starts_indexing() -> None:
    fake = FakeIndexer([])

    assert await _client(fake).get_tokens_by_owner(OWNER, None, 10) == []
    assert fake.triggers == [{"addresses": [OWNER]}]


@pytest.mark.asyncio
async def test_get_tokens_by_contract_limits_results() -> None:
    fake = FakeIndexer([_token(n) for n in range(8)])

    items = await _client(fake).get_tokens_by_contract("ethereum", CONTRACT, 5, 10)

    assert len(items) == 5
    assert fake.bodies[0]["variables"]["contract_addresses"] == [CONTRACT]


@pytest.mark.asyncio
async def test_graphql_errors_become_acquisition_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": [{"message": "bad owner"}]})

    client = IndexerClient(IndexerConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(AcquisitionError, match="bad owner"):
        await client.get_tokens_by_owner(OWNER, None, 10)


@pytest.mark.asyncio
async def test_http_failures_become_acquisition_errors() -> None:
    client = IndexerClient(
        IndexerConfig(), transport=httpx.MockTransport(lambda request: httpx.Response(502))
    )

    with pytest.raises(AcquisitionError, match="Indexer request failed"):
        await client.get_tokens_by_contract("ethereum", CONTRACT, 5, 10)
