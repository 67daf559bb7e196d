import random

import httpx
import pytest

from ff1agent.collaborators.feed import FeedClient, match_score

FEED = "https://feed.test/api/v1"


def _playlist(pid: str, title: str, n_items: int = 6) -> dict:
    return {
        "id": pid,
        "title": title,
        "items": [
            {"id": f"{pid}-{i}", "title": f"{title} #{i}", "source": f"https://a/{pid}/{i}",
             "duration": 30, "license": "open"}
            for i in range(n_items)
        ],
    }


PLAYLISTS = [
    _playlist("p1", "Social Codes"),
    _playlist("p2", "Social Codes Remix"),
    _playlist("p3", "Quartz 99"),
]


def _handler(playlists: list[dict], requests: list[httpx.Request] | None = None):
    by_id = {p["id"]: p for p in playlists}

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        path = request.url.path
        if path.endswith("/playlists"):
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            page = [{"id": p["id"], "title": p["title"]} for p in playlists[offset:offset + limit]]
            return httpx.Response(200, json={"items": page})
        pid = path.rsplit("/", 1)[-1]
        if pid in by_id:
            return httpx.Response(200, json=by_id[pid])
        return httpx.Response(404, json={"error": "not found"})

    return handler


def _client(playlists=PLAYLISTS, requests=None, **kwargs) -> FeedClient:
    return FeedClient(
        [FEED + "/"],
        rng=random.Random(3),
        transport=httpx.MockTransport(_handler(playlists, requests)),
        **kwargs,
    )


def test_match_score_favours_containment() -> None:
    assert match_score("social codes", "Social Codes") == 1.0
    assert match_score("codes", "Social Codes") >= 0.8
    assert match_score("zzz", "Social Codes") < 0.3
    assert match_score("", "x") == 0.0


@pytest.mark.asyncio
async def test_search_returns_best_match_and_playlist_map() -> None:
    found = await _client().search("social codes")

    assert found["success"] is True
    assert found["bestMatch"] == "Social Codes"
    assert "Social Codes Remix" in found["candidates"]
    assert "Quartz 99" not in found["candidates"]
    assert found["playlistMap"]["Social Codes"] == {"id": "p1", "feedUrl": FEED}


@pytest.mark.asyncio
async def test_search_pages_through_the_feed() -> None:
    requests: list[httpx.Request] = []
    many = [_playlist(f"x{i}", f"Filler {i}", 1) for i in range(5)] + [_playlist("p9", "Social Codes")]

    found = await _client(many, requests, page_size=2).search("Social Codes")

    assert found["bestMatch"] == "Social Codes"
    assert [r.url.params["offset"] for r in requests] == ["0", "2", "4", "6"]


@pytest.mark.asyncio
async def test_search_without_matches_fails() -> None:
    found = await _client().search("Wwwww")

    assert found == {"success": False, "error": 'No matching playlists found for "Wwwww"'}


@pytest.mark.asyncio
async def test_fetch_items_samples_and_overrides_duration() -> None:
    client = _client()
    found = await client.search("Social Codes")

    fetched = await client.fetch_items("Social Codes", 3, 8, found["playlistMap"])

    assert fetched["success"] is True
    assert len(fetched["items"]) == 3
    assert {i["duration"] for i in fetched["items"]} == {8}
    assert all(i["created"] for i in fetched["items"])
    assert all(i["id"].startswith("p1-") for i in fetched["items"])


@pytest.mark.asyncio
async def test_fetch_items_unknown_playlist_reports_error() -> None:
    fetched = await _client().fetch_items("missing", 3, 8)

    assert fetched["success"] is False
    assert fetched["items"] == []
    assert "not found" in fetched["error"]


@pytest.mark.asyncio
async def test_fetch_exact_requires_exact_title() -> None:
    client = _client()

    exact = await client.fetch_exact("social codes", 2, 10)
    fuzzy = await client.fetch_exact("Social", 2, 10)

    assert exact["success"] is True
    assert all(i["id"].startswith("p1-") for i in exact["items"])
    assert fuzzy["success"] is False
    assert fuzzy["error"] == 'No exact match found for playlist "Social"'
