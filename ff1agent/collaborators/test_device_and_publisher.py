import json

import httpx
import pytest

from ff1agent.collaborators.device import DeviceClient
from ff1agent.collaborators.document import build_dp1_playlist
from ff1agent.collaborators.publisher import FeedPublisher
from ff1agent.config.schema import DeviceConfig

DEVICES = [
    DeviceConfig(host="http://living.local:1111/", name="Living Room", api_key="dev-key", topic_id="t-1"),
    DeviceConfig(host="http://studio.local:1111", name="Studio"),
    DeviceConfig(host="", name="Unconfigured"),
]


@pytest.fixture
def playlist(make_item) -> dict:
    return build_dp1_playlist([make_item(1), make_item(2)], title="Test")


@pytest.mark.asyncio
async def test_send_casts_to_named_device(playlist) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    client = DeviceClient(DEVICES, transport=httpx.MockTransport(handler))
    result = await client.send(playlist)

    assert result["success"] is True
    assert result["deviceName"] == "Living Room"
    request = seen[0]
    assert str(request.url) == "http://living.local:1111/api/cast?topicID=t-1"
    assert request.headers["API-KEY"] == "dev-key"
    body = json.loads(request.content)
    assert body["command"] == "displayPlaylist"
    assert body["request"]["dp1_call"]["title"] == "Test"
    assert body["request"]["intent"] == {"action": "now_display"}


@pytest.mark.asyncio
async def test_send_unknown_device_lists_available(playlist) -> None:
    client = DeviceClient(DEVICES, transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    result = await client.send(playlist, "Kitchen")

    assert result == {
        "success": False,
        "error": 'Device "Kitchen" not found. Available devices: Living Room, Studio',
    }


@pytest.mark.asyncio
async def test_send_reports_device_errors(playlist) -> None:
    client = DeviceClient(
        DEVICES, transport=httpx.MockTransport(lambda r: httpx.Response(503, text="busy"))
    )

    result = await client.send(playlist, "Studio")

    assert result["success"] is False
    assert result["error"].startswith("Device returned error 503")
    assert result["details"] == "busy"


@pytest.mark.asyncio
async def test_send_without_devices_or_playlist() -> None:
    assert "No FF1 devices configured" in (await DeviceClient([]).send({"id": "x"}))["error"]
    assert (await DeviceClient(DEVICES).send({}))["success"] is False


@pytest.mark.asyncio
async def test_publish_posts_validated_playlist(tmp_path, playlist) -> None:
    path = tmp_path / "playlist.json"
    path.write_text(json.dumps(playlist))
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": "pub-1"})

    publisher = FeedPublisher(transport=httpx.MockTransport(handler))
    result = await publisher.publish(path, "https://feed.test/api/v1/", "secret")

    assert result == {
        "success": True,
        "playlistId": "pub-1",
        "message": "Published to feed server (created)",
        "feedServer": "https://feed.test/api/v1",
    }
    assert str(seen[0].url) == "https://feed.test/api/v1/playlists"
    assert seen[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_publish_rejects_invalid_files(tmp_path) -> None:
    path = tmp_path / "playlist.json"
    path.write_text(json.dumps({"title": "no items"}))
    publisher = FeedPublisher(transport=httpx.MockTransport(lambda r: httpx.Response(201)))

    result = await publisher.publish(path, "https://feed.test")
    missing = await publisher.publish(tmp_path / "nope.json", "https://feed.test")

    assert result["success"] is False
    assert result["error"].startswith("Playlist validation failed")
    assert missing["error"].startswith("Playlist file not found")


@pytest.mark.asyncio
async def test_publish_reports_server_rejection(tmp_path, playlist) -> None:
    path = tmp_path / "playlist.json"
    path.write_text(json.dumps(playlist))
    publisher = FeedPublisher(
        transport=httpx.MockTransport(lambda r: httpx.Response(401, text="unauthorized"))
    )

    result = await publisher.publish(path, "https://feed.test")

    assert result == {
        "success": False,
        "error": "Failed to publish: unauthorized",
        "feedServer": "https://feed.test",
    }
