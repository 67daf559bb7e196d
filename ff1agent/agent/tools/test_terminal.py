import json

import pytest

from ff1agent.agent.models import ByFeedName, ByOwner, Exact, RequirementSet
from ff1agent.agent.tools.terminal import (
    ConfirmPublishPlaylistTool,
    ConfirmSendPlaylistTool,
    ParseRequirementsTool,
)
from ff1agent.collaborators.document import build_dp1_playlist
from ff1agent.config.schema import DeviceConfig
from ff1agent.errors import RequirementValidationError


@pytest.fixture
def playlist_file(tmp_path, make_item):
    path = tmp_path / "playlist.json"
    path.write_text(json.dumps(build_dp1_playlist([make_item(1)], title="Saved")))
    return path


def test_parse_requirements_builds_typed_request(config) -> None:
    request = ParseRequirementsTool(config).accept(
        requirements=[
            {"type": "query_address", "ownerAddress": "reas.eth", "quantity": "3"},
            {"type": "fetch_feed", "playlistName": "Social Codes", "quantity": 2},
        ],
        playlistSettings={"preserveOrder": False, "deviceName": "Living Room"},
    )

    assert isinstance(request, RequirementSet)
    assert request.requirements == (
        ByOwner("reas.eth", Exact(3)),
        ByFeedName("Social Codes", Exact(2)),
    )
    assert request.settings.duration_per_item == config.default_duration
    assert request.settings.shuffle
    assert request.settings.device_name == "Living Room"
    assert request.to_dict()["playlistSettings"]["deviceName"] == "Living Room"


def test_parse_requirements_applies_item_caps(config) -> None:
    config.agent.max_items_per_requirement = 4
    config.agent.max_total_items = 6

    request = ParseRequirementsTool(config).accept(
        requirements=[
            {"type": "fetch_feed", "playlistName": "a", "quantity": 10},
            {"type": "query_address", "ownerAddress": "reas.eth", "quantity": "all"},
        ]
    )

    assert sum(r.quantity.count for r in request.requirements) == 6


def test_total_duration_is_spread_over_items(config) -> None:
    request = ParseRequirementsTool(config).accept(
        requirements=[{"type": "fetch_feed", "playlistName": "a", "quantity": 4}],
        playlistSettings={"totalDuration": 120, "durationPerItem": None},
    )

    assert request.settings.duration_per_item == 30


@pytest.mark.asyncio
async def test_execute_reports_rejected_payloads(config) -> None:
    result = json.loads(await ParseRequirementsTool(config).execute(
        requirements=[{"type": "query_address"}]
    ))

    assert result["accepted"] is False
    assert "ownerAddress is required" in result["error"]


def test_confirm_send_matches_device_case_insensitively(config, playlist_file) -> None:
    confirmation = ConfirmSendPlaylistTool(config).accept(
        filePath=str(playlist_file), deviceName="living room"
    )

    assert confirmation.device_name == "Living Room"
    assert confirmation.playlist["title"] == "Saved"


def test_confirm_send_rejects_unknown_device_and_bad_files(config, playlist_file, tmp_path) -> None:
    config.ff1_devices.devices.append(DeviceConfig(host="http://studio:1111", name="Studio"))
    tool = ConfirmSendPlaylistTool(config)

    with pytest.raises(RequirementValidationError) as exc:
        tool.accept(filePath=str(playlist_file), deviceName="Kitchen")
    assert str(exc.value) == (
        'Device "Kitchen" not found. Available devices: Living Room, Studio. Please choose a device.'
    )

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"title": "no items"}))
    with pytest.raises(RequirementValidationError, match="Cannot send"):
        tool.accept(filePath=str(bad))


def test_confirm_send_without_devices(config, playlist_file) -> None:
    config.ff1_devices.devices.clear()

    with pytest.raises(RequirementValidationError, match="No FF1 devices configured"):
        ConfirmSendPlaylistTool(config).accept(filePath=str(playlist_file))


def test_confirm_publish(playlist_file, tmp_path) -> None:
    tool = ConfirmPublishPlaylistTool()

    confirmation = tool.accept(filePath=str(playlist_file), feedServer={"baseUrl": "https://feed.test/"})
    assert confirmation.feed_server.base_url == "https://feed.test"

    with pytest.raises(RequirementValidationError, match="Playlist file not found"):
        tool.accept(filePath=str(tmp_path / "missing.json"), feedServer={"baseUrl": "https://feed.test"})
