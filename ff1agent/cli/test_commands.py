import json

import pytest
from typer.testing import CliRunner

from ff1agent.cli.commands import app
from ff1agent.collaborators.document import build_dp1_playlist

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for key in ["FF1_MODEL", "FF1_GROK_API_KEY", "FF1_DEVICE_HOST", "FF1_DEVICE_NAME"]:
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "config.json").write_text(json.dumps({
        "defaultModel": "grok",
        "models": {"grok": {"apiKey": "secret-key"}},
        "ff1Devices": {"devices": [{"name": "Living Room", "host": "http://ff1-living.local:1111"}]},
    }))
    return tmp_path


def test_validate_accepts_a_valid_playlist(workdir, make_item) -> None:
    path = workdir / "playlist.json"
    path.write_text(json.dumps(build_dp1_playlist([make_item(1), make_item(2)], title="Two")))

    result = runner.invoke(app, ["validate", "playlist.json"])

    assert result.exit_code == 0
    assert "(2 items)" in result.stdout


def test_validate_lists_problems(workdir, make_item) -> None:
    bad = make_item(1, duration=0)
    path = workdir / "playlist.json"
    path.write_text(json.dumps(build_dp1_playlist([bad], title="Broken")))

    result = runner.invoke(app, ["validate", "playlist.json"])

    assert result.exit_code == 1
    assert "items[0].duration" in result.stdout


def test_validate_missing_file(workdir) -> None:
    result = runner.invoke(app, ["validate", "nope.json"])

    assert result.exit_code == 1
    assert "Playlist file not found" in result.stdout


def test_config_init_writes_camel_case_file(workdir) -> None:
    target = workdir / "fresh" / "config.json"

    result = runner.invoke(app, ["config", "init", "--path", str(target)])

    assert result.exit_code == 0
    data = json.loads(target.read_text())
    assert "defaultModel" in data
    assert "ff1Devices" in data


def test_config_show_masks_secrets(workdir) -> None:
    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    assert "secret-key" not in result.stdout
    assert "***" in result.stdout


def test_status_lists_devices(workdir) -> None:
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "Living Room" in result.stdout
    assert "grok" in result.stdout


def test_publish_goes_through_publish_tool(workdir, monkeypatch) -> None:
    published = []

    async def fake_publish(self, file_path, server):
        published.append((str(file_path), server.base_url, server.api_key))
        return {"success": True, "playlistId": "pub-9"}

    monkeypatch.setattr("ff1agent.agent.tools.delivery.PublishPlaylistTool.publish", fake_publish)

    result = runner.invoke(app, ["publish", "playlist.json", "--server", "https://feed.test"])

    assert result.exit_code == 0
    assert "pub-9" in result.stdout
    assert published == [("playlist.json", "https://feed.test", None)]


def test_publish_reports_missing_file(workdir) -> None:
    result = runner.invoke(app, ["publish", "nope.json", "--server", "https://feed.test"])

    assert result.exit_code == 1
    assert "Playlist file not found" in result.stdout
