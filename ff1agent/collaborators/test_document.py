import base64
import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from ff1agent.collaborators.document import build_dp1_playlist, generate_title, slugify
from ff1agent.collaborators.signer import public_key_hex, sign_playlist, verify_signature
from ff1agent.collaborators.verifier import validate_dp1_playlist, verify_playlist_file


@pytest.fixture
def private_key() -> str:
    raw = Ed25519PrivateKey.generate().private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return base64.b64encode(raw).decode()


def test_slugify_strips_accents_and_punctuation() -> None:
    assert slugify("Café Noir: Vol. 2!") == "cafe-noir-vol-2"
    assert slugify("   ").startswith("playlist-")


def test_generate_title_reflects_collections(make_item) -> None:
    assert generate_title([make_item(1), make_item(2)]) == "NFT Collection Playlist"
    assert generate_title([make_item(1), make_item(2, contract="KT1abc")]) == "Multi-Collection NFT Playlist"
    assert generate_title([{"source": "https://x", "duration": 5}]) == "DP1 Playlist (1 item)"


def test_build_playlist_is_valid_dp1(make_item) -> None:
    playlist = build_dp1_playlist(
        [make_item(1), json.dumps(make_item(2))], title="Evening", default_duration=15,
        playlist_id="fixed-id", created="2025-01-01T00:00:00Z",
    )

    assert playlist["id"] == "fixed-id"
    assert playlist["slug"] == "evening"
    assert playlist["dpVersion"] == "1.0.0"
    assert playlist["defaults"]["duration"] == 15
    assert playlist["items"][1]["title"] == "Token #2"
    assert "signature" not in playlist
    assert validate_dp1_playlist(playlist) == {"valid": True, "itemCount": 2}


def test_build_playlist_needs_items() -> None:
    with pytest.raises(ValueError):
        build_dp1_playlist([])


def test_signed_playlist_verifies_and_detects_tampering(make_item, private_key) -> None:
    playlist = build_dp1_playlist([make_item(1)], title="Signed", private_key=private_key)

    assert playlist["signature"].startswith("ed25519:0x")
    public = public_key_hex(private_key)
    assert verify_signature(playlist, public)

    playlist["title"] = "Tampered"
    assert not verify_signature(playlist, public)


def test_signing_ignores_existing_signature(make_item, private_key) -> None:
    playlist = build_dp1_playlist([make_item(1)], private_key=private_key)
    assert sign_playlist(playlist, private_key) == playlist["signature"]


def test_bad_signing_key_leaves_playlist_unsigned(make_item) -> None:
    playlist = build_dp1_playlist([make_item(1)], private_key="not-a-key")
    assert "signature" not in playlist


def test_validation_reports_paths(make_item) -> None:
    bad_item = make_item(1)
    bad_item["duration"] = 0
    bad_item["license"] = "stolen"
    playlist = build_dp1_playlist([bad_item], title="Bad")

    result = validate_dp1_playlist(playlist)

    assert result["valid"] is False
    paths = {d["path"] for d in result["details"]}
    assert {"items[0].duration", "items[0].license"} <= paths


def test_verify_playlist_file(tmp_path, make_item) -> None:
    path = tmp_path / "playlist.json"
    assert verify_playlist_file(path)["error"].startswith("Playlist file not found")

    path.write_text("{broken")
    assert verify_playlist_file(path)["error"].startswith("Invalid JSON")

    playlist = build_dp1_playlist([make_item(1)], title="Ok")
    path.write_text(json.dumps(playlist))
    result = verify_playlist_file(path)
    assert result["valid"] is True
    assert result["playlist"]["title"] == "Ok"
