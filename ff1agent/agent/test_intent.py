import json

import pytest

from ff1agent.agent.intent import IntentResolver
from ff1agent.agent.models import ByContract, ByOwner, Exact, PublishConfirmation, SendConfirmation
from ff1agent.collaborators.document import build_dp1_playlist
from ff1agent.errors import NeedsClarificationError, ProviderError, RequirementValidationError

ETH = "0xb932a70a57673d89f4acffbe830e8ed7f75fb9e0"


def _tool_messages(messages: list[dict]) -> list[dict]:
    return [m for m in messages if m["role"] == "tool"]


@pytest.mark.asyncio
async def test_parse_requirements_call_ends_the_conversation(config, scripted_provider) -> None:
    provider = scripted_provider([
        scripted_provider.call("parse_requirements", {
            "requirements": [{"type": "query_address", "ownerAddress": "reas.eth", "quantity": 3}],
            "playlistSettings": {"durationPerItem": 6},
        }, content="Building 3 works from reas.eth."),
    ])
    resolver = IntentResolver(provider, config)

    result = await resolver.resolve("Pick 3 artworks from reas.eth, 6 seconds each")

    assert result.status == "requirements"
    assert result.payload.requirements == (ByOwner("reas.eth", Exact(3)),)
    assert result.payload.settings.duration_per_item == 6
    assert provider.requests[0]["messages"][0]["content"].startswith("SYSTEM: FF1 Intent Parser")
    assert set(provider.requests[0]["tools"]) == {
        "get_configured_devices", "get_feed_servers", "verify_addresses",
        "parse_requirements", "confirm_send_playlist", "confirm_publish_playlist",
    }


@pytest.mark.asyncio
async def test_lookup_results_are_fed_back_before_the_payload(config, scripted_provider) -> None:
    def pick_first_device(messages):
        devices = json.loads(_tool_messages(messages)[-1]["content"])["devices"]
        return scripted_provider.call("parse_requirements", {
            "requirements": [{"type": "fetch_feed", "playlistName": "Social Codes"}],
            "playlistSettings": {"deviceName": devices[0]["name"]},
        })

    provider = scripted_provider([
        scripted_provider.call("get_configured_devices"),
        pick_first_device,
    ])

    result = await IntentResolver(provider, config).resolve("Play Social Codes on my FF1")

    assert result.payload.settings.device_requested
    assert result.payload.settings.device_name == "Living Room"
    devices = json.loads(_tool_messages(provider.requests[1]["messages"])[0]["content"])
    assert devices["devices"][0] == {
        "name": "Living Room", "host": "http://ff1-living.local:1111", "topicID": ""
    }


@pytest.mark.asyncio
async def test_question_then_answer_keeps_history(config, scripted_provider) -> None:
    provider = scripted_provider([
        scripted_provider.say("Which contract and blockchain should I use?"),
        scripted_provider.call("verify_addresses", {"addresses": [ETH]}),
        scripted_provider.call("parse_requirements", {
            "requirements": [{"type": "build_playlist", "blockchain": "ethereum",
                              "contractAddress": ETH, "tokenIds": ["5", "10"]}],
        }),
    ])
    resolver = IntentResolver(provider, config)

    question = await resolver.resolve("Tokens 5 and 10 please")
    assert question.needs_clarification
    assert question.question == "Which contract and blockchain should I use?"

    result = await resolver.resolve(f"Contract {ETH} on ethereum")
    assert result.status == "requirements"
    assert result.payload.requirements == (ByContract("ethereum", ETH, ("5", "10")),)

    users = [m["content"] for m in provider.requests[-1]["messages"] if m["role"] == "user"]
    assert users == ["Tokens 5 and 10 please", f"Contract {ETH} on ethereum"]


@pytest.mark.asyncio
async def test_non_interactive_question_raises(config, scripted_provider) -> None:
    provider = scripted_provider([scripted_provider.say("Which playlist do you mean?")])
    resolver = IntentResolver(provider, config, interactive=False)

    with pytest.raises(NeedsClarificationError) as exc:
        await resolver.resolve("make me something")
    assert exc.value.question == "Which playlist do you mean?"


@pytest.mark.asyncio
async def test_invalid_addresses_become_a_question(config, scripted_provider) -> None:
    provider = scripted_provider([scripted_provider.call("verify_addresses", {"addresses": ["0x123"]})])

    result = await IntentResolver(provider, config).resolve("everything from 0x123")

    assert result.needs_clarification
    assert result.question.startswith('Some addresses are invalid. Invalid Ethereum address "0x123"')
    assert result.question.endswith("Please provide correct addresses.")


@pytest.mark.asyncio
async def test_rejected_requirements_are_fed_back_in_interactive_mode(config, scripted_provider) -> None:
    provider = scripted_provider([
        scripted_provider.call("parse_requirements", {"requirements": [{"type": "fetch_feed"}]}),
        scripted_provider.call("parse_requirements", {
            "requirements": [{"type": "fetch_feed", "playlistName": "a2p", "quantity": 2}],
        }),
    ])

    result = await IntentResolver(provider, config).resolve("2 from a2p")

    assert result.status == "requirements"
    rejection = json.loads(_tool_messages(provider.requests[1]["messages"])[0]["content"])
    assert rejection["success"] is False
    assert "playlistName is required" in rejection["error"]


@pytest.mark.asyncio
async def test_rejected_requirements_raise_in_non_interactive_mode(config, scripted_provider) -> None:
    provider = scripted_provider([
        scripted_provider.call("parse_requirements", {"requirements": [{"type": "fetch_feed", "quantity": 0}]}),
    ])

    with pytest.raises(RequirementValidationError):
        await IntentResolver(provider, config, interactive=False).resolve("something")


@pytest.mark.asyncio
async def test_lookup_depth_forces_a_terminal_turn(config, scripted_provider) -> None:
    config.agent.max_lookup_depth = 2
    provider = scripted_provider([
        scripted_provider.call("get_feed_servers"),
        scripted_provider.call("get_feed_servers"),
        scripted_provider.call("parse_requirements", {
            "requirements": [{"type": "fetch_feed", "playlistName": "a2p"}],
            "playlistSettings": {"feedServer": {"baseUrl": "https://feed.test"}},
        }),
    ])

    result = await IntentResolver(provider, config).resolve("publish 5 from a2p")

    assert result.payload.settings.feed_server.base_url == "https://feed.test"
    assert len(provider.requests) == 3
    assert provider.requests[2]["tools"] == [
        "parse_requirements", "confirm_send_playlist", "confirm_publish_playlist"
    ]
    assert provider.requests[2]["messages"][-1]["role"] == "system"


@pytest.mark.asyncio
async def test_send_and_publish_confirmations(config, scripted_provider, tmp_path, make_item) -> None:
    path = tmp_path / "playlist.json"
    path.write_text(json.dumps(build_dp1_playlist([make_item(1)], title="Saved")))
    provider = scripted_provider([
        scripted_provider.call("confirm_send_playlist", {"filePath": str(path)}),
        scripted_provider.call("confirm_publish_playlist", {
            "filePath": str(path), "feedServer": {"baseUrl": "https://feed.test", "apiKey": "k"},
        }),
    ])
    resolver = IntentResolver(provider, config)

    sent = await resolver.resolve("display the playlist")
    resolver.reset()
    published = await resolver.resolve("publish the playlist")

    assert sent.status == "send"
    assert isinstance(sent.payload, SendConfirmation)
    assert sent.payload.device_name is None
    assert published.status == "publish"
    assert isinstance(published.payload, PublishConfirmation)
    assert len(provider.requests[1]["messages"]) == 2


@pytest.mark.asyncio
async def test_send_with_unknown_device_asks_to_choose(config, scripted_provider, tmp_path, make_item) -> None:
    path = tmp_path / "playlist.json"
    path.write_text(json.dumps(build_dp1_playlist([make_item(1)], title="Saved")))
    provider = scripted_provider([
        scripted_provider.call("confirm_send_playlist", {"filePath": str(path), "deviceName": "Kitchen"}),
    ])

    result = await IntentResolver(provider, config).resolve("send it to the kitchen")

    assert result.needs_clarification
    assert result.question.endswith("Please choose a device.")


@pytest.mark.asyncio
async def test_unknown_function_becomes_a_question(config, scripted_provider) -> None:
    provider = scripted_provider([scripted_provider.call("mint_nft", {})])

    result = await IntentResolver(provider, config).resolve("mint one")

    assert result.question == "Encountered unknown function: mint_nft"


@pytest.mark.asyncio
async def test_provider_errors_name_the_model(config, scripted_provider) -> None:
    def boom(messages):
        raise ProviderError("connection refused")

    provider = scripted_provider([boom])

    with pytest.raises(ProviderError) as exc:
        await IntentResolver(provider, config).resolve("anything")
    assert str(exc.value).startswith("Intent parser failed (model=grok-beta, baseURL=https://api.x.ai/v1)")
