import pytest

from ff1agent.agent.registry import Registry
from ff1agent.agent.session import Session
from ff1agent.errors import InvalidIdError
from ff1agent.providers.base import LLMResponse, ToolCallRequest


def test_registry_round_trips_items_and_playlists() -> None:
    registry = Registry()
    item_id = registry.store_item({"id": "i1", "title": "A"})
    playlist_id = registry.store_playlist({"id": "p1", "items": []})

    assert registry.get_item(item_id)["title"] == "A"
    assert registry.has("playlist", playlist_id)
    assert registry.get("item", "missing") is None
    assert registry.stats() == {"item_count": 1, "playlist_count": 1}


def test_registry_rejects_empty_ids_and_unknown_kinds() -> None:
    registry = Registry()
    with pytest.raises(InvalidIdError):
        registry.store_item({"title": "no id"})
    with pytest.raises(ValueError):
        registry.put("artist", "a1", {})


def test_registry_clear_empties_both_stores() -> None:
    registry = Registry()
    registry.store_item({"id": "i1"})
    registry.store_playlist({"id": "p1"})

    registry.clear()

    assert registry.stats() == {"item_count": 0, "playlist_count": 0}
    assert registry.get_item("i1") is None


def test_session_appends_tool_turns_in_openai_shape() -> None:
    session = Session(max_turns=2)
    session.add_system("sys")
    session.add_user("hi")
    call = ToolCallRequest(id="c1", name="verify_playlist", arguments={"artifactId": "p1"})
    session.add_response(LLMResponse(content=None, tool_calls=[call], reasoning_content="thinking"))
    session.add_tool_result("c1", "verify_playlist", '{"valid": true}')

    assistant = session.messages[2]
    assert assistant["content"] == ""
    assert assistant["tool_calls"][0]["function"]["name"] == "verify_playlist"
    assert assistant["reasoning_content"] == "thinking"
    assert session.messages[3] == {
        "role": "tool",
        "tool_call_id": "c1",
        "name": "verify_playlist",
        "content": '{"valid": true}',
    }
    assert [m["role"] for m in session.get_history()] == ["user", "assistant", "tool"]


def test_session_turn_budget_resets_per_entry() -> None:
    session = Session(max_turns=2)
    session.next_turn()
    session.next_turn()
    assert session.exhausted
    assert session.turns_left == 0

    session.start_entry()
    assert not session.exhausted
    assert session.total_turns == 2
