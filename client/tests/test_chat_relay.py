from __future__ import annotations

import asyncio

import pytest

from chatrelay.core.errors import PayloadError
from chatrelay.services.chat_relay import ChatRelay
from chatrelay.services.persistence import SESSION_KEYS_KEY
from payloads import inbound, local

from conftest import FIXED_NOW_MS


@pytest.mark.anyio
async def test_two_inbound_messages_scenario(relay) -> None:
    relay.receive_payload(inbound("A", "B", "u1", timestamp=100, content="one"))
    relay.receive_payload(inbound("A", "B", "u2", timestamp=200, content="two"))

    sessions = relay.session_list
    assert [item.key for item in sessions] == ["B-A"]
    assert sessions[0].un_read_message_count == 2
    assert sessions[0].latest_message == "two"
    assert sessions[0].timestamp == 200
    assert relay.unread_message_count_total == 2

    relay.current_chat_key = "B-A"
    history = relay.current_chat_room_history
    await relay.histories.drain()
    assert [record["uuid"] for record in history] == ["u1", "u2"]


@pytest.mark.anyio
async def test_local_and_inbound_payloads_merge_into_one_session(relay) -> None:
    relay.receive_payload(inbound("peer", "me", "u1"))
    relay.push_locale_payload(local("me", "peer", "u2", content="reply"))

    assert len(relay.session_list) == 1
    item = relay.session_list[0]
    assert item.key == "me-peer"
    assert item.un_read_message_count == 0
    assert item.timestamp == FIXED_NOW_MS
    assert relay.histories.get("me-peer")[1]["msg"]["content"] == "reply"
    assert "localeExt" not in relay.histories.get("me-peer")[1]


@pytest.mark.anyio
async def test_clear_unread_message_count(relay) -> None:
    relay.receive_payload(inbound("A", "me", "u1"))
    relay.receive_payload(inbound("B", "me", "u2"))

    relay.clear_unread_message_count("me-A")
    relay.clear_unread_message_count("unknown")

    assert relay.unread_message_count_total == 1
    assert {item.key for item in relay.session_list} == {"me-A", "me-B"}


@pytest.mark.anyio
async def test_no_current_chat_returns_empty_history(relay) -> None:
    relay.receive_payload(inbound("A", "me", "u1"))

    assert relay.current_chat_room_history == []
    assert relay.histories.pending == 1
    await relay.histories.drain()


@pytest.mark.anyio
async def test_malformed_payload_is_rejected_before_any_mutation(relay) -> None:
    with pytest.raises(PayloadError):
        relay.receive_payload({"from": "A", "to": "me", "msg": {"content": "x"}})

    assert relay.session_list == []
    assert relay.histories.get("me-A") is None


@pytest.mark.anyio
async def test_leaving_foreground_persists_sessions(relay, lifecycle, store) -> None:
    relay.receive_payload(inbound("A", "me", "u1"))

    lifecycle.emit("background")
    await asyncio.sleep(0)
    assert await store.get_item(SESSION_KEYS_KEY) is None

    lifecycle.emit("inactive")
    await relay.shutdown()

    assert await store.get_item(SESSION_KEYS_KEY) == "me-A"


@pytest.mark.anyio
async def test_state_survives_a_fresh_relay(settings, store, lifecycle) -> None:
    first = ChatRelay(settings, store, lifecycle, clock=lambda: FIXED_NOW_MS)
    await first.start()
    for seq in range(20):
        first.receive_payload(inbound("A", "me", f"u{seq}", timestamp=seq))
    first.receive_payload(inbound("B", "me", "b1", timestamp=50))
    await first.persist_sessions()
    await first.shutdown()

    second = ChatRelay(settings, store, lifecycle, clock=lambda: FIXED_NOW_MS)
    assert await second.start() == 2
    assert await second.start() == 0
    assert second.unread_message_count_total == 21
    assert [item.key for item in second.session_list] == ["me-B", "me-A"]

    second.current_chat_key = "me-A"
    history = second.current_chat_room_history
    assert history == []
    await second.histories.drain()
    assert [record["uuid"] for record in history] == [f"u{seq}" for seq in range(7, 20)]
    await second.shutdown()


@pytest.mark.anyio
async def test_shutdown_stops_lifecycle_listening(relay, lifecycle, store) -> None:
    relay.receive_payload(inbound("A", "me", "u1"))
    await relay.shutdown()

    lifecycle.emit("inactive")
    await asyncio.sleep(0)

    assert await store.get_item(SESSION_KEYS_KEY) is None
