"""Tests for snakes_duel.chat (message log on the match document)."""

import asyncio

import pytest

from snakes_duel.board import Layout
from snakes_duel.chat import ChatEntry, MessageLog, unseen_count
from snakes_duel.errors import RowNotFound, ValidationError
from snakes_duel.match import new_match
from snakes_duel.store import MemoryStore

ROOM = "CHAT01"


async def _store_with_match(messages=()) -> MemoryStore:
    store = MemoryStore()
    record = new_match("m1", ROOM, "alice", "Alice", Layout()).to_record()
    record["messages"] = list(messages)
    await store.insert(record)
    return store


def test_send_appends_entry():
    async def scenario():
        store = await _store_with_match()
        entry = await MessageLog(store).send(ROOM, "alice", "Alice", "hi")
        record = await store.select(ROOM)
        assert record["messages"] == [entry.to_record()]
        assert entry.user_name == "Alice"
        assert entry.id and entry.created_at

    asyncio.run(scenario())


def test_sequential_sends_keep_both():
    async def scenario():
        store = await _store_with_match()
        log = MessageLog(store)
        await log.send(ROOM, "alice", "Alice", "one")
        await log.send(ROOM, "bob", "Bob", "two")
        texts = [m["text"] for m in (await store.select(ROOM))["messages"]]
        assert texts == ["one", "two"]

    asyncio.run(scenario())


def test_concurrent_sends_can_lose_a_message():
    """Both writers read the same list, so the second update overwrites the first."""
    async def scenario():
        existing = ChatEntry("x", "alice", "Alice", "earlier", "2026-01-01T00:00:00+00:00")
        store = await _store_with_match([existing.to_record()])
        log = MessageLog(store)
        await asyncio.gather(
            log.send(ROOM, "alice", "Alice", "from alice"),
            log.send(ROOM, "bob", "Bob", "from bob"),
        )
        messages = (await store.select(ROOM))["messages"]
        assert len(messages) == 2
        assert messages[0]["text"] == "earlier"

    asyncio.run(scenario())


@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
def test_blank_message_rejected_before_any_read(text):
    class Untouchable:
        async def select(self, room_id):
            raise AssertionError("store should not be read")

    async def scenario():
        with pytest.raises(ValidationError):
            await MessageLog(Untouchable()).send(ROOM, "alice", "Alice", text)

    asyncio.run(scenario())


def test_send_to_missing_room():
    async def scenario():
        with pytest.raises(RowNotFound):
            await MessageLog(MemoryStore()).send("NOPE00", "alice", "Alice", "hello?")

    asyncio.run(scenario())


def test_entry_from_record_tolerates_missing_name():
    entry = ChatEntry.from_record({"id": 1, "user_id": "bob", "text": "gg", "created_at": "t"})
    assert entry.id == "1"
    assert entry.user_name == ""


def test_unseen_count():
    messages = [
        ChatEntry("1", "alice", "Alice", "a", "2026-01-01T10:00:00+00:00"),
        ChatEntry("2", "bob", "Bob", "b", "2026-01-01T10:01:00+00:00"),
        ChatEntry("3", "bob", "Bob", "c", "2026-01-01T10:05:00+00:00"),
        ChatEntry("4", "alice", "Alice", "d", "2026-01-01T10:06:00+00:00"),
    ]
    assert unseen_count(messages, "alice", "2026-01-01T10:00:30+00:00") == 2
    assert unseen_count(messages, "alice", "2026-01-01T10:02:00+00:00") == 1
    assert unseen_count(messages, "bob", "") == 2
