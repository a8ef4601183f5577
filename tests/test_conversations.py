from __future__ import annotations

import asyncio

import pytest

from adonai.models import Message
from adonai.services.conversations import (
    ConversationStore,
    add_message,
    create_conversation,
    delete_conversation,
    list_conversations,
    load_history,
    make_title,
    rename_conversation,
)


def test_short_prompt_title_is_verbatim():
    prompt = "What does the Bible say about anxiety?"
    assert make_title(prompt) == prompt


def test_exactly_fifty_chars_is_not_truncated():
    prompt = "x" * 50
    assert make_title(prompt) == prompt


def test_long_prompt_title_is_truncated_with_ellipsis():
    prompt = "How should I think about forgiveness when the other person never apologizes?"
    assert make_title(prompt) == prompt[:50] + "..."


def test_history_requires_ownership(database):
    with database.session() as db:
        conv = create_conversation(db, "owner", "Psalms")
        add_message(db, conv.id, "owner", "user", "Read Psalm 23")
        add_message(db, conv.id, "owner", "assistant", "The Lord is my shepherd")

        assert load_history(db, conv.id, "intruder", 20) == []
        assert load_history(db, "missing-id", "owner", 20) == []
        assert load_history(db, conv.id, "owner", 20) == [
            {"role": "user", "content": "Read Psalm 23"},
            {"role": "assistant", "content": "The Lord is my shepherd"},
        ]


def test_history_keeps_most_recent_oldest_first(database):
    with database.session() as db:
        conv = create_conversation(db, "owner", "long chat")
        for i in range(25):
            add_message(db, conv.id, "owner", "user" if i % 2 == 0 else "assistant", f"m{i}")

        history = load_history(db, conv.id, "owner", 20)
    assert len(history) == 20
    assert history[0]["content"] == "m5"
    assert history[-1]["content"] == "m24"


def test_add_message_refuses_foreign_conversation(database):
    with database.session() as db:
        conv = create_conversation(db, "owner", "private")
        assert add_message(db, conv.id, "intruder", "user", "hello") is None
        assert db.query(Message).count() == 0


def test_rename_and_delete_are_owner_only(database):
    with database.session() as db:
        conv = create_conversation(db, "owner", "old title")
        add_message(db, conv.id, "owner", "user", "hi")

        assert rename_conversation(db, conv.id, "intruder", "hijacked") is False
        assert delete_conversation(db, conv.id, "intruder") is False
        assert rename_conversation(db, conv.id, "owner", "new title") is True
        assert [c.title for c in list_conversations(db, "owner")] == ["new title"]

        assert delete_conversation(db, conv.id, "owner") is True
        assert list_conversations(db, "owner") == []
        assert db.query(Message).count() == 0


def test_store_round_trip(database):
    store = ConversationStore(database)

    async def _run():
        conv_id = await store.create("owner", "What does the Bible say about anxiety?")
        await store.add_message(conv_id, "owner", "user", "What does the Bible say about anxiety?")
        await store.add_message(conv_id, "owner", "assistant", "Philippians 4:6-7")
        assert await store.touch(conv_id, "owner") is True
        return await store.get_with_messages(conv_id, "owner")

    conversation, messages = asyncio.run(_run())
    assert conversation.title == "What does the Bible say about anxiety?"
    assert [(m.role, m.content) for m in messages] == [
        ("user", "What does the Bible say about anxiety?"),
        ("assistant", "Philippians 4:6-7"),
    ]


@pytest.mark.parametrize("user_id", ["intruder", "nobody"])
def test_store_get_foreign_conversation_is_none(database, user_id):
    store = ConversationStore(database)

    async def _run():
        conv_id = await store.create("owner", "mine")
        return await store.get_with_messages(conv_id, user_id)

    assert asyncio.run(_run()) is None
