"""Conversation and message persistence.

Every query filters on the owning ``user_id``; a conversation that exists
but belongs to someone else is indistinguishable from one that does not exist.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.orm import Session

from adonai.db import Database
from adonai.models import Conversation, Message

TITLE_MAX_CHARS = 50
TITLE_ELLIPSIS = "..."


def make_title(prompt: str) -> str:
    if len(prompt) > TITLE_MAX_CHARS:
        return prompt[:TITLE_MAX_CHARS] + TITLE_ELLIPSIS
    return prompt


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_owned_conversation(
    db: Session, conversation_id: str, user_id: str
) -> Conversation | None:
    return (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .one_or_none()
    )


def create_conversation(db: Session, user_id: str, title: str) -> Conversation:
    conversation = Conversation(user_id=user_id, title=title)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def load_history(
    db: Session, conversation_id: str, user_id: str, limit: int
) -> list[dict[str, str]]:
    """Most recent ``limit`` messages, oldest first, as ``{role, content}``."""
    if get_owned_conversation(db, conversation_id, user_id) is None:
        return []
    rows = (
        db.query(Message.role, Message.content)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
        .all()
    )
    return [{"role": role, "content": content} for role, content in reversed(rows)]


def add_message(
    db: Session, conversation_id: str, user_id: str, role: str, content: str
) -> Message | None:
    if get_owned_conversation(db, conversation_id, user_id) is None:
        return None
    message = Message(conversation_id=conversation_id, role=role, content=content)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def touch_conversation(db: Session, conversation_id: str, user_id: str) -> bool:
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .update({Conversation.updated_at: _now()})
    )
    db.commit()
    return bool(updated)


def list_conversations(db: Session, user_id: str) -> list[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .all()
    )


def list_messages(db: Session, conversation_id: str) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def rename_conversation(
    db: Session, conversation_id: str, user_id: str, title: str
) -> bool:
    updated = (
        db.query(Conversation)
        .filter(Conversation.id == conversation_id, Conversation.user_id == user_id)
        .update({Conversation.title: title})
    )
    db.commit()
    return bool(updated)


def delete_conversation(db: Session, conversation_id: str, user_id: str) -> bool:
    conversation = get_owned_conversation(db, conversation_id, user_id)
    if conversation is None:
        return False
    db.delete(conversation)
    db.commit()
    return True


class ConversationStore:
    """Async facade over the functions above; each call gets its own session."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self.database.session() as db:
            return fn(db, *args)

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(self._call, fn, *args)

    async def create(self, user_id: str, first_prompt: str) -> str:
        conversation = await self._run(create_conversation, user_id, make_title(first_prompt))
        return conversation.id

    async def is_owned(self, conversation_id: str, user_id: str) -> bool:
        found = await self._run(get_owned_conversation, conversation_id, user_id)
        return found is not None

    async def history(self, conversation_id: str, user_id: str, limit: int) -> list[dict[str, str]]:
        return await self._run(load_history, conversation_id, user_id, limit)

    async def add_message(self, conversation_id: str, user_id: str, role: str, content: str) -> Message | None:
        return await self._run(add_message, conversation_id, user_id, role, content)

    async def touch(self, conversation_id: str, user_id: str) -> bool:
        return await self._run(touch_conversation, conversation_id, user_id)

    async def list_for_user(self, user_id: str) -> list[Conversation]:
        return await self._run(list_conversations, user_id)

    async def get_with_messages(
        self, conversation_id: str, user_id: str
    ) -> tuple[Conversation, list[Message]] | None:
        def _load(db: Session) -> tuple[Conversation, list[Message]] | None:
            conversation = get_owned_conversation(db, conversation_id, user_id)
            if conversation is None:
                return None
            return conversation, list_messages(db, conversation_id)

        return await asyncio.to_thread(self._call, _load)

    async def rename(self, conversation_id: str, user_id: str, title: str) -> bool:
        return await self._run(rename_conversation, conversation_id, user_id, title)

    async def delete(self, conversation_id: str, user_id: str) -> bool:
        return await self._run(delete_conversation, conversation_id, user_id)


__all__ = [
    "TITLE_MAX_CHARS",
    "ConversationStore",
    "add_message",
    "create_conversation",
    "delete_conversation",
    "get_owned_conversation",
    "list_conversations",
    "list_messages",
    "load_history",
    "make_title",
    "rename_conversation",
    "touch_conversation",
]
