"""Chat orchestration: history, persistence and the completion call."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from adonai.metrics import persistence_error_total
from adonai.services.completion import CompletionClient
from adonai.services.conversations import ConversationStore
from adonai.services.identity import Identity

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    message: str
    conversation_id: str | None = None


class ChatOrchestrator:
    """Build the message list, call the completion API and store the exchange.

    Storage only happens for authenticated callers when ``store`` is set.
    Write failures are logged and skipped so the caller still gets a reply.
    Completion failures propagate as :class:`CompletionError`.
    ``max_history`` comes from ``Settings.max_history_messages``.
    """

    def __init__(
        self,
        completion: CompletionClient,
        store: ConversationStore | None = None,
        *,
        max_history: int,
    ) -> None:
        self.completion = completion
        self.store = store
        self.max_history = max_history

    async def _prepare(
        self, user_id: str, prompt: str, conversation_id: str | None
    ) -> tuple[str | None, list[dict[str, str]]]:
        if conversation_id:
            try:
                if await self.store.is_owned(conversation_id, user_id):
                    history = await self.store.history(conversation_id, user_id, self.max_history)
                    return conversation_id, history
            except SQLAlchemyError as exc:
                logger.error("Failed to load conversation history: %s", exc)
                persistence_error_total.labels(operation="load_history").inc()
                return None, []
            logger.info(
                "chat: conversation %s not found for user %s, starting a new one",
                conversation_id,
                user_id,
            )
        try:
            return await self.store.create(user_id, prompt), []
        except SQLAlchemyError as exc:
            logger.error("Failed to create conversation: %s", exc)
            persistence_error_total.labels(operation="create_conversation").inc()
            return None, []

    async def _save(self, conversation_id: str, user_id: str, role: str, content: str) -> None:
        try:
            await self.store.add_message(conversation_id, user_id, role, content)
        except SQLAlchemyError as exc:
            logger.error("Failed to save %s message: %s", role, exc)
            persistence_error_total.labels(operation="save_message").inc()

    async def _touch(self, conversation_id: str, user_id: str) -> None:
        try:
            await self.store.touch(conversation_id, user_id)
        except SQLAlchemyError as exc:
            logger.error("Failed to update conversation timestamp: %s", exc)
            persistence_error_total.labels(operation="touch_conversation").inc()

    async def respond(
        self,
        prompt: str,
        identity: Identity | None = None,
        conversation_id: str | None = None,
    ) -> ChatReply:
        persist = identity is not None and self.store is not None
        active_id: str | None = None
        history: list[dict[str, str]] = []

        if persist:
            active_id, history = await self._prepare(identity.id, prompt, conversation_id)
            if active_id:
                await self._save(active_id, identity.id, "user", prompt)

        message = await self.completion.generate(prompt, history)

        if persist and active_id:
            await self._save(active_id, identity.id, "assistant", message)
            await self._touch(active_id, identity.id)

        return ChatReply(message=message, conversation_id=active_id)


__all__ = ["ChatOrchestrator", "ChatReply"]
