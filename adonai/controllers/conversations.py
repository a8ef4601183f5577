from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from adonai.dependencies import require_conversations, require_identity
from adonai.errors import ErrorResponse, NotFoundOrForbidden, ValidationError
from adonai.services.conversations import ConversationStore
from adonai.services.identity import Identity

router = APIRouter(prefix="/conversations", tags=["conversations"])

NOT_FOUND = "Conversation not found"


class ConversationSummary(BaseModel):
    id: str
    title: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MessageOut(BaseModel):
    id: int
    role: str
    content: str
    created_at: datetime | None = None


class ConversationDetail(ConversationSummary):
    messages: list[MessageOut] = []


class ConversationList(BaseModel):
    conversations: list[ConversationSummary]


class TitleUpdateRequest(BaseModel):
    title: Any = None


@router.get("", response_model=ConversationList)
async def list_conversations(
    identity: Identity = Depends(require_identity),
    store: ConversationStore = Depends(require_conversations),
):
    rows = await store.list_for_user(identity.id)
    return ConversationList(
        conversations=[
            ConversationSummary.model_validate(row, from_attributes=True) for row in rows
        ]
    )


@router.get(
    "/{conversation_id}",
    response_model=ConversationDetail,
    responses={404: {"model": ErrorResponse}},
)
async def get_conversation(
    conversation_id: str,
    identity: Identity = Depends(require_identity),
    store: ConversationStore = Depends(require_conversations),
):
    found = await store.get_with_messages(conversation_id, identity.id)
    if found is None:
        raise NotFoundOrForbidden(NOT_FOUND)
    conversation, messages = found
    return ConversationDetail(
        id=conversation.id,
        title=conversation.title,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        messages=[MessageOut.model_validate(m, from_attributes=True) for m in messages],
    )


@router.put(
    "/{conversation_id}",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def rename_conversation(
    conversation_id: str,
    body: TitleUpdateRequest,
    identity: Identity = Depends(require_identity),
    store: ConversationStore = Depends(require_conversations),
) -> dict[str, str]:
    if not isinstance(body.title, str) or not body.title.strip():
        raise ValidationError("Title is required")
    if not await store.rename(conversation_id, identity.id, body.title.strip()):
        raise NotFoundOrForbidden(NOT_FOUND)
    return {"message": "Conversation updated"}


@router.delete("/{conversation_id}", responses={404: {"model": ErrorResponse}})
async def delete_conversation(
    conversation_id: str,
    identity: Identity = Depends(require_identity),
    store: ConversationStore = Depends(require_conversations),
) -> dict[str, str]:
    if not await store.delete(conversation_id, identity.id):
        raise NotFoundOrForbidden(NOT_FOUND)
    return {"message": "Conversation deleted"}
