from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from adonai.dependencies import QuotaGrant, Services, enforce_quota, get_services
from adonai.errors import ErrorResponse, UpstreamError, ValidationError
from adonai.metrics import chat_requests_total, completion_error_total
from adonai.services.completion import CompletionError

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # validated by hand so a bad prompt maps to 400, not 422
    prompt: Any = None
    conversation_id: str | None = Field(None, alias="conversationId")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    conversation_id: str | None = Field(None, alias="conversationId")
    remaining: int | None = None


@router.post(
    "",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def chat(
    body: ChatRequest,
    grant: QuotaGrant = Depends(enforce_quota),
    services: Services = Depends(get_services),
):
    if not isinstance(body.prompt, str) or not body.prompt.strip():
        chat_requests_total.labels(status="bad_request").inc()
        raise ValidationError("Missing prompt")
    prompt = body.prompt.strip()

    try:
        reply = await services.chat.respond(
            prompt,
            identity=grant.identity,
            conversation_id=body.conversation_id or None,
        )
    except CompletionError as exc:
        logger.error("Chat error: %s", exc)
        completion_error_total.inc()
        chat_requests_total.labels(status="upstream_error").inc()
        raise UpstreamError() from exc

    await services.quota.increment(grant.identity, grant.ip, grant.period)

    chat_requests_total.labels(status="ok").inc()
    return ChatResponse(
        message=reply.message,
        conversation_id=reply.conversation_id if grant.identity else None,
        remaining=grant.status.remaining_after_request(),
    )
