from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Header, Request

from adonai.config import Settings
from adonai.db import Database
from adonai.errors import (
    AuthRequiredError,
    AuthUnavailableError,
    QuotaExceededError,
    StorageUnavailableError,
)
from adonai.metrics import chat_requests_total, quota_reject_total
from adonai.services.chat import ChatOrchestrator
from adonai.services.completion import CompletionClient
from adonai.services.conversations import ConversationStore
from adonai.services.identity import Identity, IdentityResolver, IdentityResult, IdentityStatus
from adonai.services.profiles import ProfileService
from adonai.services.quota import (
    RESET_HINT,
    QuotaConfig,
    QuotaPeriod,
    QuotaPolicy,
    QuotaService,
    QuotaStatus,
    client_ip,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide clients, built once in the app lifespan.

    ``conversations`` and ``profiles`` are ``None`` when the store is not
    configured; ``identity.configured`` says whether tokens can be verified.
    """

    settings: Settings
    identity: IdentityResolver
    quota: QuotaService
    completion: CompletionClient
    chat: ChatOrchestrator
    database: Database | None = None
    conversations: ConversationStore | None = None
    profiles: ProfileService | None = None

    @property
    def storage_enabled(self) -> bool:
        return self.database is not None

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        *,
        database: Database | None = None,
        identity: IdentityResolver | None = None,
        completion: CompletionClient | None = None,
    ) -> "Services":
        if database is None and cfg.storage_configured:
            database = Database.from_settings(cfg)
        identity = identity or IdentityResolver.from_settings(cfg)
        completion = completion or CompletionClient.from_settings(cfg)
        conversations = ConversationStore(database) if database else None
        profiles = ProfileService(database) if database else None
        quota = QuotaService(
            database,
            QuotaConfig.from_settings(cfg),
            QuotaPolicy(cfg.quota_policy.lower()),
        )
        chat = ChatOrchestrator(
            completion,
            store=conversations,
            max_history=cfg.max_history_messages,
        )
        return cls(
            settings=cfg,
            identity=identity,
            quota=quota,
            completion=completion,
            chat=chat,
            database=database,
            conversations=conversations,
            profiles=profiles,
        )

    async def aclose(self) -> None:
        await self.identity.aclose()
        await self.completion.aclose()
        if self.database is not None:
            self.database.dispose()


def get_services(request: Request) -> Services:
    return request.app.state.services


async def resolve_identity(
    authorization: str | None = Header(None),
    services: Services = Depends(get_services),
) -> IdentityResult:
    return await services.identity.resolve(authorization)


async def optional_identity(
    result: IdentityResult = Depends(resolve_identity),
) -> Identity | None:
    return result.identity if result.identified else None


async def require_identity(
    result: IdentityResult = Depends(resolve_identity),
) -> Identity:
    if result.status is IdentityStatus.UNAVAILABLE:
        raise AuthUnavailableError()
    if not result.identified:
        raise AuthRequiredError()
    return result.identity


def require_conversations(services: Services = Depends(get_services)) -> ConversationStore:
    if services.conversations is None:
        raise StorageUnavailableError()
    return services.conversations


def require_profiles(services: Services = Depends(get_services)) -> ProfileService:
    if services.profiles is None:
        raise StorageUnavailableError("Profile storage not configured")
    return services.profiles


def quota_period() -> QuotaPeriod:
    return QuotaPeriod.today()


@dataclass
class QuotaGrant:
    """Outcome of a passed quota check, needed again to record usage."""

    identity: Identity | None
    ip: str
    period: QuotaPeriod
    status: QuotaStatus


async def enforce_quota(
    request: Request,
    identity: Identity | None = Depends(optional_identity),
    period: QuotaPeriod = Depends(quota_period),
    services: Services = Depends(get_services),
) -> QuotaGrant:
    """Reject the request with 429 once today's allowance is used up."""
    ip = client_ip(request)
    status = await services.quota.check(identity, ip, period)
    if status.limited:
        quota_reject_total.inc()
        chat_requests_total.labels(status="quota_exceeded").inc()
        logger.info(
            "quota exceeded: user=%s ip=%s used=%s",
            identity.id if identity else None,
            ip,
            status.used,
        )
        raise QuotaExceededError(limit=status.limit, used=status.used, reset_at=RESET_HINT)
    return QuotaGrant(identity=identity, ip=ip, period=period, status=status)
