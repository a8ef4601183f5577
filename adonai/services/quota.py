"""Daily question quota for anonymous (per IP) and free-tier (per account) callers.

Counters are reset lazily: a stored count only counts for the day it was
written, so there is no reset job. Reads and increments are plain
read-then-write; concurrent requests from the same caller may over- or
under-count slightly.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import NamedTuple

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from adonai.config import Settings
from adonai.db import Database
from adonai.errors import QuotaUnavailableError
from adonai.metrics import quota_fail_open_total
from adonai.models import AnonymousUsage, Profile
from adonai.services.identity import Identity
from adonai.services.profiles import ensure_profile

logger = logging.getLogger(__name__)

UNLIMITED_REMAINING = 999
RESET_HINT = "midnight UTC"
UNKNOWN_IP = "unknown"


class QuotaPolicy(str, Enum):
    """What to do when the counter store cannot be read."""

    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


@dataclass(frozen=True)
class QuotaPeriod:
    """Calendar day (UTC) a counter belongs to."""

    day: date

    @classmethod
    def today(cls, now: datetime | None = None) -> "QuotaPeriod":
        now = now or datetime.now(timezone.utc)
        return cls(now.astimezone(timezone.utc).date())


@dataclass(frozen=True)
class QuotaConfig:
    daily_limit: int = 10
    unlimited_tiers: frozenset[str] = frozenset({"premium", "admin"})

    @classmethod
    def from_settings(cls, cfg: Settings) -> "QuotaConfig":
        return cls(
            daily_limit=cfg.daily_limit_free,
            unlimited_tiers=frozenset(t.lower() for t in cfg.unlimited_tiers),
        )


class QuotaStatus(NamedTuple):
    limited: bool
    remaining: int
    used: int
    limit: int
    unlimited: bool = False

    def remaining_after_request(self) -> int:
        """Remaining count reported with a successful reply.

        Computed from the pre-increment value, so two concurrent requests from
        the same caller can both report the same number.
        """
        if self.unlimited:
            return UNLIMITED_REMAINING
        return max(0, self.remaining - 1)


def evaluate(count: int, config: QuotaConfig) -> QuotaStatus:
    return QuotaStatus(
        limited=count >= config.daily_limit,
        remaining=max(0, config.daily_limit - count),
        used=count,
        limit=config.daily_limit,
    )


def unlimited_status(config: QuotaConfig) -> QuotaStatus:
    return QuotaStatus(
        limited=False,
        remaining=UNLIMITED_REMAINING,
        used=0,
        limit=config.daily_limit,
        unlimited=True,
    )


def client_ip(request: Request) -> str:
    """Caller address, honouring ``X-Forwarded-For`` and ``X-Real-IP`` from the proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IP


# --- store access (synchronous, run via asyncio.to_thread) ---


def read_account_usage(
    db: Session, user_id: str, period: QuotaPeriod, config: QuotaConfig
) -> QuotaStatus:
    profile = db.get(Profile, user_id)
    if profile is None:
        return evaluate(0, config)
    if (profile.tier or "free").lower() in config.unlimited_tiers:
        return unlimited_status(config)
    count = profile.daily_question_count or 0
    if profile.last_question_date != period.day:
        count = 0
    return evaluate(count, config)


def read_anonymous_usage(
    db: Session, ip: str, period: QuotaPeriod, config: QuotaConfig
) -> QuotaStatus:
    record = (
        db.query(AnonymousUsage)
        .filter(AnonymousUsage.ip_address == ip, AnonymousUsage.usage_date == period.day)
        .one_or_none()
    )
    return evaluate(record.question_count if record else 0, config)


def increment_account_usage(db: Session, identity: Identity, period: QuotaPeriod) -> int:
    """Bump today's count; a count from another day restarts at 1. Returns new count.

    A missing profile is created from the identity's claims.
    """
    profile = ensure_profile(db, identity)
    if profile.last_question_date != period.day:
        new_count = 1
    else:
        new_count = (profile.daily_question_count or 0) + 1
    profile.daily_question_count = new_count
    profile.last_question_date = period.day
    db.commit()
    return new_count


def increment_anonymous_usage(db: Session, ip: str, period: QuotaPeriod) -> int:
    record = (
        db.query(AnonymousUsage)
        .filter(AnonymousUsage.ip_address == ip, AnonymousUsage.usage_date == period.day)
        .one_or_none()
    )
    if record is None:
        record = AnonymousUsage(ip_address=ip, usage_date=period.day, question_count=1)
        db.add(record)
    else:
        record.question_count = (record.question_count or 0) + 1
    db.commit()
    return record.question_count


def purge_anonymous_usage(db: Session, before: date) -> int:
    """Delete per-IP rows older than ``before``; they can never count again."""
    deleted = (
        db.query(AnonymousUsage)
        .filter(AnonymousUsage.usage_date < before)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


class QuotaService:
    def __init__(
        self,
        database: Database | None,
        config: QuotaConfig | None = None,
        policy: QuotaPolicy = QuotaPolicy.FAIL_OPEN,
    ) -> None:
        self.database = database
        self.config = config or QuotaConfig()
        self.policy = policy

    @property
    def enabled(self) -> bool:
        return self.database is not None

    def _check_sync(self, identity: Identity | None, ip: str, period: QuotaPeriod) -> QuotaStatus:
        with self.database.session() as db:
            if identity is not None:
                return read_account_usage(db, identity.id, period, self.config)
            return read_anonymous_usage(db, ip, period, self.config)

    def _increment_sync(self, identity: Identity | None, ip: str, period: QuotaPeriod) -> int:
        with self.database.session() as db:
            if identity is not None:
                return increment_account_usage(db, identity, period)
            return increment_anonymous_usage(db, ip, period)

    async def check(
        self, identity: Identity | None, ip: str, period: QuotaPeriod
    ) -> QuotaStatus:
        if not self.enabled:
            return unlimited_status(self.config)
        try:
            return await asyncio.to_thread(self._check_sync, identity, ip, period)
        except SQLAlchemyError as exc:
            return self._on_store_error(exc)

    def _on_store_error(self, exc: Exception) -> QuotaStatus:
        if self.policy is QuotaPolicy.FAIL_CLOSED:
            logger.error("Rate limit check failed, rejecting request: %s", exc)
            raise QuotaUnavailableError() from exc
        logger.error("Rate limit check failed, allowing request: %s", exc)
        quota_fail_open_total.inc()
        return unlimited_status(self.config)

    async def increment(
        self, identity: Identity | None, ip: str, period: QuotaPeriod
    ) -> None:
        if not self.enabled:
            return
        try:
            await asyncio.to_thread(self._increment_sync, identity, ip, period)
        except SQLAlchemyError as exc:
            logger.error("Failed to increment usage: %s", exc)


__all__ = [
    "RESET_HINT",
    "UNKNOWN_IP",
    "UNLIMITED_REMAINING",
    "QuotaConfig",
    "QuotaPeriod",
    "QuotaPolicy",
    "QuotaService",
    "QuotaStatus",
    "client_ip",
    "evaluate",
    "increment_account_usage",
    "increment_anonymous_usage",
    "purge_anonymous_usage",
    "read_account_usage",
    "read_anonymous_usage",
    "unlimited_status",
]
