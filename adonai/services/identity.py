"""Bearer token verification against Supabase Auth.

Resolution never raises: every failure mode collapses into one of three tags
and the route decides what each tag means for it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from adonai.config import Settings

logger = logging.getLogger(__name__)


class IdentityStatus(str, Enum):
    IDENTIFIED = "identified"
    ANONYMOUS = "anonymous"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IdentityResult:
    status: IdentityStatus
    identity: Identity | None = None

    @property
    def identified(self) -> bool:
        return self.status is IdentityStatus.IDENTIFIED and self.identity is not None


ANONYMOUS = IdentityResult(IdentityStatus.ANONYMOUS)
UNAVAILABLE = IdentityResult(IdentityStatus.UNAVAILABLE)


def parse_bearer(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


class IdentityResolver:
    """Verify access tokens with ``GET /auth/v1/user``."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self._client = http_client
        self._owns_client = http_client is None
        self._timeout = timeout

    @classmethod
    def from_settings(cls, cfg: Settings) -> "IdentityResolver":
        if not cfg.supabase_configured:
            return cls(None, None)
        return cls(cfg.supabase_url, cfg.supabase_service_key, timeout=cfg.auth_timeout)

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def verify(self, token: str) -> Identity | None:
        """Return the user behind ``token`` or ``None`` if it does not check out."""
        client = self._get_client()
        try:
            resp = await client.get(
                f"{self.base_url}/auth/v1/user",
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {token}",
                },
            )
        except httpx.HTTPError as exc:
            logger.warning("Auth token validation failed: %s", exc)
            return None
        if resp.status_code != 200:
            logger.info("Auth token rejected with status %s", resp.status_code)
            return None
        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning("Auth provider returned malformed JSON: %s", exc)
            return None
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            return None
        return Identity(
            id=str(user_id),
            email=data.get("email"),
            metadata=data.get("user_metadata") or {},
        )

    async def resolve(self, authorization: str | None) -> IdentityResult:
        if not self.configured:
            return UNAVAILABLE
        token = parse_bearer(authorization)
        if token is None:
            return ANONYMOUS
        identity = await self.verify(token)
        if identity is None:
            return ANONYMOUS
        return IdentityResult(IdentityStatus.IDENTIFIED, identity)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


__all__ = [
    "ANONYMOUS",
    "UNAVAILABLE",
    "Identity",
    "IdentityResolver",
    "IdentityResult",
    "IdentityStatus",
    "parse_bearer",
]
