from __future__ import annotations

import asyncio
from typing import Any

from sqlalchemy.orm import Session

from adonai.db import Database
from adonai.models import Profile
from adonai.services.identity import Identity

# user_metadata keys the frontend writes on sign-up, in order of preference
NAME_KEYS = ("full_name", "name", "display_name")
AVATAR_KEYS = ("avatar_url", "picture")


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def profile_to_dict(profile: Profile) -> dict[str, Any]:
    return {
        "id": profile.id,
        "email": profile.email,
        "displayName": profile.display_name,
        "avatarUrl": profile.avatar_url,
        "tier": profile.tier,
        "dailyQuestionCount": profile.daily_question_count,
        "lastQuestionDate": _iso(profile.last_question_date),
        "createdAt": _iso(profile.created_at),
    }


def _first_str(metadata: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def ensure_profile(db: Session, identity: Identity) -> Profile:
    """Return the profile for ``identity``, creating it from the token claims.

    Blank email, name and avatar on an existing row are filled in from the
    identity; values already stored are never overwritten. Does not commit.
    """
    metadata = identity.metadata or {}
    profile = db.get(Profile, identity.id)
    if profile is None:
        profile = Profile(id=identity.id, tier="free", daily_question_count=0)
        db.add(profile)
    if not profile.email and identity.email:
        profile.email = identity.email
    if not profile.display_name:
        profile.display_name = _first_str(metadata, NAME_KEYS)
    if not profile.avatar_url:
        profile.avatar_url = _first_str(metadata, AVATAR_KEYS)
    return profile


def update_display_name(db: Session, identity: Identity, display_name: str) -> Profile:
    profile = ensure_profile(db, identity)
    profile.display_name = display_name
    db.commit()
    return profile


TIERS = ("free", "premium", "admin")


def set_tier(db: Session, user_id: str, tier: str) -> bool:
    if tier not in TIERS:
        raise ValueError(f"unknown tier: {tier}")
    profile = db.get(Profile, user_id)
    if profile is None:
        return False
    profile.tier = tier
    db.commit()
    return True


class ProfileService:
    """Profile reads and writes for a verified identity.

    The row is created on first access, so a new account never sees a 404.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def _get_sync(self, identity: Identity) -> dict[str, Any]:
        with self.database.session() as db:
            profile = ensure_profile(db, identity)
            db.commit()
            return profile_to_dict(profile)

    def _update_sync(self, identity: Identity, display_name: str) -> dict[str, Any]:
        with self.database.session() as db:
            return profile_to_dict(update_display_name(db, identity, display_name))

    async def get(self, identity: Identity) -> dict[str, Any]:
        return await asyncio.to_thread(self._get_sync, identity)

    async def set_display_name(self, identity: Identity, display_name: str) -> dict[str, Any]:
        return await asyncio.to_thread(self._update_sync, identity, display_name)


__all__ = [
    "TIERS",
    "ProfileService",
    "ensure_profile",
    "profile_to_dict",
    "set_tier",
    "update_display_name",
]
