"""Auth status and profile routes.

Sign-in itself happens in the browser against Supabase; the backend only
hands out the public config and manages the profile row.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from adonai.dependencies import Services, get_services, require_identity, require_profiles
from adonai.errors import ErrorResponse, ValidationError
from adonai.services.identity import Identity
from adonai.services.profiles import ProfileService

router = APIRouter(prefix="/auth", tags=["auth"])


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: Any = Field(None, alias="displayName")


@router.get("/config")
async def auth_config(services: Services = Depends(get_services)) -> dict[str, Any]:
    cfg = services.settings
    if not cfg.supabase_configured:
        return {
            "configured": False,
            "message": "Authentication is not configured. Running in anonymous-only mode.",
        }
    # the anon key is meant to be public
    return {
        "configured": True,
        "supabaseUrl": cfg.supabase_url,
        "supabaseAnonKey": cfg.supabase_anon_key,
    }


@router.get(
    "/profile",
    responses={401: {"model": ErrorResponse}},
)
async def read_profile(
    identity: Identity = Depends(require_identity),
    profiles: ProfileService = Depends(require_profiles),
) -> dict[str, Any]:
    return await profiles.get(identity)


@router.put(
    "/profile",
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def update_profile(
    body: ProfileUpdateRequest,
    identity: Identity = Depends(require_identity),
    profiles: ProfileService = Depends(require_profiles),
) -> dict[str, str]:
    if not isinstance(body.display_name, str) or not body.display_name.strip():
        raise ValidationError("Display name is required")
    await profiles.set_display_name(identity, body.display_name.strip())
    return {"message": "Profile updated successfully"}
