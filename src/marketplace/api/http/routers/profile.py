from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.marketplace.api.http.deps import get_profile_service, require_caller
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import ProfileService
from src.marketplace.entities.profile import Profile

router = APIRouter(prefix="/me", tags=["profile"])


class ProfileUpdate(BaseModel):
    model_config = {"extra": "allow"}

    name: str | None = None
    phone: str | None = None
    address: str | None = None
    profile_image_url: str | None = None


@router.get("")
async def get_me(
    caller: CallerSession = Depends(require_caller),
    profiles: ProfileService = Depends(get_profile_service),
) -> dict[str, Any]:
    """The caller's profile with an entitlement evaluated at request time."""
    profile, entitled = await profiles.me(caller)
    return {"profile": profile, "can_access_contact": entitled}


@router.patch("")
async def update_me(
    body: ProfileUpdate,
    caller: CallerSession = Depends(require_caller),
    profiles: ProfileService = Depends(get_profile_service),
) -> Profile:
    # Unknown keys are passed through so the service can name them in its error
    return await profiles.update_own_profile(caller, body.model_dump(exclude_unset=True))
