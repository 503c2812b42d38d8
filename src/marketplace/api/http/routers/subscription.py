from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.marketplace.api.http.deps import get_subscription_service, require_caller
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import SubscriptionService
from src.marketplace.entities.profile import Profile

router = APIRouter(prefix="/subscription", tags=["subscription"])


class SubscribeRequest(BaseModel):
    plan: str


@router.post("")
async def subscribe(
    body: SubscribeRequest,
    caller: CallerSession = Depends(require_caller),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> Profile:
    return await subscriptions.subscribe_to_plan(caller, caller.user_id, body.plan)


@router.get("")
async def subscription_status(
    caller: CallerSession = Depends(require_caller),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    profile, remaining = await subscriptions.status(caller)
    return {
        "plan": profile.subscription_plan,
        "expiry": profile.subscription_expiry,
        "remaining": asdict(remaining),
    }
