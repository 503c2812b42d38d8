"""Admin endpoints.

Authorization is enforced by ``AdminService`` on every call; the router only
resolves the caller and shapes request bodies.
"""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.marketplace.api.http.deps import (
    get_admin_service,
    get_identity_service,
    require_caller,
)
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import AdminService, IdentityService
from src.marketplace.entities.audit_log import AuditEntry
from src.marketplace.entities.notification import Notification
from src.marketplace.entities.profile import Profile
from src.marketplace.entities.verification_request import VerificationRequest

router = APIRouter(prefix="/admin", tags=["admin"])


class ReviewRequest(BaseModel):
    decision: str
    notes: str | None = None


class RejectRequest(BaseModel):
    notes: str | None = None


class ReasonRequest(BaseModel):
    reason: str | None = None


class RoleChangeRequest(BaseModel):
    role: str
    reason: str | None = None


class MessageRequest(BaseModel):
    message: str | None = None
    title: str = "Message from Admin"


@router.get("/stats")
async def stats(
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> dict[str, int]:
    return asdict(await admin.get_stats(caller.user_id))


@router.get("/users")
async def list_users(
    role: str | None = None,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> list[Profile]:
    return await admin.list_users(caller.user_id, role)


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> dict[str, Any]:
    profile = await admin.get_user(caller.user_id, user_id)
    return {"profile": profile, "protected": admin.is_protected(user_id)}


@router.get("/verification-requests")
async def list_verification_requests(
    status: str | None = None,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> list[VerificationRequest]:
    return await admin.list_verification_requests(caller.user_id, status)


@router.post("/verification-requests/{request_id}/review")
async def review_request(
    request_id: str,
    body: ReviewRequest,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> VerificationRequest:
    return await admin.review_verification(caller.user_id, request_id, body.decision, body.notes)


@router.post("/users/{user_id}/verify")
async def verify_user(
    user_id: str,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> VerificationRequest:
    return await admin.verify(caller.user_id, user_id)


@router.post("/users/{user_id}/reject")
async def reject_user(
    user_id: str,
    body: RejectRequest,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> VerificationRequest:
    return await admin.reject(caller.user_id, user_id, body.notes)


@router.post("/users/{user_id}/unverify")
async def unverify_user(
    user_id: str,
    body: ReasonRequest,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> Profile:
    return await admin.unverify(caller.user_id, user_id, body.reason)


@router.post("/users/{user_id}/role")
async def change_role(
    user_id: str,
    body: RoleChangeRequest,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> Profile:
    return await admin.change_role(caller.user_id, user_id, body.role, body.reason)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    body: ReasonRequest,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
    identity: IdentityService = Depends(get_identity_service),
) -> dict[str, Any]:
    """Delete a user and everything they own. Returns per-table row counts."""
    counts = await admin.delete_user(caller.user_id, user_id, body.reason)
    revoked = await identity.revoke_sessions_for(user_id)
    return {"deleted": counts, "sessions_revoked": revoked}


@router.post("/users/{user_id}/message", status_code=201)
async def send_message(
    user_id: str,
    body: MessageRequest,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> Notification:
    return await admin.send_message(caller.user_id, user_id, body.message, body.title)


@router.get("/audit")
async def audit_log(
    target_id: str | None = None,
    caller: CallerSession = Depends(require_caller),
    admin: AdminService = Depends(get_admin_service),
) -> list[AuditEntry]:
    return await admin.audit_log(caller.user_id, target_id)
