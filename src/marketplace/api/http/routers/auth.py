"""Sign-up, sign-in and sign-out.

The session token is returned in the body and also set as an HttpOnly cookie
so browser clients and API clients can both use it.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from src.marketplace.api.http.deps import get_identity_service, session_token_from
from src.marketplace.core.models.session import UserSession
from src.marketplace.core.services import IdentityService
from src.marketplace.entities.profile import Role
from src.marketplace.runtime.context import get_config

router = APIRouter(prefix="/auth", tags=["auth"])


class SignUpRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str = Role.SEEKER.value
    phone: str | None = None


class SignInRequest(BaseModel):
    email: str | None = None


def _set_session_cookie(response: Response, session: UserSession) -> None:
    config = get_config()
    response.set_cookie(
        key=config.session.cookie_name,
        value=session.id,
        max_age=config.session.ttl_seconds,
        httponly=True,
        secure=config.app.environment == "production",
        samesite="lax",
        path="/",
    )


@router.post("/signup", status_code=201)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
) -> dict[str, Any]:
    profile, session = await identity.sign_up(body.name, body.email, body.role, body.phone)
    _set_session_cookie(response, session)
    return {"profile": profile, "session_id": session.id}


@router.post("/signin")
async def sign_in(
    body: SignInRequest,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
) -> dict[str, str]:
    session = await identity.sign_in(body.email)
    _set_session_cookie(response, session)
    return {"session_id": session.id, "user_id": session.user_id}


@router.post("/signout", status_code=204)
async def sign_out(
    request: Request,
    response: Response,
    identity: IdentityService = Depends(get_identity_service),
) -> None:
    token = session_token_from(request)
    if token:
        await identity.sign_out(token)
    response.delete_cookie(get_config().session.cookie_name, path="/")

