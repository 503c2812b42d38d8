"""FastAPI dependency implementations."""

from __future__ import annotations

from fastapi import Depends, Request
from starlette.requests import HTTPConnection

from src.marketplace.api.http.app_data import ApplicationDependencies
from src.marketplace.core.errors import AuthenticationRequired
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import (
    AdminService,
    IdentityService,
    ListingService,
    NotificationService,
    ProfileService,
    SubscriptionService,
    VerificationWorkflow,
)
from src.marketplace.runtime.context import get_config


def get_app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_identity_service(request: Request) -> IdentityService:
    """Get the identity service instance."""
    return get_app_dependencies(request).identity_service


def get_profile_service(request: Request) -> ProfileService:
    return get_app_dependencies(request).profile_service


def get_verification_workflow(request: Request) -> VerificationWorkflow:
    return get_app_dependencies(request).verification_workflow


def get_subscription_service(request: Request) -> SubscriptionService:
    return get_app_dependencies(request).subscription_service


def get_admin_service(request: Request) -> AdminService:
    return get_app_dependencies(request).admin_service


def get_listing_service(request: Request) -> ListingService:
    return get_app_dependencies(request).listing_service


def get_notification_service(request: Request) -> NotificationService:
    return get_app_dependencies(request).notification_service


def session_token_from(connection: HTTPConnection) -> str | None:
    """Read the session token from a Bearer header or the session cookie."""
    auth = connection.headers.get("authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return connection.cookies.get(get_config().session.cookie_name)


async def get_caller(
    request: Request,
    identity: IdentityService = Depends(get_identity_service),
) -> CallerSession | None:
    """Resolve the caller, or None for anonymous requests."""
    return await identity.get_session(session_token_from(request))


async def require_caller(
    caller: CallerSession | None = Depends(get_caller),
) -> CallerSession:
    if caller is None:
        raise AuthenticationRequired()
    return caller
