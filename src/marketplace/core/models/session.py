"""Sign-in sessions and the caller identity handed to services."""

import secrets
import time

from pydantic import BaseModel, Field

SESSION_KEY_PREFIX = "session:"


class UserSession(BaseModel):
    """An opaque token issued at sign-up or sign-in, stored with a TTL."""

    id: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    user_id: str
    created_at: int = Field(default_factory=lambda: int(time.time()))
    expires_at: int = Field(description="Unix time after which the token is refused")

    @classmethod
    def create(cls, user_id: str, ttl_seconds: int) -> "UserSession":
        now = int(time.time())
        return cls(user_id=user_id, created_at=now, expires_at=now + ttl_seconds)

    def is_expired(self) -> bool:
        return time.time() > self.expires_at

    @staticmethod
    def storage_key(session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"


class CallerSession(BaseModel):
    """Who is calling, resolved from a session token.

    Passed explicitly into every operation; there is no ambient current user.
    An instance without ``user_id`` stands for an anonymous caller.
    """

    user_id: str | None = None
    session_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)
