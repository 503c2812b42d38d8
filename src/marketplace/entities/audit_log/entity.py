"""Entity: AuditEntry."""

from pydantic import Field

from src.marketplace.entities._base import Entity


class AuditEntry(Entity):
    """Record of one administrator mutation."""

    admin_id: str = Field(description="Acting administrator")
    action: str = Field(description="Admin operation name")
    target_id: str = Field(description="Affected user")
    reason: str | None = Field(default=None)
    details: str | None = Field(default=None, description="Free-form context")
