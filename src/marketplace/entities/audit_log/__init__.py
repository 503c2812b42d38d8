"""Entity package: AuditEntry."""

from .entity import AuditEntry
from .repository import AuditEntryRepository
from .table import AuditEntryTable

__all__ = ["AuditEntry", "AuditEntryRepository", "AuditEntryTable"]
