"""Entity package: VerificationRequest."""

from .entity import RequestStatus, VerificationRequest
from .repository import VerificationRequestRepository
from .table import VerificationRequestTable

__all__ = [
    "RequestStatus",
    "VerificationRequest",
    "VerificationRequestRepository",
    "VerificationRequestTable",
]
