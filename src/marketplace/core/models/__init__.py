from .change_event import ChangeEvent, ChangeOperation, ChangeTable
from .session import CallerSession, UserSession

__all__ = [
    "CallerSession",
    "ChangeEvent",
    "ChangeOperation",
    "ChangeTable",
    "UserSession",
]
