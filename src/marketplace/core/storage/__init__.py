from .session_storage import (
    InMemorySessionStorage,
    RedisSessionStorage,
    SessionStorage,
    detect_session_storage,
)

__all__ = [
    "InMemorySessionStorage",
    "RedisSessionStorage",
    "SessionStorage",
    "detect_session_storage",
]
