from .base import Base
from .session import (
    create_engine,
    create_session_factory,
    get_async_url,
    session_scope,
)

__all__ = [
    "Base",
    "create_engine",
    "create_session_factory",
    "get_async_url",
    "session_scope",
]
