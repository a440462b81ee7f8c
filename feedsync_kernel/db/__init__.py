"""Database layer - engine, base classes."""

from feedsync_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from feedsync_kernel.db.engine import (
    build_engine,
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_session_factory",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "is_postgres",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
