"""Client-local session state."""

from family_finance.session.store import (
    CURRENT_USER_KEY,
    DashboardPreferences,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    SessionCache,
)

__all__ = [
    "CURRENT_USER_KEY",
    "DashboardPreferences",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "SessionCache",
]
