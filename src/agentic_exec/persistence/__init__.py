"""Persistence for approvals and the project registry."""

from agentic_exec.persistence.settings_store import (
    NoProjectError,
    PersistenceError,
    SCOPE_GLOBAL,
    SCOPE_PROJECT,
    SettingsStore,
)

__all__ = [
    "SettingsStore",
    "PersistenceError",
    "NoProjectError",
    "SCOPE_PROJECT",
    "SCOPE_GLOBAL",
]
