"""JSON-backed key-value store for persisted settings.

One file holds global namespaces at the top level and per-project
namespaces under ``projects``::

    {
      "approvals": {"shell": ["git log", "make"]},
      "projects": {
        "myproj": {"root": "/src/myproj", "approvals": {"shell": ["npm test"]}}
      }
    }

Every write rewrites the whole file atomically. A single writer process
is assumed; the in-process lock only serializes read-modify-write cycles
between threads.
"""

import json
import threading
from pathlib import Path
from typing import Any

from agentic_exec.logging import Loggers
from agentic_exec.persistence._utils import atomic_write_json, read_json

logger = Loggers.persistence()

SCOPE_PROJECT = "project"
SCOPE_GLOBAL = "global"


class PersistenceError(Exception):
    """Raised when the settings file cannot be read or written."""


class NoProjectError(Exception):
    """Raised when a project-scoped operation runs without an active project."""

    def __init__(self, message: str = "No project is active"):
        super().__init__(message)


class SettingsStore:
    """Read and write namespaced mappings at project or global scope.

    Example:
        store = SettingsStore(Path("~/.agentic_exec/settings.json"), project="demo")
        store.put("global", "approvals", {"shell": ["make"]})
        store.get("global", "approvals")  # {"shell": ["make"]}
    """

    def __init__(self, path: Path | str, project: str | None = None):
        """Initialize the store.

        Args:
            path: JSON file to read and write
            project: Active project name, or None for no project
        """
        self.path = Path(path).expanduser()
        self.project = project
        self._lock = threading.Lock()

    @property
    def has_project(self) -> bool:
        """Whether a project is active."""
        return bool(self.project)

    def get(self, scope: str, namespace: str) -> dict[str, Any]:
        """Return the mapping stored under ``namespace`` at ``scope``.

        Missing files and namespaces read as an empty mapping.

        Raises:
            NoProjectError: Project scope without an active project
            PersistenceError: File unreadable or not valid JSON
        """
        with self._lock:
            data = self._load()
        section = self._section(data, scope)
        value = section.get(namespace) or {}
        if not isinstance(value, dict):
            raise PersistenceError(
                f"Expected an object for '{namespace}' in {self.path}"
            )
        return dict(value)

    def put(self, scope: str, namespace: str, mapping: dict[str, Any]) -> None:
        """Replace the mapping under ``namespace`` at ``scope``.

        Raises:
            NoProjectError: Project scope without an active project
            PersistenceError: File unreadable or unwritable
        """
        with self._lock:
            data = self._load()
            section = self._section(data, scope, create=True)
            section[namespace] = mapping
            self._save(data)
        logger.debug(
            "settings_namespace_written",
            scope=scope,
            namespace=namespace,
            project=self.project if scope == SCOPE_PROJECT else None,
        )

    def register_project(self, name: str, root: Path | str) -> None:
        """Record ``root`` as the directory of project ``name``."""
        with self._lock:
            data = self._load()
            projects = data.setdefault("projects", {})
            entry = projects.setdefault(name, {})
            entry["root"] = str(Path(root).expanduser().resolve())
            self._save(data)
        logger.info("project_registered", project=name)

    def project_root(self, name: str | None = None) -> Path | None:
        """Return the registered root of ``name`` (default: active project)."""
        name = name or self.project
        if not name:
            return None
        with self._lock:
            data = self._load()
        root = data.get("projects", {}).get(name, {}).get("root")
        return Path(root) if root else None

    def projects(self) -> list[str]:
        """Names of all registered projects."""
        with self._lock:
            data = self._load()
        return sorted(data.get("projects", {}))

    def _section(
        self, data: dict[str, Any], scope: str, create: bool = False
    ) -> dict[str, Any]:
        if scope == SCOPE_GLOBAL:
            return data
        if scope != SCOPE_PROJECT:
            raise ValueError(f"Unknown settings scope: {scope!r}")
        if not self.project:
            raise NoProjectError()
        if create:
            return data.setdefault("projects", {}).setdefault(self.project, {})
        return data.get("projects", {}).get(self.project, {})

    def _load(self) -> dict[str, Any]:
        try:
            data = read_json(self.path)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise PersistenceError(f"Expected a JSON object in {self.path}")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        try:
            atomic_write_json(self.path, data)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e
