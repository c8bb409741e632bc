"""Approval policy for gated shell commands.

Approvals are cached per ``ApprovalKey`` in three tiers:

- session: in memory, lives as long as the process
- project: persisted under the active project in the settings store
- global: persisted at the top level of the settings store

Lookup checks global, then project, then session; the first hit wins.
Approving at a higher tier removes copies held at lower tiers, and
approving a key already held at a higher tier changes nothing.

A static baseline of read-only commands is always authorized without
being stored anywhere.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from agentic_exec.constants import SHELL_APPROVAL_CATEGORY
from agentic_exec.logging import Loggers
from agentic_exec.persistence import NoProjectError, PersistenceError, SettingsStore

logger = Loggers.approvals()

APPROVALS_NAMESPACE = "approvals"

# Read-only commands that never need approval
PREAPPROVED_COMMANDS: tuple[str, ...] = (
    "ag",
    "cat",
    "diff",
    "fgrep",
    "grep",
    "head",
    "jq",
    "ls",
    "nl",
    "pwd",
    "rg",
    "tac",
    "tail",
    "tree",
    "wc",
)

PREAPPROVED_SUBCOMMANDS: dict[str, tuple[str, ...]] = {
    "git": (
        "branch",
        "diff",
        "grep",
        "log",
        "merge-base",
        "show",
        "status",
    ),
}


@dataclass(frozen=True)
class ApprovalKey:
    """Normalized fingerprint of a command for approval caching.

    Holds one or two bits: the command (a bare name, or an absolute path
    when the command was given as a path) and, for command families
    with subcommands, the first positional argument. The string form joins
    the bits with a single space; since the command bit cannot contain
    whitespace, splitting on the first space restores the key exactly.
    """

    bits: tuple[str, ...]

    def __post_init__(self):
        if not 1 <= len(self.bits) <= 2:
            raise ValueError(f"ApprovalKey needs 1 or 2 bits, got {len(self.bits)}")
        if not all(isinstance(bit, str) and bit for bit in self.bits):
            raise ValueError("ApprovalKey bits must be non-empty strings")
        if any(ch.isspace() for ch in self.bits[0]):
            raise ValueError(f"Command bit may not contain whitespace: {self.bits[0]!r}")

    @classmethod
    def of(cls, command: str, subcommand: str | None = None) -> "ApprovalKey":
        if subcommand:
            return cls((command, subcommand))
        return cls((command,))

    @classmethod
    def from_string(cls, value: str) -> "ApprovalKey":
        """Parse the persisted form, e.g. ``"git log"`` or ``"make"``."""
        command, sep, subcommand = value.partition(" ")
        if sep:
            return cls((command, subcommand))
        return cls((command,))

    @property
    def command(self) -> str:
        return self.bits[0]

    @property
    def subcommand(self) -> str | None:
        return self.bits[1] if len(self.bits) > 1 else None

    def __str__(self) -> str:
        return " ".join(self.bits)


class ApprovalScope(Enum):
    """Tier an approval is recorded in."""

    SESSION = "session"
    PROJECT = "project"
    GLOBAL = "global"

    @property
    def persistent(self) -> bool:
        return self is not ApprovalScope.SESSION


# Highest precedence first
LOOKUP_ORDER = (ApprovalScope.GLOBAL, ApprovalScope.PROJECT, ApprovalScope.SESSION)
_RANK = {ApprovalScope.SESSION: 0, ApprovalScope.PROJECT: 1, ApprovalScope.GLOBAL: 2}


@dataclass(frozen=True)
class ApprovalRecord:
    """An approval held at a given scope."""

    scope: ApprovalScope
    key: ApprovalKey

    def to_dict(self) -> dict[str, str]:
        return {"scope": self.scope.value, "key": str(self.key)}


def default_preapproved() -> frozenset[ApprovalKey]:
    """The built-in baseline of read-only commands."""
    keys = {ApprovalKey.of(cmd) for cmd in PREAPPROVED_COMMANDS}
    for cmd, subcommands in PREAPPROVED_SUBCOMMANDS.items():
        keys.update(ApprovalKey.of(cmd, sub) for sub in subcommands)
    return frozenset(keys)


class ApprovalPolicy:
    """Three-tier approval cache backed by a ``SettingsStore``.

    Example:
        policy = ApprovalPolicy(SettingsStore(path, project="demo"))
        key = ApprovalKey.of("npm", "test")
        policy.is_authorized(key)  # False
        policy.approve(ApprovalScope.PROJECT, key)
        policy.lookup(key)  # ApprovalScope.PROJECT

    All tier mutations happen under one lock, so a policy instance can be
    shared by concurrent tool calls.
    """

    def __init__(
        self,
        store: SettingsStore,
        category: str = SHELL_APPROVAL_CATEGORY,
        extra_preapproved: Iterable[str] = (),
    ):
        """Initialize the policy and load persisted approvals.

        Args:
            store: Settings store holding project and global approvals
            category: Key under the ``approvals`` namespace
            extra_preapproved: Additional always-allowed keys in string form
        """
        self._store = store
        self._category = category
        self._lock = threading.RLock()
        self._tiers: dict[ApprovalScope, set[ApprovalKey]] = {
            scope: set() for scope in ApprovalScope
        }
        self._preapproved = default_preapproved() | frozenset(
            ApprovalKey.from_string(entry) for entry in extra_preapproved
        )
        self._load_persistent()

    @property
    def store(self) -> SettingsStore:
        return self._store

    @property
    def has_project(self) -> bool:
        return self._store.has_project

    @property
    def preapproved(self) -> frozenset[ApprovalKey]:
        return self._preapproved

    def is_preapproved(self, key: ApprovalKey) -> bool:
        """Whether ``key`` is in the static baseline."""
        return key in self._preapproved

    def lookup(self, key: ApprovalKey) -> ApprovalScope | None:
        """Return the highest scope holding ``key``, or None."""
        with self._lock:
            for scope in LOOKUP_ORDER:
                if key in self._tiers[scope]:
                    return scope
        return None

    def is_approved(self, key: ApprovalKey) -> bool:
        """Whether ``key`` was approved at any scope."""
        return self.lookup(key) is not None

    def is_authorized(self, key: ApprovalKey) -> bool:
        """Whether ``key`` may run without asking the user."""
        return self.is_preapproved(key) or self.is_approved(key)

    def approve(self, scope: ApprovalScope, key: ApprovalKey) -> ApprovalRecord:
        """Record an approval of ``key`` at ``scope``.

        Returns:
            The record now holding the key, which is a higher-scope record
            when the key was already approved there.

        Raises:
            NoProjectError: Project scope without an active project. No
                tier changes.
            PersistenceError: The store write failed. The key is recorded
                for the session instead and the persistent tier is
                unchanged.
        """
        with self._lock:
            if scope is ApprovalScope.PROJECT and not self.has_project:
                raise NoProjectError(
                    f"Cannot approve '{key}' for the project: no project is active"
                )

            holder = self.lookup(key)
            if holder is not None and _RANK[holder] >= _RANK[scope]:
                return ApprovalRecord(holder, key)

            if scope.persistent:
                updated = self._tiers[scope] | {key}
                try:
                    self._write(scope, updated)
                except PersistenceError as e:
                    self._tiers[ApprovalScope.SESSION].add(key)
                    logger.warning(
                        "approval_persist_failed",
                        scope=scope.value,
                        key=str(key),
                        error=str(e),
                    )
                    raise
                self._tiers[scope] = updated
            else:
                self._tiers[scope].add(key)

            self._remove_below(scope, key)

        logger.info("approval_recorded", scope=scope.value, key=str(key))
        return ApprovalRecord(scope, key)

    def reset(self) -> None:
        """Reload persisted tiers from the store and clear the session tier."""
        with self._lock:
            self._tiers[ApprovalScope.SESSION].clear()
            self._load_persistent()

    def keys(self, scope: ApprovalScope) -> frozenset[ApprovalKey]:
        """Snapshot of the keys held at ``scope``."""
        with self._lock:
            return frozenset(self._tiers[scope])

    def records(self) -> list[ApprovalRecord]:
        """Snapshot of all approvals, highest scope first."""
        with self._lock:
            return [
                ApprovalRecord(scope, key)
                for scope in LOOKUP_ORDER
                for key in sorted(self._tiers[scope], key=str)
            ]

    def _remove_below(self, scope: ApprovalScope, key: ApprovalKey) -> None:
        for lower in ApprovalScope:
            if _RANK[lower] >= _RANK[scope] or key not in self._tiers[lower]:
                continue
            if lower.persistent:
                remaining = self._tiers[lower] - {key}
                try:
                    self._write(lower, remaining)
                except PersistenceError as e:
                    # Still shadowed by the higher scope
                    logger.warning(
                        "approval_demote_failed",
                        scope=lower.value,
                        key=str(key),
                        error=str(e),
                    )
                    continue
                self._tiers[lower] = remaining
            else:
                self._tiers[lower].discard(key)

    def _load_persistent(self) -> None:
        for scope in (ApprovalScope.PROJECT, ApprovalScope.GLOBAL):
            self._tiers[scope] = self._read(scope)

    def _read(self, scope: ApprovalScope) -> set[ApprovalKey]:
        if scope is ApprovalScope.PROJECT and not self.has_project:
            return set()
        try:
            mapping = self._store.get(scope.value, APPROVALS_NAMESPACE)
        except PersistenceError as e:
            logger.warning("approvals_load_failed", scope=scope.value, error=str(e))
            return set()

        entries = mapping.get(self._category) or []
        if not isinstance(entries, list):
            logger.warning("approvals_malformed", scope=scope.value)
            return set()

        keys = set()
        for entry in entries:
            try:
                keys.add(ApprovalKey.from_string(entry))
            except (TypeError, ValueError, AttributeError):
                logger.warning("approval_entry_skipped", scope=scope.value, entry=repr(entry))
        return keys

    def _write(self, scope: ApprovalScope, keys: set[ApprovalKey]) -> None:
        # Other categories in the namespace are preserved
        mapping = self._store.get(scope.value, APPROVALS_NAMESPACE)
        mapping[self._category] = sorted({str(key) for key in keys})
        self._store.put(scope.value, APPROVALS_NAMESPACE, mapping)
