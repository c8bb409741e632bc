"""Configuration for gated shell execution.

Provides user-configurable limits, path completion and extra
pre-approved commands, loadable from YAML.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from agentic_exec.constants import (
    DEFAULT_TIMEOUT_MS,
    MAX_OUTPUT_CHARS,
    MAX_TIMEOUT_MS,
    SHELL_APPROVAL_CATEGORY,
)

# Honored only in the user config file
USER_ONLY_KEYS = ("extra_preapproved", "approval_category")


@dataclass
class ShellSecurityConfig:
    """Configuration for shell command execution.

    Attributes:
        default_timeout_ms: Deadline used when a request gives none or an
            invalid one.
        max_timeout_ms: Ceiling for requested deadlines.
        max_output_chars: Output size before truncation.
        path_completion_commands: Recursive search tools that get the
            project root appended when no path argument is given.
        extra_preapproved: Approval keys (``"make lint"``) allowed without
            prompting, on top of the built-in read-only baseline.
        approval_category: Key under which shell approvals are stored.
        temp_dir: Directory for pipeline temp files (system default if None).
    """

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_timeout_ms: int = MAX_TIMEOUT_MS
    max_output_chars: int = MAX_OUTPUT_CHARS
    path_completion_commands: list[str] = field(default_factory=lambda: ["rg"])
    extra_preapproved: list[str] = field(default_factory=list)
    approval_category: str = SHELL_APPROVAL_CATEGORY
    temp_dir: str | None = None

    def __post_init__(self):
        if self.max_timeout_ms <= 0:
            raise ValueError("max_timeout_ms must be positive")
        if not 0 < self.default_timeout_ms <= self.max_timeout_ms:
            raise ValueError("default_timeout_ms must be positive and at most max_timeout_ms")
        if self.max_output_chars <= 0:
            raise ValueError("max_output_chars must be positive")

    def sanitize_timeout(self, timeout_ms: Any) -> int:
        """Clamp a requested deadline.

        Missing, non-integer or non-positive values fall back to the
        default; values above the ceiling are cut to the ceiling.
        """
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
            return self.default_timeout_ms
        if timeout_ms <= 0:
            return self.default_timeout_ms
        return min(timeout_ms, self.max_timeout_ms)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShellSecurityConfig":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary.

        Returns:
            ShellSecurityConfig instance.
        """
        return cls(
            default_timeout_ms=data.get("default_timeout_ms", DEFAULT_TIMEOUT_MS),
            max_timeout_ms=data.get("max_timeout_ms", MAX_TIMEOUT_MS),
            max_output_chars=data.get("max_output_chars", MAX_OUTPUT_CHARS),
            path_completion_commands=list(data.get("path_completion_commands", ["rg"])),
            extra_preapproved=list(data.get("extra_preapproved", [])),
            approval_category=data.get("approval_category", SHELL_APPROVAL_CATEGORY),
            temp_dir=data.get("temp_dir"),
        )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ShellSecurityConfig":
        """Load config from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            ShellSecurityConfig instance (defaults if the file is missing).
        """
        path = Path(path)
        if not path.exists():
            return cls()

        return cls.from_dict(_read_yaml(path))

    @classmethod
    def load_default(cls) -> "ShellSecurityConfig":
        """Load configuration from default location.

        Looks for config in:
        1. ~/.config/agentic-exec/shell_security.yaml
        2. ./shell_security.yaml (project local)

        A project-local file cannot add pre-approved commands or move the
        approval category; those keys are only honored in the user file.
        """
        user_config = Path.home() / ".config" / "agentic-exec" / "shell_security.yaml"
        if user_config.exists():
            return cls.from_yaml(user_config)

        local_config = Path("shell_security.yaml")
        if local_config.exists():
            data = _read_yaml(local_config)
            for key in USER_ONLY_KEYS:
                data.pop(key, None)
            return cls.from_dict(data)

        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "default_timeout_ms": self.default_timeout_ms,
            "max_timeout_ms": self.max_timeout_ms,
            "max_output_chars": self.max_output_chars,
            "path_completion_commands": list(self.path_completion_commands),
            "extra_preapproved": list(self.extra_preapproved),
            "approval_category": self.approval_category,
            "temp_dir": self.temp_dir,
        }


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data
