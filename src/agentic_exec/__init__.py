"""agentic-exec - gated execution of agent-issued shell commands.

Provides the trust boundary between an LLM agent and the user's shell:

- Syntax guard rejecting shell constructs in commands and arguments
- Approval policy with session, project and global scopes
- Pipeline runner with a hard deadline and temp-file cleanup
- The ``shell_tool`` function offered to the agent

Note: the shell tool factories are lazy-loaded to keep imports light.
"""

from agentic_exec.config import (
    BaseSettings,
    SettingsContext,
    get_settings,
    reload_settings,
    set_context_settings,
    set_settings,
)
from agentic_exec.hitl import (
    ApprovalKey,
    ApprovalPolicy,
    ApprovalScope,
    ConsoleConfirmer,
)
from agentic_exec.persistence import NoProjectError, PersistenceError, SettingsStore

__version__ = "0.1.0"

_lazy_imports = {
    "ShellGate": "agentic_exec.tools.shell.gate",
    "create_shell_gate": "agentic_exec.tools.shell.gate",
    "create_shell_tool": "agentic_exec.tools.shell_tool",
    "create_async_shell_tool": "agentic_exec.tools.shell_tool",
}


def __getattr__(name: str):
    """Lazy import for tool modules."""
    if name in _lazy_imports:
        import importlib

        module = importlib.import_module(_lazy_imports[name])
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Settings
    "BaseSettings",
    "SettingsContext",
    "get_settings",
    "reload_settings",
    "set_context_settings",
    "set_settings",
    # Approvals
    "ApprovalKey",
    "ApprovalPolicy",
    "ApprovalScope",
    "ConsoleConfirmer",
    # Persistence
    "SettingsStore",
    "PersistenceError",
    "NoProjectError",
    # Shell (lazy)
    "ShellGate",
    "create_shell_gate",
    "create_shell_tool",
    "create_async_shell_tool",
    "__version__",
]
