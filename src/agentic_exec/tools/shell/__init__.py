"""Gated shell execution.

Every command an agent asks to run passes three checks:

- Syntax guard: no shell metacharacters in any command or argument
- Approval: pre-approved, previously approved, or confirmed by the user
- Runner: stages executed in order under one deadline

Usage:
    from agentic_exec.tools.shell import CommandRequest, create_shell_gate

    gate = create_shell_gate()
    request = CommandRequest.from_tool_args({
        "description": "Show recent commits",
        "commands": [{"command": "git", "args": ["log", "-5"]}],
    })
    result = gate.execute(request)
    print(result.format())
"""

from agentic_exec.tools.shell.config import ShellSecurityConfig
from agentic_exec.tools.shell.errors import (
    ApprovalScopeError,
    CommandNotFoundError,
    CommandPermissionError,
    DeniedError,
    InvalidRequestError,
    SyntaxRejectedError,
)
from agentic_exec.tools.shell.models import (
    CommandRequest,
    CommandStage,
    ExecutionResult,
    OPERATOR_PIPE,
    OPERATOR_SEQUENCE,
)
from agentic_exec.tools.shell.syntax_guard import (
    ScanOutcome,
    ScanResult,
    Verdict,
    classify,
    is_dangerous,
    scan,
)
from agentic_exec.tools.shell.prefix import derive_approval_key
from agentic_exec.tools.shell.runner import PipelineRunner, StagedInput
from agentic_exec.tools.shell.gate import ShellGate, create_shell_gate

__all__ = [
    # Config
    "ShellSecurityConfig",
    # Errors
    "ApprovalScopeError",
    "CommandNotFoundError",
    "CommandPermissionError",
    "DeniedError",
    "InvalidRequestError",
    "SyntaxRejectedError",
    # Models
    "CommandRequest",
    "CommandStage",
    "ExecutionResult",
    "OPERATOR_PIPE",
    "OPERATOR_SEQUENCE",
    # Syntax guard
    "ScanOutcome",
    "ScanResult",
    "Verdict",
    "classify",
    "is_dangerous",
    "scan",
    # Approval keys
    "derive_approval_key",
    # Execution
    "PipelineRunner",
    "StagedInput",
    "ShellGate",
    "create_shell_gate",
]
