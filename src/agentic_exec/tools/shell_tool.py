"""The ``shell_tool`` function exposed to the agent.

Wraps a ``ShellGate`` in a function taking JSON tool-call arguments and
returning text. Gate errors are turned into explanations the model can act
on; nothing raised by the gate escapes the tool.

Example:
    from agentic_exec.tools.shell import create_shell_gate
    from agentic_exec.tools.shell_tool import create_shell_tool

    shell_tool = create_shell_tool(create_shell_gate())
    text = shell_tool(
        description="List project files",
        commands=[{"command": "ls", "args": ["-la"]}],
    )
"""

import asyncio
from typing import Any, Callable, Coroutine

from agentic_exec.constants import COMMAND_LOG_PREVIEW_LENGTH, truncate
from agentic_exec.hitl.policy import ApprovalPolicy, default_preapproved
from agentic_exec.logging import Loggers
from agentic_exec.tools.registry import ToolCategory, ToolError, ToolRegistry
from agentic_exec.tools.shell.gate import ShellGate
from agentic_exec.tools.shell.models import CommandRequest, OPERATOR_PIPE

logger = Loggers.tools()

SHELL_TOOL_NAME = "shell_tool"

_DESCRIPTION = """\
Runs one or more commands and returns their combined stdout and stderr.

Commands are executed directly, not through a shell. Do not put pipes,
redirection, command substitution, semicolons or other shell syntax in a
command or its arguments; such requests are rejected. To build a pipeline,
pass several command objects: with operator "|" each command reads the
previous command's output on stdin, with "&&" they run one after another.

The user must approve commands before they run, unless they are
pre-approved. Interactive commands cannot be used and will time out.
Commands run in the project root.

Pre-approved commands:
{preapproved}"""

_APPROVED_HEADING = "Also approved by the user (these run without prompting):"


def shell_tool_spec(policy: ApprovalPolicy | None = None) -> dict[str, Any]:
    """Function-calling schema for the shell tool.

    Args:
        policy: When given, its pre-approved keys and recorded
            approvals are listed in the description.
    """
    return {
        "name": SHELL_TOOL_NAME,
        "description": _describe(policy),
        "parameters": _parameters(),
    }


def _describe(policy: ApprovalPolicy | None) -> str:
    keys = default_preapproved() if policy is None else policy.preapproved
    listing = "\n".join(f"- {key}" for key in sorted(keys, key=str))
    description = _DESCRIPTION.format(preapproved=listing)

    records = policy.records() if policy is not None else []
    if records:
        approved = "\n".join(f"- {r.key} ({r.scope.value})" for r in records)
        description += f"\n\n{_APPROVED_HEADING}\n{approved}"
    return description


def _parameters() -> dict[str, Any]:
    return {
        "type": "object",
        "required": ["description", "commands"],
        "additionalProperties": False,
        "properties": {
            "description": {
                "type": "string",
                "description": (
                    "What the commands do and why they are needed. "
                    "Shown to the user in the approval prompt."
                ),
            },
            "commands": {
                "type": "array",
                "minItems": 1,
                "description": "Commands to run, in order.",
                "items": {
                    "type": "object",
                    "required": ["command", "args"],
                    "additionalProperties": False,
                    "properties": {
                        "command": {
                            "type": "string",
                            "description": "Executable to run, without arguments.",
                        },
                        "args": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": (
                                "Arguments passed verbatim. No quoting is needed "
                                "and variables such as $HOME are not expanded."
                            ),
                        },
                    },
                },
            },
            "timeout_ms": {
                "type": "integer",
                "description": "Deadline for the whole run in milliseconds.",
            },
            "operator": {
                "type": "string",
                "enum": ["|", "&&"],
                "description": "'|' pipes output between commands, '&&' runs them in sequence.",
            },
        },
    }


def run_tool_call(gate: ShellGate, arguments: dict[str, Any]) -> str:
    """Execute one tool call and render the outcome as text."""
    try:
        request = CommandRequest.from_tool_args(arguments)
        result = gate.execute(request)
    except ToolError as e:
        e.tool_name = e.tool_name or SHELL_TOOL_NAME
        logger.info(
            "shell_tool_error",
            code=e.error_code,
            message=truncate(e.message, COMMAND_LOG_PREVIEW_LENGTH),
        )
        return e.message
    return result.format()


def create_shell_tool(
    gate: ShellGate,
    registry: ToolRegistry | None = None,
) -> Callable[..., str]:
    """Create the shell tool bound to ``gate``.

    Args:
        gate: Gate that checks and runs commands
        registry: Registry to register the tool with, if any

    Returns:
        The tool function.
    """

    def shell_tool(
        description: str,
        commands: list[dict[str, Any]],
        timeout_ms: int | None = None,
        operator: str = OPERATOR_PIPE,
    ) -> str:
        """Run commands after syntax checks and user approval."""
        arguments: dict[str, Any] = {
            "description": description,
            "commands": commands,
            "operator": operator,
        }
        if timeout_ms is not None:
            arguments["timeout_ms"] = timeout_ms
        return run_tool_call(gate, arguments)

    if registry is not None:
        spec = shell_tool_spec(gate.policy)
        registry.register(
            shell_tool,
            name=SHELL_TOOL_NAME,
            description=spec["description"],
            parameters=spec["parameters"],
            category=ToolCategory.EXECUTION,
            timeout_seconds=gate.config.max_timeout_ms // 1000,
        )
    return shell_tool


def create_async_shell_tool(
    gate: ShellGate,
) -> Callable[..., Coroutine[Any, Any, str]]:
    """Async variant of ``create_shell_tool`` running the gate in a thread."""
    shell_tool = create_shell_tool(gate)

    async def shell_tool_async(
        description: str,
        commands: list[dict[str, Any]],
        timeout_ms: int | None = None,
        operator: str = OPERATOR_PIPE,
    ) -> str:
        """Run commands after syntax checks and user approval."""
        return await asyncio.to_thread(
            shell_tool, description, commands, timeout_ms, operator
        )

    return shell_tool_async
