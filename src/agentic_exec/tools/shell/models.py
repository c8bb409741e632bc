"""Data models for gated shell execution."""

import shlex
from dataclasses import dataclass, field
from typing import Any

from agentic_exec.tools.shell.errors import InvalidRequestError

OPERATOR_PIPE = "|"
OPERATOR_SEQUENCE = "&&"
OPERATORS = (OPERATOR_PIPE, OPERATOR_SEQUENCE)

NO_OUTPUT = "(no output)"
TIMEOUT_HINT = (
    "Remember that interactive commands will always time out.\n"
    "Some commands behave differently outside of an interactive shell."
)


@dataclass(frozen=True)
class CommandStage:
    """One executable with its literal argument vector.

    Arguments are passed to the process as-is; no shell ever sees them.
    """

    command: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    def display(self) -> str:
        """Shell-quoted rendering for prompts and messages."""
        return shlex.join(self.argv)


@dataclass(frozen=True)
class CommandRequest:
    """A validated shell tool call.

    Attributes:
        stages: One or more stages, executed in order.
        purpose: The agent's explanation, shown in the approval prompt.
        timeout_ms: Requested deadline for the whole run, sanitized by the gate.
        operator: ``|`` chains each stage's output into the next stage's
            stdin; ``&&`` runs stages in sequence without chaining.
    """

    stages: tuple[CommandStage, ...]
    purpose: str
    timeout_ms: int | None = None
    operator: str = OPERATOR_PIPE

    def display(self) -> str:
        return format_pipeline(self.stages, self.operator)

    def validate(self) -> None:
        """Check structural invariants.

        Raises:
            InvalidRequestError: If the request is malformed.
        """
        if not self.stages:
            raise InvalidRequestError("At least one command is required")
        if self.operator not in OPERATORS:
            raise InvalidRequestError("operator must be '|' or '&&'")
        if not isinstance(self.purpose, str) or not self.purpose.strip():
            raise InvalidRequestError("description must be a non-empty string")
        for stage in self.stages:
            if not isinstance(stage.command, str) or not stage.command.strip():
                raise InvalidRequestError("command must be a non-empty string")
            if not all(isinstance(arg, str) for arg in stage.args):
                raise InvalidRequestError("args must be a list of strings")

    @classmethod
    def from_tool_args(cls, args: dict[str, Any]) -> "CommandRequest":
        """Build a request from JSON tool-call arguments.

        A missing or non-integer ``timeout_ms`` is stored as None and later
        replaced by the default.

        Raises:
            InvalidRequestError: If the arguments are malformed.
        """
        if not isinstance(args, dict):
            raise InvalidRequestError("Tool arguments must be a JSON object")

        commands = args.get("commands")
        if not isinstance(commands, list) or not commands:
            raise InvalidRequestError("commands must be a non-empty list")

        stages = []
        for i, entry in enumerate(commands):
            if not isinstance(entry, dict):
                raise InvalidRequestError(f"commands[{i}] must be an object")
            command = entry.get("command")
            stage_args = entry.get("args", [])
            if not isinstance(command, str) or not command.strip():
                raise InvalidRequestError(
                    f"commands[{i}].command must be a non-empty string"
                )
            if not isinstance(stage_args, list) or not all(
                isinstance(a, str) for a in stage_args
            ):
                raise InvalidRequestError(
                    f"commands[{i}].args must be a list of strings"
                )
            stages.append(CommandStage(command.strip(), tuple(stage_args)))

        timeout_ms = args.get("timeout_ms")
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
            timeout_ms = None

        request = cls(
            stages=tuple(stages),
            purpose=args.get("description", ""),
            timeout_ms=timeout_ms,
            operator=args.get("operator") or OPERATOR_PIPE,
        )
        request.validate()
        return request


def format_pipeline(
    stages: tuple[CommandStage, ...] | list[CommandStage],
    operator: str = OPERATOR_PIPE,
) -> str:
    """Render stages joined by the operator, e.g. ``ls -l | grep foo``."""
    return f" {operator} ".join(stage.display() for stage in stages)


@dataclass
class ExecutionResult:
    """Outcome of running a pipeline.

    Attributes:
        output: Merged stdout/stderr of the reporting stage (or the
            concatenated transcript in ``&&`` mode).
        exit_code: Exit status of the reporting stage; -1 on timeout.
        timed_out: Whether the deadline expired.
        failed_stage_index: Index of the stage that exited non-zero or timed
            out, None on success.
        command: Display string of the whole pipeline.
        stage_command: Display string of the reporting stage.
        stage_count: Number of stages in the request.
        duration_ms: Wall-clock duration of the run.
        truncated: Whether output was cut to the size limit.
        timeout_ms: Deadline that applied to the run.
        warnings: Non-fatal notes, e.g. an approval that could not be saved.
    """

    output: str
    exit_code: int
    timed_out: bool = False
    failed_stage_index: int | None = None
    command: str = ""
    stage_command: str = ""
    stage_count: int = 1
    duration_ms: int = 0
    truncated: bool = False
    timeout_ms: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.timed_out and self.exit_code == 0

    def format(self) -> str:
        """Render the result as tool output text."""
        if self.timed_out:
            lines = [
                f"Command: {self.stage_command or self.command}",
                f"Error: timed out after {self.timeout_ms} ms",
                TIMEOUT_HINT,
            ]
            if self.output:
                lines += ["Partial output:", self.output]
        else:
            lines = [
                f"Command: {self.command}",
                f"Exit status: {self.exit_code}",
            ]
            if (
                self.failed_stage_index is not None
                and self.stage_count > 1
                and self.failed_stage_index < self.stage_count - 1
            ):
                lines.append(
                    f"Stage {self.failed_stage_index + 1} of {self.stage_count} "
                    f"failed ({self.stage_command}); later stages were not run."
                )
            lines += ["Output:", self.output or NO_OUTPUT]

        if self.truncated:
            lines.append("[output truncated]")
        for warning in self.warnings:
            lines.append(f"Warning: {warning}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "output": self.output,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
            "failed_stage_index": self.failed_stage_index,
            "command": self.command,
            "duration_ms": self.duration_ms,
            "truncated": self.truncated,
            "warnings": list(self.warnings),
        }
