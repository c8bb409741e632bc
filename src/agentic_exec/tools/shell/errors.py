"""Errors raised by the shell gate and runner.

All errors are ``ToolError`` subclasses so the tool surface can turn any of
them into text for the agent. A non-zero exit or a timeout is not an error;
both are reported through ``ExecutionResult``.
"""

from agentic_exec.tools.registry import ErrorCode, ToolError

DENIED_MESSAGE = "The user denied the request."


class InvalidRequestError(ToolError):
    """The tool arguments do not describe a valid command request."""

    def __init__(self, message: str):
        super().__init__(message, error_code=ErrorCode.INVALID_INPUT, recoverable=True)


class SyntaxRejectedError(ToolError):
    """A command or argument contains a dangerous shell construct."""

    def __init__(self, text: str, reason: str):
        super().__init__(
            f"Command rejected: {reason} in {text!r}. Shell syntax is not "
            "interpreted; pass each argument separately and use multiple "
            "commands for pipelines.",
            error_code=ErrorCode.SYNTAX_REJECTED,
            recoverable=True,
            details={"reason": reason},
        )
        self.text = text
        self.reason = reason


class DeniedError(ToolError):
    """The user declined to run the command."""

    def __init__(self, command: str, feedback: str | None = None):
        if feedback:
            message = (
                "The user did not approve this request:\n"
                f"> {command}\n\n"
                "They provided the following feedback in response:\n"
                f"> {feedback}"
            )
        else:
            message = DENIED_MESSAGE
        super().__init__(message, error_code=ErrorCode.DENIED, recoverable=False)
        self.command = command
        self.feedback = feedback


class ApprovalScopeError(ToolError):
    """Project-scoped approval was chosen but no project is active."""

    def __init__(self, key: str):
        super().__init__(
            f"Cannot approve '{key}' for the project: no project is active. "
            "The command was not run.",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            recoverable=False,
        )


class CommandNotFoundError(ToolError):
    """A stage's executable does not exist."""

    def __init__(self, command: str):
        super().__init__(
            f"Command not found: {command}",
            error_code=ErrorCode.NOT_FOUND,
            recoverable=True,
        )
        self.command = command


class CommandPermissionError(ToolError):
    """A stage's executable cannot be executed."""

    def __init__(self, command: str):
        super().__init__(
            f"Permission denied: {command}",
            error_code=ErrorCode.PERMISSION_DENIED,
            recoverable=False,
        )
        self.command = command
