"""Tools module for agentic-exec.

Tool System:
    - ToolDefinition: Metadata-rich tool definitions
    - ToolError / ErrorCode: Standard errors for consistent error handling
    - ToolRegistry: Registry for tool management and discovery

Tools:
    - shell: Gated shell execution (syntax guard, approvals, runner)
    - shell_tool: The agent-facing ``shell_tool`` function
"""

from agentic_exec.tools.registry import (
    ErrorCode,
    ToolCategory,
    ToolDefinition,
    ToolError,
    ToolRegistry,
)

__all__ = [
    "ErrorCode",
    "ToolCategory",
    "ToolDefinition",
    "ToolError",
    "ToolRegistry",
]
