"""Tool registry and standard tool errors.

Provides:
- ToolDefinition: Tool metadata plus the JSON schema offered to the model
- ToolError / ErrorCode: Structured failures raised by tools
- ToolRegistry: Registry for tool discovery and dispatch
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class ToolCategory(Enum):
    """Categories for organizing tools."""

    EXECUTION = "execution"
    OTHER = "other"


@dataclass
class ToolDefinition:
    """Metadata-rich tool definition.

    Attributes:
        name: Tool name (defaults to function name)
        description: Human-readable description shown to the model
        func: The actual tool function
        parameters: JSON schema of the tool arguments
        category: Tool category for organization
        is_async: Whether the tool is async
        timeout_seconds: Upper bound the tool enforces on itself
    """

    name: str
    description: str
    func: Callable[..., Any]
    parameters: dict[str, Any] = field(default_factory=dict)
    category: ToolCategory = ToolCategory.OTHER
    is_async: bool = False
    timeout_seconds: int = 30
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Infer is_async from function."""
        if inspect.iscoroutinefunction(self.func):
            self.is_async = True

    def to_schema(self) -> dict[str, Any]:
        """Function-calling schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolError(Exception):
    """Standard error for tool failures.

    Provides structured error information that can be used by agents
    to understand and potentially recover from failures.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        recoverable: Whether the error might be recoverable
        details: Additional error details
        tool_name: Name of the tool that failed
    """

    def __init__(
        self,
        message: str,
        error_code: str = "TOOL_ERROR",
        recoverable: bool = False,
        details: dict[str, Any] | None = None,
        tool_name: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recoverable = recoverable
        self.details = details or {}
        self.tool_name = tool_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": False,
            "error": {
                "message": self.message,
                "code": self.error_code,
                "recoverable": self.recoverable,
                "details": self.details,
                "tool_name": self.tool_name,
            },
        }


class ErrorCode:
    """Standard error codes for tool failures."""

    # Input errors
    INVALID_INPUT = "INVALID_INPUT"
    SYNTAX_REJECTED = "SYNTAX_REJECTED"

    # Authorization errors
    DENIED = "DENIED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class ToolRegistry:
    """Registry for managing and discovering tools."""

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def register(
        self,
        func: Callable[..., Any] | None = None,
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: dict[str, Any] | None = None,
        category: ToolCategory = ToolCategory.OTHER,
        timeout_seconds: int = 30,
        **metadata,
    ) -> Callable[..., Any]:
        """Register a tool function.

        Can be used as a decorator:
            @registry.register(category=ToolCategory.EXECUTION)
            def my_tool(query: str) -> str:
                ...

        Or called directly:
            registry.register(my_tool, parameters=schema)
        """

        def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
            tool_name = name or f.__name__
            tool_desc = description or (f.__doc__ or "").split("\n")[0].strip()

            self._tools[tool_name] = ToolDefinition(
                name=tool_name,
                description=tool_desc,
                func=f,
                parameters=parameters or {},
                category=category,
                timeout_seconds=timeout_seconds,
                metadata=metadata,
            )
            return f

        if func is not None:
            return decorator(func)
        return decorator

    def get(self, name: str) -> ToolDefinition | None:
        """Get a tool definition by name."""
        return self._tools.get(name)

    def get_function(self, name: str) -> Callable[..., Any] | None:
        """Get the tool function by name."""
        definition = self._tools.get(name)
        return definition.func if definition else None

    def list_tools(self) -> list[ToolDefinition]:
        """List all registered tools."""
        return list(self._tools.values())

    def schemas(self) -> list[dict[str, Any]]:
        """Function-calling schemas of all registered tools."""
        return [t.to_schema() for t in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
