"""Unified error hierarchy for sessionflow.

Errors raised by the router, the subagent dispatcher and the local host share
one structured base so callers can route them by category and serialize them
for the host boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    """Severity levels for session errors."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of session errors."""
    VALIDATION = "validation"           # Tool call parsing / argument validation
    EXECUTION = "execution"             # Tool handler failures
    CONFIGURATION = "configuration"     # Wiring bugs (unknown subagent, bad schema)
    CONTRACT = "contract"               # Child result violated its declared schema
    COMMUNICATION = "communication"     # Activity / collaborator calls
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Context information for an error."""
    operation: str
    thread_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "operation": self.operation,
            "thread_id": self.thread_id,
            "tool_name": self.tool_name,
            "tool_call_id": self.tool_call_id,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        }


class SessionFlowError(Exception):
    """Base exception for all sessionflow errors.

    ``recoverable`` tells the tool router whether failure hooks may turn the
    error into a tool result. Configuration and contract errors never are.
    """

    recoverable: bool = True

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message
            category: Error category for filtering/routing
            severity: Error severity level
            context: Additional context about the error
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext(operation="unknown")
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for tool results and host payloads."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context.to_dict(),
        }

    def __str__(self) -> str:
        return self.message


class UnknownToolError(SessionFlowError):
    """Raised when a raw tool call names a tool that is not registered."""

    def __init__(self, tool_name: str, available: Optional[List[str]] = None) -> None:
        available = available or []
        super().__init__(
            message=f"Tool {tool_name} not found",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            context=ErrorContext(
                operation="parse_tool_call",
                tool_name=tool_name,
                details={"available": available},
            ),
        )
        self.tool_name = tool_name
        self.available = available


class InvalidArgumentsError(SessionFlowError):
    """Raised when tool call arguments fail schema validation."""

    def __init__(
        self,
        tool_name: str,
        errors: List[Dict[str, Any]],
        cause: Optional[BaseException] = None,
    ) -> None:
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ())) or '<root>'}: {err.get('msg', '')}"
            for err in errors
        )
        super().__init__(
            message=f"Invalid arguments for tool {tool_name}: {summary}",
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            context=ErrorContext(
                operation="parse_tool_call",
                tool_name=tool_name,
                details={"errors": errors},
            ),
            cause=cause,
        )
        self.tool_name = tool_name
        self.errors = errors


class ToolExecutionError(SessionFlowError):
    """Describes a handler failure while failure hooks decide its fate.

    The router passes the original exception to hooks and re-raises it
    unchanged when nothing recovers; this wrapper only carries call context.
    """

    def __init__(
        self,
        tool_name: str,
        tool_call_id: str,
        cause: BaseException,
        thread_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=f"Tool {tool_name} failed: {cause}",
            category=ErrorCategory.EXECUTION,
            severity=ErrorSeverity.ERROR,
            context=ErrorContext(
                operation="execute_tool",
                thread_id=thread_id,
                tool_name=tool_name,
                tool_call_id=tool_call_id,
            ),
            cause=cause,
        )
        self.tool_name = tool_name
        self.tool_call_id = tool_call_id


class SubagentNotConfiguredError(SessionFlowError):
    """Raised when the delegate tool names a subagent that is not configured."""

    recoverable = False

    def __init__(self, subagent: str, available: List[str]) -> None:
        super().__init__(
            message=f"Unknown subagent: {subagent}. Available: {', '.join(available)}",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            context=ErrorContext(
                operation="dispatch_subagent",
                details={"subagent": subagent, "available": available},
            ),
        )
        self.subagent = subagent
        self.available = available


class SubagentResultSchemaMismatchError(SessionFlowError):
    """Raised when a child execution's result fails its declared schema."""

    recoverable = False

    def __init__(
        self,
        subagent: str,
        errors: List[Dict[str, Any]],
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message=f"Subagent {subagent} returned a result that does not match its schema",
            category=ErrorCategory.CONTRACT,
            severity=ErrorSeverity.CRITICAL,
            context=ErrorContext(
                operation="dispatch_subagent",
                details={"subagent": subagent, "errors": errors},
            ),
            cause=cause,
        )
        self.subagent = subagent
        self.errors = errors


class ActivityRetryExhaustedError(SessionFlowError):
    """Raised by the local host when an activity keeps failing past its retry budget."""

    def __init__(self, activity_name: str, attempts: int, cause: BaseException) -> None:
        super().__init__(
            message=f"Activity {activity_name} failed after {attempts} attempts: {cause}",
            category=ErrorCategory.COMMUNICATION,
            severity=ErrorSeverity.ERROR,
            context=ErrorContext(
                operation="call_activity",
                details={"activity": activity_name, "attempts": attempts},
            ),
            cause=cause,
        )
        self.activity_name = activity_name
        self.attempts = attempts


def is_recoverable(error: BaseException) -> bool:
    """Return False for errors that failure hooks must never swallow."""
    return getattr(error, "recoverable", True) is not False


__all__ = [
    "ActivityRetryExhaustedError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "InvalidArgumentsError",
    "SessionFlowError",
    "SubagentNotConfiguredError",
    "SubagentResultSchemaMismatchError",
    "ToolExecutionError",
    "UnknownToolError",
    "is_recoverable",
]
