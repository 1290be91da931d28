"""
Application errors for clean API error handling.

Every error carries an ErrorKind: a machine-readable code, a default HTTP status,
and a fixed user-safe message. Callers map on `error.kind`; internal error text
is never shown to the user.
"""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    MODEL_TIMEOUT = "MODEL_TIMEOUT"
    TOOL_EXECUTION = "TOOL_EXECUTION_ERROR"
    WORKFLOW = "WORKFLOW_ERROR"
    UNEXPECTED = "UNEXPECTED_ERROR"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.MODEL_TIMEOUT: 504,
    ErrorKind.TOOL_EXECUTION: 502,
    ErrorKind.WORKFLOW: 500,
    ErrorKind.UNEXPECTED: 500,
}

_USER_MESSAGES = {
    ErrorKind.VALIDATION: "Validation Error: invalid request.",
    ErrorKind.MODEL_TIMEOUT: "The request timed out. Please try again with a simpler query.",
    ErrorKind.TOOL_EXECUTION: "A tool failed while processing your request.",
    ErrorKind.WORKFLOW: "There was an issue processing your request. Please try again.",
    ErrorKind.UNEXPECTED: "Sorry, something went wrong while processing your request. Please try again later.",
}


class AgentError(Exception):
    """Base error for the agent. `retryable` tells the resilience wrapper whether to try again."""

    kind: ErrorKind = ErrorKind.UNEXPECTED
    retryable: bool = True

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.kind.user_message
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def user_message(self) -> str:
        return self.kind.user_message


class ValidationError(AgentError):
    """Bad input shape or length. Never retried."""

    kind = ErrorKind.VALIDATION
    retryable = False

    @property
    def user_message(self) -> str:
        # Validation text is produced by our own checks, safe to echo back.
        return f"Validation Error: {self.message}"


class ModelTimeoutError(AgentError):
    kind = ErrorKind.MODEL_TIMEOUT

    def __init__(self, message: str = "Model request timed out") -> None:
        super().__init__(message)


class ToolExecutionError(AgentError):
    """Tool call failed after retries. Rendered as a tool result, never raised to the caller."""

    kind = ErrorKind.TOOL_EXECUTION
    retryable = False

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class WorkflowError(AgentError):
    kind = ErrorKind.WORKFLOW

    def __init__(self, message: str = "Workflow execution failed") -> None:
        super().__init__(message)


class RecursionLimitError(WorkflowError):
    """The model kept requesting tools past the configured round-trip limit."""

    retryable = False

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Recursion limit of {limit} tool round trips exceeded")


class CheckpointError(WorkflowError):
    def __init__(self, thread_id: str, message: str) -> None:
        self.thread_id = thread_id
        super().__init__(f"Checkpoint I/O failed for thread {thread_id}: {message}")


class UnexpectedError(AgentError):
    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str = "Unexpected error") -> None:
        super().__init__(message)
