"""Exceptions and error codes raised around tool execution."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Codes placed in the ``error_code`` field of response envelopes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"
    INVALID_RESULT = "INVALID_RESULT"
    OUTPUT_SCHEMA_INVALID = "OUTPUT_SCHEMA_INVALID"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class ToolDefinitionError(Exception):
    """Raised when tool metadata or a tool contract is malformed.

    Attributes:
        code: Always ``CONFIGURATION_ERROR``
        problems: One entry per offending attribute
    """

    code = ErrorCode.CONFIGURATION_ERROR.value

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems = problems or []
        detail = f"{message}: {'; '.join(self.problems)}" if self.problems else message
        super().__init__(detail)
        self.message = message


class ToolExecutionError(RuntimeError):
    """Raised by handlers (or the dispatcher) when a tool cannot produce a result.

    Attributes:
        code: Machine-readable error code placed in the envelope
        message: Human-readable message placed in the envelope
        retryable: Whether the caller may retry safely
        details: Optional contextual data placed in ``error_details``
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = ErrorCode.EXECUTION_ERROR.value,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.details = details or {}


class ToolConfigurationError(ToolExecutionError):
    """Raised from a ``setup`` hook when the tool configuration is unusable."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            code=ErrorCode.CONFIGURATION_ERROR.value,
            details=details,
        )


class ExecutionTimeoutError(ToolExecutionError):
    """Raised when a handler outlives the dispatcher's deadline.

    A ``TimeoutError`` raised by the handler itself is not this error; it is
    reported as an ordinary execution failure.
    """

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Execution timed out after {timeout_seconds:g} seconds",
            code=ErrorCode.EXECUTION_TIMEOUT.value,
            retryable=True,
            details={"timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds
