"""Wire contracts: handler results, request bodies and response envelopes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from toolsmith.kernel.executor.errors import ErrorCode, ToolExecutionError

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class ToolErrorInfo(BaseModel):
    """Structured error returned by a handler."""

    code: str = Field(..., description="Machine-friendly error code")
    message: str = Field(..., description="Human readable message")
    details: dict[str, Any] | None = Field(None, description="Optional contextual data")


class ToolResult(BaseModel):
    """What a handler returns: either data or an error, never both."""

    status: Literal["success", "error"]
    data: Any = None
    error: ToolErrorInfo | None = None

    @classmethod
    def success(cls, data: Any = None) -> ToolResult:
        return cls(status="success", data=data)

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> ToolResult:
        return cls(
            status="error",
            error=ToolErrorInfo(code=code, message=message, details=details),
        )

    @classmethod
    def coerce(cls, value: Any) -> ToolResult:
        """Normalize a handler return value.

        A ToolResult passes through, a mapping with a ``status`` key is parsed
        as a ToolResult, and anything else is wrapped as successful data.

        Raises:
            ToolExecutionError: With code ``INVALID_RESULT`` if a mapping claims
                to be a result but is malformed
        """
        if isinstance(value, ToolResult):
            result = value
        elif isinstance(value, Mapping) and "status" in value:
            try:
                result = cls.model_validate(dict(value))
            except ValidationError as exc:
                raise ToolExecutionError(
                    "Handler returned a malformed result",
                    code=ErrorCode.INVALID_RESULT.value,
                    details={"problems": [error["msg"] for error in exc.errors()]},
                ) from exc
        else:
            return cls.success(value)

        if result.status == "error" and result.error is None:
            raise ToolExecutionError(
                "Handler returned an error result without error information",
                code=ErrorCode.INVALID_RESULT.value,
            )
        return result


class ExecuteRequest(BaseModel):
    """Body of ``POST /execute``."""

    tool_id: str | None = Field(None, description="name or name@version; needed with several tools")
    input_data: dict[str, Any] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)
    execution_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExecuteResponse(BaseModel):
    """Response envelope; exactly one per API call."""

    execution_id: str
    status: Literal["success", "error"]
    output_data: Any = None
    error_code: str | None = None
    error_message: str | None = None
    error_details: dict[str, Any] | None = None
    execution_time_ms: float = 0.0
    timestamp: str = Field(default_factory=_utc_timestamp)

    @classmethod
    def failed(
        cls,
        execution_id: str,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        execution_time_ms: float = 0.0,
    ) -> ExecuteResponse:
        return cls(
            execution_id=execution_id,
            status="error",
            error_code=code,
            error_message=message,
            error_details=details,
            execution_time_ms=execution_time_ms,
        )


class HealthReport(BaseModel):
    """What a ``health_check`` hook returns."""

    status: HealthStatus = "healthy"
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    status: HealthStatus
    tool: str
    version: str
    uptime_seconds: float
    details: dict[str, Any] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=_utc_timestamp)

    @property
    def http_status(self) -> int:
        return 503 if self.status == "unhealthy" else 200
