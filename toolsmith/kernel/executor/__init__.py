"""Executor module: tool contracts, registry and request dispatch."""

from toolsmith.kernel.executor.context import ExecutionContext
from toolsmith.kernel.executor.dispatcher import DispatchOutcome, DryRunResult, ToolDispatcher
from toolsmith.kernel.executor.errors import (
    ErrorCode,
    ExecutionTimeoutError,
    ToolConfigurationError,
    ToolDefinitionError,
    ToolExecutionError,
)
from toolsmith.kernel.executor.metrics import ExecutionMetrics, MetricsSnapshot
from toolsmith.kernel.executor.output_validator import (
    OutputErrorCode,
    OutputSchemaError,
    OutputSchemaValidator,
)
from toolsmith.kernel.executor.protocol import (
    ExecuteRequest,
    ExecuteResponse,
    HealthReport,
    HealthResponse,
    ToolErrorInfo,
    ToolResult,
)
from toolsmith.kernel.executor.tool_contract import (
    ToolContract,
    ToolMetadata,
    create_tool,
    describe_tool,
)
from toolsmith.kernel.executor.tool_registry import ToolNotFoundError, ToolRegistry

__all__ = [
    "ExecutionContext",
    "DispatchOutcome",
    "DryRunResult",
    "ToolDispatcher",
    "ErrorCode",
    "ExecutionTimeoutError",
    "ToolConfigurationError",
    "ToolDefinitionError",
    "ToolExecutionError",
    "ExecutionMetrics",
    "MetricsSnapshot",
    "OutputErrorCode",
    "OutputSchemaError",
    "OutputSchemaValidator",
    "ExecuteRequest",
    "ExecuteResponse",
    "HealthReport",
    "HealthResponse",
    "ToolErrorInfo",
    "ToolResult",
    "ToolContract",
    "ToolMetadata",
    "create_tool",
    "describe_tool",
    "ToolNotFoundError",
    "ToolRegistry",
]
