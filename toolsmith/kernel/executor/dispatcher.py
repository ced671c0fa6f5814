"""ToolDispatcher: validate, run and wrap one tool invocation.

The dispatcher owns the request lifecycle for a single tool: it merges and
validates configuration, validates input, runs the async handler under a
timeout and maps every outcome to exactly one response envelope. Validation
failures never reach the handler.
"""

from __future__ import annotations

import asyncio
import inspect
import os
import time
import uuid
from collections.abc import Mapping
from typing import Any, NamedTuple

import structlog
from pydantic import BaseModel, Field

from toolsmith.kernel.executor.context import ExecutionContext
from toolsmith.kernel.executor.errors import (
    ErrorCode,
    ExecutionTimeoutError,
    ToolConfigurationError,
    ToolExecutionError,
)
from toolsmith.kernel.executor.metrics import ExecutionMetrics, MetricsSnapshot
from toolsmith.kernel.executor.output_validator import OutputSchemaError, OutputSchemaValidator
from toolsmith.kernel.executor.protocol import (
    ExecuteRequest,
    ExecuteResponse,
    HealthReport,
    HealthResponse,
    ToolResult,
)
from toolsmith.kernel.executor.tool_contract import ToolContract
from toolsmith.kernel.schema.fields import SecretKeyField
from toolsmith.kernel.validation import SchemaValidator, ValidationIssue, ValidationResult

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEGRADED_ERROR_RATE_PERCENT = 50.0


class DispatchOutcome(NamedTuple):
    """HTTP status code plus the envelope to send with it."""

    status_code: int
    response: ExecuteResponse


class DryRunResult(BaseModel):
    """Outcome of ``ToolDispatcher.test``.

    ``valid`` reports whether input and configuration passed validation;
    ``result`` holds what the handler produced (handler failures included)
    and is absent when validation failed.
    """

    execution_id: str
    valid: bool
    input_errors: list[ValidationIssue] = Field(default_factory=list)
    config_errors: list[ValidationIssue] = Field(default_factory=list)
    result: ToolResult | None = None


class ToolDispatcher:
    """Run one tool contract.

    Args:
        contract: Tool to run
        metrics: Execution history store; a fresh one when omitted
        validator: Payload validator; a fresh one when omitted
        default_timeout_seconds: Used when the contract declares no timeout
        environ: Environment used to resolve ``env_var`` configuration;
            ``os.environ`` when omitted
    """

    def __init__(
        self,
        contract: ToolContract,
        *,
        metrics: ExecutionMetrics | None = None,
        validator: SchemaValidator | None = None,
        default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._contract = contract
        self._metrics = metrics or ExecutionMetrics()
        self._validator = validator or SchemaValidator()
        self._output_validator = OutputSchemaValidator()
        self._default_timeout_seconds = default_timeout_seconds
        self._environ = os.environ if environ is None else environ
        self._stored_config: dict[str, Any] = {}
        self._started_at = time.monotonic()

    @property
    def contract(self) -> ToolContract:
        return self._contract

    @property
    def metrics(self) -> ExecutionMetrics:
        return self._metrics

    @property
    def timeout_seconds(self) -> float:
        return self._contract.timeout_seconds or self._default_timeout_seconds

    def resolve_config(self, request_config: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Merge configuration sources, lowest precedence first.

        Environment variables named by secret fields' ``env_var``, then the
        configuration stored with ``configure``, then ``request_config``.
        """
        return {**self._env_config(), **self._stored_config, **(request_config or {})}

    def _env_config(self) -> dict[str, Any]:
        values = {}
        for name, field in self._contract.config_schema.items():
            if isinstance(field, SecretKeyField) and field.env_var:
                value = self._environ.get(field.env_var)
                if value:
                    values[name] = value
        return values

    async def configure(self, config: Mapping[str, Any]) -> None:
        """Validate and store tool configuration, then run the ``setup`` hook.

        Raises:
            ToolConfigurationError: If the merged configuration is invalid
        """
        candidate = {**self._stored_config, **config}
        result = self._validator.validate(
            {**self._env_config(), **candidate}, self._contract.config_schema
        )
        if not result.valid:
            raise ToolConfigurationError(
                "Configuration validation failed",
                details={"config_errors": result.error_payload()},
            )
        self._stored_config = candidate
        logger.info(
            "Tool configured",
            tool=self._contract.name,
            keys=sorted(candidate),
        )
        if self._contract.setup is not None:
            await self._contract.setup(result.normalized_value)

    async def dispatch(
        self,
        request: ExecuteRequest | Mapping[str, Any],
        *,
        request_id: str | None = None,
    ) -> DispatchOutcome:
        """Validate a request, run the handler and build the envelope.

        Args:
            request: Request body
            request_id: Transport-level request id for the context

        Returns:
            DispatchOutcome with the HTTP status and the envelope
        """
        if not isinstance(request, ExecuteRequest):
            request = ExecuteRequest.model_validate(dict(request))
        execution_id = request.execution_id or str(uuid.uuid4())
        started = time.perf_counter()
        log = logger.bind(
            tool=self._contract.name,
            version=self._contract.version,
            execution_id=execution_id,
            request_id=request_id,
        )

        input_result, config_result = self._validate(request.input_data, request.config)
        if not (input_result.valid and config_result.valid):
            if not input_result.valid:
                code, message = ErrorCode.VALIDATION_ERROR, "Input validation failed"
            else:
                code, message = ErrorCode.CONFIGURATION_ERROR, "Configuration validation failed"
            log.info(
                "Request rejected",
                error_code=code.value,
                input_errors=len(input_result.errors),
                config_errors=len(config_result.errors),
            )
            return self._finish(
                400,
                ExecuteResponse.failed(
                    execution_id,
                    code.value,
                    message,
                    details={
                        "input_errors": input_result.error_payload(),
                        "config_errors": config_result.error_payload(),
                    },
                ),
                started,
            )

        context = ExecutionContext.create(
            self._contract.name,
            self._contract.version,
            execution_id=execution_id,
            request_id=request_id,
            metadata=request.metadata,
        )
        try:
            result = await self._run_handler(
                input_result.normalized_value, config_result.normalized_value, context
            )
        except ExecutionTimeoutError as exc:
            log.warning("Tool timed out", timeout_seconds=exc.timeout_seconds)
            return self._finish(
                504,
                ExecuteResponse.failed(execution_id, exc.code, exc.message, details=exc.details),
                started,
            )
        except ToolExecutionError as exc:
            log.warning("Tool execution failed", error_code=exc.code, error=exc.message)
            return self._finish(
                500,
                ExecuteResponse.failed(
                    execution_id, exc.code, exc.message, details=exc.details or None
                ),
                started,
            )
        except Exception as exc:
            log.error("Tool execution crashed", error=str(exc), exc_info=True)
            return self._finish(
                500,
                ExecuteResponse.failed(
                    execution_id,
                    ErrorCode.EXECUTION_ERROR.value,
                    str(exc) or type(exc).__name__,
                ),
                started,
            )

        if result.status == "error" and result.error is not None:
            log.info("Tool returned an error", error_code=result.error.code)
            return self._finish(
                500,
                ExecuteResponse.failed(
                    execution_id,
                    result.error.code,
                    result.error.message,
                    details=result.error.details,
                ),
                started,
            )

        if self._contract.output_schema is not None:
            try:
                self._output_validator.validate(result.data, self._contract.output_schema)
            except OutputSchemaError as exc:
                log.error("Tool output violates its output schema", error=exc.message, path=exc.path)
                return self._finish(
                    500,
                    ExecuteResponse.failed(
                        execution_id,
                        ErrorCode.OUTPUT_SCHEMA_INVALID.value,
                        "Tool output does not match its output schema",
                        details={"violations": exc.violations},
                    ),
                    started,
                )

        log.info("Tool executed")
        return self._finish(
            200,
            ExecuteResponse(execution_id=execution_id, status="success", output_data=result.data),
            started,
        )

    async def test(
        self,
        input_data: Mapping[str, Any],
        config: Mapping[str, Any] | None = None,
    ) -> DryRunResult:
        """Dry-run the tool without touching metrics.

        Args:
            input_data: Raw input payload
            config: Request-level configuration merged over stored configuration
        """
        execution_id = f"test-{uuid.uuid4()}"
        input_result, config_result = self._validate(input_data, config or {})
        if not (input_result.valid and config_result.valid):
            return DryRunResult(
                execution_id=execution_id,
                valid=False,
                input_errors=input_result.errors,
                config_errors=config_result.errors,
            )

        context = ExecutionContext.create(
            self._contract.name,
            self._contract.version,
            execution_id=execution_id,
            dry_run=True,
        )
        try:
            result = await self._run_handler(
                input_result.normalized_value, config_result.normalized_value, context
            )
        except ToolExecutionError as exc:
            result = ToolResult.failure(exc.code, exc.message, exc.details or None)
        except Exception as exc:
            logger.error("Dry run crashed", tool=self._contract.name, error=str(exc), exc_info=True)
            result = ToolResult.failure(ErrorCode.EXECUTION_ERROR.value, str(exc) or type(exc).__name__)
        return DryRunResult(execution_id=execution_id, valid=True, result=result)

    async def health(self) -> HealthResponse:
        """Combine the ``health_check`` hook with the recent error rate."""
        snapshot = self._metrics.snapshot()
        report = HealthReport()
        if self._contract.health_check is not None:
            try:
                raw = await self._contract.health_check()
                report = raw if isinstance(raw, HealthReport) else HealthReport.model_validate(raw)
            except Exception as exc:
                logger.error(
                    "Health check failed", tool=self._contract.name, error=str(exc), exc_info=True
                )
                report = HealthReport(status="unhealthy", details={"error": "Health check failed"})

        status = report.status
        details = dict(report.details)
        if status == "healthy" and snapshot.error_rate_percent > DEGRADED_ERROR_RATE_PERCENT:
            status = "degraded"
            details["error_rate"] = f"{snapshot.error_rate_percent:.1f}%"

        return HealthResponse(
            status=status,
            tool=self._contract.name,
            version=self._contract.version,
            uptime_seconds=round(time.monotonic() - self._started_at, 3),
            details=details,
            metrics={
                "total_executions": snapshot.total_executions,
                "error_rate_percent": snapshot.error_rate_percent,
                "average_duration_ms": snapshot.average_duration_ms,
                "last_execution_at": snapshot.last_execution_at,
            },
        )

    def metrics_snapshot(self) -> MetricsSnapshot:
        return self._metrics.snapshot()

    async def shutdown(self) -> None:
        """Run the ``cleanup`` hook; failures are logged, not raised."""
        if self._contract.cleanup is None:
            return
        try:
            await self._contract.cleanup()
        except Exception as exc:
            logger.error("Tool cleanup failed", tool=self._contract.name, error=str(exc), exc_info=True)
        else:
            logger.info("Tool cleaned up", tool=self._contract.name)

    def validate_input(self, input_data: Any) -> ValidationResult:
        return self._validator.validate(input_data, self._contract.input_schema)

    def validate_config(self, request_config: Mapping[str, Any] | None = None) -> ValidationResult:
        """Validate the merged configuration (see ``resolve_config``)."""
        return self._validator.validate(
            self.resolve_config(request_config), self._contract.config_schema
        )

    def _validate(
        self,
        input_data: Any,
        request_config: Mapping[str, Any],
    ) -> tuple[ValidationResult, ValidationResult]:
        return self.validate_input(input_data), self.validate_config(request_config)

    async def _run_handler(
        self,
        input_value: dict[str, Any],
        config_value: dict[str, Any],
        context: ExecutionContext,
    ) -> ToolResult:
        async def call() -> Any:
            outcome = self._contract.handler(input_value, config_value, context)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        try:
            async with asyncio.timeout(self.timeout_seconds) as scope:
                raw = await call()
        except TimeoutError as exc:
            if scope.expired():
                raise ExecutionTimeoutError(self.timeout_seconds) from exc
            raise
        return ToolResult.coerce(raw)

    def _finish(self, status_code: int, response: ExecuteResponse, started: float) -> DispatchOutcome:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        response = response.model_copy(update={"execution_time_ms": elapsed_ms})
        self._metrics.record(
            response.execution_id,
            elapsed_ms,
            success=response.status == "success",
            error_code=response.error_code,
        )
        return DispatchOutcome(status_code, response)
