"""ToolDispatcher tests.

Test Coverage:
- One envelope per outcome: success, validation, configuration, timeout,
  raised errors, error results, malformed results, output schema violations
- Configuration merging (environment, stored, request) and configure()
- Dry runs, health reporting, metrics and cleanup
"""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from toolsmith.kernel.executor import (
    ExecuteRequest,
    ExecutionContext,
    ToolConfigurationError,
    ToolContract,
    ToolDispatcher,
    ToolExecutionError,
    ToolResult,
)
from toolsmith.kernel.validation import REDACTED

ToolFactory = Callable[..., ToolContract]
ENV = {"WEATHER_API_KEY": "env-key"}


def _dispatcher(tool: ToolContract, **kwargs: Any) -> ToolDispatcher:
    kwargs.setdefault("environ", ENV)
    return ToolDispatcher(tool, **kwargs)


class RecordingHandler:
    """Handler that remembers every call it receives."""

    def __init__(self, result: Any = None) -> None:
        self.calls: list[tuple[dict[str, Any], dict[str, Any], ExecutionContext]] = []
        self.result = result if result is not None else ToolResult.success({"ok": True})

    async def __call__(
        self, input_data: dict[str, Any], config: dict[str, Any], context: ExecutionContext
    ) -> Any:
        self.calls.append((input_data, config, context))
        return self.result


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.deterministic
class TestDispatchOutcomes:
    """Every invocation maps to exactly one envelope."""

    async def test_success(self, weather_tool: ToolContract) -> None:
        """Defaults are applied and the handler output is wrapped."""
        dispatcher = _dispatcher(weather_tool)

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 200
        response = outcome.response
        assert response.status == "success"
        assert response.error_code is None
        assert response.output_data == {
            "city": "Oslo",
            "units": "metric",
            "days": 3,
            "execution_id": response.execution_id,
            "has_key": True,
        }
        assert response.execution_time_ms >= 0

    async def test_caller_execution_id_kept(self, weather_tool: ToolContract) -> None:
        """A caller-supplied execution id is used for the envelope and context."""
        dispatcher = _dispatcher(weather_tool)

        outcome = await dispatcher.dispatch(
            ExecuteRequest(input_data={"city": "Oslo"}, execution_id="exec-42")
        )

        assert outcome.response.execution_id == "exec-42"
        assert outcome.response.output_data["execution_id"] == "exec-42"

    async def test_context_fields(self, tool_factory: ToolFactory) -> None:
        """The context carries ids and caller metadata."""
        handler = RecordingHandler()
        dispatcher = _dispatcher(tool_factory(handler=handler))

        await dispatcher.dispatch(
            {"input_data": {"city": "Oslo"}, "metadata": {"user_id": "u-1", "session_id": "s-1"}},
            request_id="req-9",
        )

        _, _, context = handler.calls[0]
        assert context.tool_id == "weather"
        assert context.tool_version == "1.0.0"
        assert context.request_id == "req-9"
        assert context.user_id == "u-1"
        assert context.session_id == "s-1"
        assert context.dry_run is False

    async def test_invalid_input_never_reaches_handler(self, tool_factory: ToolFactory) -> None:
        """Input errors give 400 VALIDATION_ERROR with every issue."""
        handler = RecordingHandler()
        dispatcher = _dispatcher(tool_factory(handler=handler))

        outcome = await dispatcher.dispatch({"input_data": {"city": "X", "days": 40, "extra": 1}})

        assert outcome.status_code == 400
        response = outcome.response
        assert response.error_code == "VALIDATION_ERROR"
        paths = [error["field_path"] for error in response.error_details["input_errors"]]
        assert paths == ["city", "days", "extra"]
        assert response.error_details["config_errors"] == []
        assert handler.calls == []

    async def test_missing_config(self, weather_tool: ToolContract) -> None:
        """Missing configuration with valid input gives CONFIGURATION_ERROR."""
        dispatcher = _dispatcher(weather_tool, environ={})

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 400
        assert outcome.response.error_code == "CONFIGURATION_ERROR"
        config_errors = outcome.response.error_details["config_errors"]
        assert [(e["field_path"], e["code"]) for e in config_errors] == [
            ("api_key", "missing_required")
        ]

    async def test_input_errors_take_precedence(self, weather_tool: ToolContract) -> None:
        """When both fail the code is VALIDATION_ERROR and both lists are filled."""
        dispatcher = _dispatcher(weather_tool, environ={})

        outcome = await dispatcher.dispatch({"input_data": {}})

        details = outcome.response.error_details
        assert outcome.response.error_code == "VALIDATION_ERROR"
        assert details["input_errors"] and details["config_errors"]

    async def test_secret_config_never_echoed(self, weather_tool: ToolContract) -> None:
        """A malformed secret is reported redacted."""
        dispatcher = _dispatcher(weather_tool)

        outcome = await dispatcher.dispatch(
            {"input_data": {"city": "Oslo"}, "config": {"api_key": 123456789}}
        )

        error = outcome.response.error_details["config_errors"][0]
        assert error["received_value"] == REDACTED
        assert "123456789" not in outcome.response.model_dump_json()

    async def test_mistyped_credential_key_not_echoed(self, weather_tool: ToolContract) -> None:
        """An unknown config key that looks like a credential is reported redacted."""
        dispatcher = _dispatcher(weather_tool)

        outcome = await dispatcher.dispatch(
            {"input_data": {"city": "Oslo"}, "config": {"apikey": "sk-live-123"}}
        )

        assert outcome.status_code == 400
        assert outcome.response.error_code == "CONFIGURATION_ERROR"
        error = outcome.response.error_details["config_errors"][0]
        assert (error["field_path"], error["code"]) == ("apikey", "unknown_field")
        assert error["received_value"] == REDACTED
        assert "sk-live-123" not in outcome.response.model_dump_json()

    async def test_timeout(self, tool_factory: ToolFactory) -> None:
        """A handler exceeding the timeout gives 504 EXECUTION_TIMEOUT."""

        async def slow(input_data: dict, config: dict, context: ExecutionContext) -> ToolResult:
            await asyncio.sleep(5)
            return ToolResult.success()

        dispatcher = _dispatcher(tool_factory(handler=slow, timeout_seconds=0.05))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 504
        assert outcome.response.error_code == "EXECUTION_TIMEOUT"
        assert outcome.response.error_details == {"timeout_seconds": 0.05}

    async def test_handler_timeout_error_is_execution_error(self, tool_factory: ToolFactory) -> None:
        """A TimeoutError raised by the handler is not the dispatcher's deadline."""

        async def upstream_timeout(input_data: dict, config: dict, context: ExecutionContext) -> None:
            raise TimeoutError("upstream weather API socket timed out")

        dispatcher = _dispatcher(tool_factory(handler=upstream_timeout, timeout_seconds=5))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 500
        assert outcome.response.error_code == "EXECUTION_ERROR"
        assert outcome.response.error_message == "upstream weather API socket timed out"
        assert outcome.response.error_details is None

    async def test_tool_execution_error(self, tool_factory: ToolFactory) -> None:
        """A raised ToolExecutionError keeps its code and details."""

        async def failing(input_data: dict, config: dict, context: ExecutionContext) -> None:
            raise ToolExecutionError(
                "Upstream rate limited", code="RATE_LIMITED", retryable=True, details={"retry_after": 30}
            )

        dispatcher = _dispatcher(tool_factory(handler=failing))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 500
        assert outcome.response.error_code == "RATE_LIMITED"
        assert outcome.response.error_message == "Upstream rate limited"
        assert outcome.response.error_details == {"retry_after": 30}

    async def test_unexpected_exception(self, tool_factory: ToolFactory) -> None:
        """Any other exception becomes EXECUTION_ERROR."""

        async def crashing(input_data: dict, config: dict, context: ExecutionContext) -> None:
            raise KeyError("forecast")

        dispatcher = _dispatcher(tool_factory(handler=crashing))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 500
        assert outcome.response.error_code == "EXECUTION_ERROR"
        assert "forecast" in outcome.response.error_message

    async def test_error_result(self, tool_factory: ToolFactory) -> None:
        """A handler error result keeps its code, message and details."""
        handler = RecordingHandler(ToolResult.failure("CITY_UNKNOWN", "No such city", {"city": "Oslo"}))
        dispatcher = _dispatcher(tool_factory(handler=handler))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 500
        assert outcome.response.error_code == "CITY_UNKNOWN"
        assert outcome.response.error_message == "No such city"
        assert outcome.response.error_details == {"city": "Oslo"}

    async def test_sync_handler_raw_data(self, tool_factory: ToolFactory) -> None:
        """Plain return values from sync handlers are wrapped as success."""

        def plain(input_data: dict, config: dict, context: ExecutionContext) -> list[str]:
            return [input_data["city"]]

        dispatcher = _dispatcher(tool_factory(handler=plain))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 200
        assert outcome.response.output_data == ["Oslo"]

    async def test_malformed_result(self, tool_factory: ToolFactory) -> None:
        """A mapping that claims a bogus status gives INVALID_RESULT."""
        handler = RecordingHandler({"status": "maybe"})
        dispatcher = _dispatcher(tool_factory(handler=handler))

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 500
        assert outcome.response.error_code == "INVALID_RESULT"

    async def test_output_schema_violation(self, tool_factory: ToolFactory) -> None:
        """Output that breaks the declared output schema is not returned."""
        handler = RecordingHandler(ToolResult.success({"temperature": "warm"}))
        tool = tool_factory(
            handler=handler,
            output_schema={
                "type": "object",
                "properties": {"temperature": {"type": "number"}},
                "required": ["temperature"],
            },
        )
        dispatcher = _dispatcher(tool)

        outcome = await dispatcher.dispatch({"input_data": {"city": "Oslo"}})

        assert outcome.status_code == 500
        assert outcome.response.error_code == "OUTPUT_SCHEMA_INVALID"
        assert outcome.response.output_data is None
        assert outcome.response.error_details["violations"][0]["path"] == "temperature"

    async def test_outcomes_recorded_in_metrics(self, weather_tool: ToolContract) -> None:
        """Successes and failures, validation included, are recorded."""
        dispatcher = _dispatcher(weather_tool)

        await dispatcher.dispatch({"input_data": {"city": "Oslo"}})
        await dispatcher.dispatch({"input_data": {}})

        snapshot = dispatcher.metrics_snapshot()
        assert snapshot.total_executions == 2
        assert snapshot.successful_executions == 1
        assert snapshot.error_codes == {"VALIDATION_ERROR": 1}


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.deterministic
class TestConfiguration:
    """Configuration sources and configure()."""

    def test_precedence(self, weather_tool: ToolContract) -> None:
        """Request config overrides the environment."""
        dispatcher = _dispatcher(weather_tool)

        assert dispatcher.resolve_config() == {"api_key": "env-key"}
        assert dispatcher.resolve_config({"api_key": "req-key"}) == {"api_key": "req-key"}

    async def test_configure_stores_and_runs_setup(self, tool_factory: ToolFactory) -> None:
        """Stored config sits between environment and request config."""
        received: list[dict[str, Any]] = []

        async def setup(config: dict[str, Any]) -> None:
            received.append(config)

        dispatcher = _dispatcher(tool_factory(setup=setup))

        await dispatcher.configure({"api_key": "stored-key"})

        assert dispatcher.resolve_config() == {"api_key": "stored-key"}
        assert received[0]["api_key"].get_secret_value() == "stored-key"

    async def test_configure_rejects_invalid(self, tool_factory: ToolFactory) -> None:
        """Invalid configuration raises and leaves stored config untouched."""
        calls: list[dict[str, Any]] = []

        async def setup(config: dict[str, Any]) -> None:
            calls.append(config)

        dispatcher = _dispatcher(tool_factory(setup=setup), environ={})

        with pytest.raises(ToolConfigurationError) as exc_info:
            await dispatcher.configure({"api_key": "", "region": "eu"})

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        codes = [e["code"] for e in exc_info.value.details["config_errors"]]
        assert codes == ["out_of_range", "unknown_field"]
        assert dispatcher.resolve_config() == {}
        assert calls == []


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.deterministic
class TestDryRun:
    """test() runs the handler without touching metrics."""

    async def test_valid_dry_run(self, tool_factory: ToolFactory) -> None:
        handler = RecordingHandler()
        dispatcher = _dispatcher(tool_factory(handler=handler))

        result = await dispatcher.test({"city": "Oslo"})

        assert result.valid is True
        assert result.execution_id.startswith("test-")
        assert result.result == ToolResult.success({"ok": True})
        assert handler.calls[0][2].dry_run is True
        assert dispatcher.metrics_snapshot().total_executions == 0

    async def test_invalid_dry_run(self, weather_tool: ToolContract) -> None:
        dispatcher = _dispatcher(weather_tool)

        result = await dispatcher.test({"city": 5})

        assert result.valid is False
        assert result.result is None
        assert [e.field_path for e in result.input_errors] == ["city"]

    async def test_handler_failure_reported_in_result(self, tool_factory: ToolFactory) -> None:
        """Valid input with a failing handler is still valid."""

        async def failing(input_data: dict, config: dict, context: ExecutionContext) -> None:
            raise ToolExecutionError("boom", code="UPSTREAM_DOWN")

        dispatcher = _dispatcher(tool_factory(handler=failing))

        result = await dispatcher.test({"city": "Oslo"})

        assert result.valid is True
        assert result.result is not None
        assert result.result.status == "error"
        assert result.result.error.code == "UPSTREAM_DOWN"

    async def test_timeouts_in_dry_run(self, tool_factory: ToolFactory) -> None:
        """The deadline and a handler's own TimeoutError stay distinct."""

        async def slow(input_data: dict, config: dict, context: ExecutionContext) -> None:
            await asyncio.sleep(5)

        async def upstream_timeout(input_data: dict, config: dict, context: ExecutionContext) -> None:
            raise TimeoutError("upstream weather API socket timed out")

        deadline = _dispatcher(tool_factory(handler=slow, timeout_seconds=0.05))
        own_error = _dispatcher(tool_factory(handler=upstream_timeout))

        expired = await deadline.test({"city": "Oslo"})
        raised = await own_error.test({"city": "Oslo"})

        assert expired.result is not None and expired.result.error is not None
        assert expired.result.error.code == "EXECUTION_TIMEOUT"
        assert raised.result is not None and raised.result.error is not None
        assert raised.result.error.code == "EXECUTION_ERROR"
        assert raised.result.error.message == "upstream weather API socket timed out"


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.deterministic
class TestHealthAndLifecycle:
    """Health reporting and cleanup."""

    async def test_default_healthy(self, weather_tool: ToolContract) -> None:
        health = await _dispatcher(weather_tool).health()

        assert health.status == "healthy"
        assert health.tool == "weather"
        assert health.version == "1.0.0"
        assert health.http_status == 200
        assert health.metrics["total_executions"] == 0

    async def test_hook_report_used(self, tool_factory: ToolFactory) -> None:
        """A hook may return a plain mapping."""

        async def check() -> dict[str, Any]:
            return {"status": "degraded", "details": {"upstream": "slow"}}

        health = await _dispatcher(tool_factory(health_check=check)).health()

        assert health.status == "degraded"
        assert health.details == {"upstream": "slow"}
        assert health.http_status == 200

    async def test_raising_hook_is_unhealthy(self, tool_factory: ToolFactory) -> None:
        async def check() -> None:
            raise ConnectionError("upstream unreachable")

        health = await _dispatcher(tool_factory(health_check=check)).health()

        assert health.status == "unhealthy"
        assert health.details == {"error": "Health check failed"}
        assert health.http_status == 503

    async def test_high_error_rate_degrades(self, weather_tool: ToolContract) -> None:
        """More than half of recent executions failing degrades a healthy tool."""
        dispatcher = _dispatcher(weather_tool)
        await dispatcher.dispatch({"input_data": {}})

        health = await dispatcher.health()

        assert health.status == "degraded"
        assert health.details["error_rate"] == "100.0%"

    async def test_shutdown_runs_cleanup(self, tool_factory: ToolFactory) -> None:
        calls: list[str] = []

        async def cleanup() -> None:
            calls.append("cleanup")

        await _dispatcher(tool_factory(cleanup=cleanup)).shutdown()

        assert calls == ["cleanup"]

    async def test_failing_cleanup_not_raised(self, tool_factory: ToolFactory) -> None:
        async def cleanup() -> None:
            raise RuntimeError("socket already closed")

        await _dispatcher(tool_factory(cleanup=cleanup)).shutdown()
