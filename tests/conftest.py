"""Shared fixtures: a small weather tool and helpers to build contracts."""

from collections.abc import Callable
from typing import Any

import pytest

from toolsmith.kernel.executor import ExecutionContext, ToolContract, ToolResult, create_tool
from toolsmith.kernel.schema import (
    api_key_field,
    enum_field,
    integer_field,
    string_field,
)


async def weather_handler(
    input_data: dict[str, Any], config: dict[str, Any], context: ExecutionContext
) -> ToolResult:
    return ToolResult.success(
        {
            "city": input_data["city"],
            "units": input_data["units"],
            "days": input_data["days"],
            "execution_id": context.execution_id,
            "has_key": bool(config["api_key"].get_secret_value()),
        }
    )


def make_tool(handler: Any = weather_handler, **options: Any) -> ToolContract:
    """Build the weather tool, overriding any contract option."""
    values: dict[str, Any] = {
        "metadata": {
            "name": "weather",
            "version": "1.0.0",
            "description": "Forecast by city",
            "capabilities": ["weather.forecast"],
        },
        "input_schema": {
            "city": string_field(required=True, min_length=2),
            "units": enum_field(["metric", "imperial"], default="metric"),
            "days": integer_field(minimum=1, maximum=10, default=3),
        },
        "config_schema": {
            "api_key": api_key_field(env_var="WEATHER_API_KEY"),
        },
        "handler": handler,
    }
    values.update(options)
    return create_tool(**values)


@pytest.fixture
def tool_factory() -> Callable[..., ToolContract]:
    """Factory building the weather tool with contract options overridden."""
    return make_tool


@pytest.fixture
def weather_tool() -> ToolContract:
    """Weather tool with the default handler."""
    return make_tool()
