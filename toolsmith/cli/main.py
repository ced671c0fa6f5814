"""toolsmith CLI: Typer application root.

Entry point for the ``toolsmith`` console script::

    toolsmith new weather-tool --description "Current weather by city"
    toolsmith schema weather_tool.tool:tool
    toolsmith check weather_tool.tool:tool --input '{"city": "Oslo"}'
    toolsmith serve weather_tool.tool:tool --port 8080
"""

from __future__ import annotations

import importlib
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

import typer

from toolsmith.cli.scaffold import ScaffoldError, scaffold_project
from toolsmith.config import get_settings
from toolsmith.kernel.executor import ToolContract, ToolDispatcher, describe_tool
from toolsmith.logging_setup import configure_logging

cli = typer.Typer(
    name="toolsmith",
    help="Build, inspect and serve schema-validated tools.",
    no_args_is_help=True,
)


@cli.callback()
def main() -> None:
    # Logs go to stderr so command output stays machine-readable.
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.json_logs, stream=sys.stderr)


def load_tool(target: str) -> ToolContract | ToolDispatcher:
    """Import ``module:attribute`` and return the tool it names.

    The current directory is importable so a freshly scaffolded project works
    without being installed.

    Raises:
        typer.BadParameter: If the target cannot be imported or is not a tool
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"expected 'module:attribute', got {target!r}")
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"cannot import {module_name!r}: {exc}") from exc
    tool = getattr(module, attribute, None)
    if not isinstance(tool, (ToolContract, ToolDispatcher)):
        raise typer.BadParameter(f"{target!r} is not a ToolContract or ToolDispatcher")
    return tool


def _dispatcher(tool: ToolContract | ToolDispatcher) -> ToolDispatcher:
    return tool if isinstance(tool, ToolDispatcher) else ToolDispatcher(tool)


def _parse_json_object(raw: str, option: str) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"invalid JSON: {exc.msg}", param_hint=option) from exc
    if not isinstance(value, dict):
        raise typer.BadParameter("must be a JSON object", param_hint=option)
    return value


@cli.command("new", help="Scaffold a new tool project.")
def new(
    name: str = typer.Argument(..., help="Tool name, a lowercase slug such as weather-tool."),
    directory: Optional[Path] = typer.Option(
        None, "--directory", "-d", help="Target directory (defaults to ./NAME)."
    ),
    description: str = typer.Option(
        "A toolsmith tool.", "--description", help="One-line tool description."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Write into a non-empty directory."),
) -> None:
    target = directory or Path.cwd() / name
    try:
        written = scaffold_project(name, target, description, force=force)
    except ScaffoldError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Created {name} in {target} ({len(written)} files)")


@cli.command("schema", help="Print a tool's description with its JSON Schemas.")
def schema(
    target: str = typer.Argument(..., help="Tool to describe, as module:attribute."),
) -> None:
    tool = load_tool(target)
    contract = tool.contract if isinstance(tool, ToolDispatcher) else tool
    typer.echo(json.dumps(describe_tool(contract), indent=2))


@cli.command("check", help="Validate a payload against a tool without running it.")
def check(
    target: str = typer.Argument(..., help="Tool to check against, as module:attribute."),
    input_json: str = typer.Option("{}", "--input", "-i", help="Input payload as a JSON object."),
    config_json: str = typer.Option("{}", "--config", "-c", help="Configuration as a JSON object."),
) -> None:
    input_data = _parse_json_object(input_json, "--input")
    config = _parse_json_object(config_json, "--config")
    dispatcher = _dispatcher(load_tool(target))

    input_result = dispatcher.validate_input(input_data)
    config_result = dispatcher.validate_config(config)
    valid = input_result.valid and config_result.valid
    typer.echo(
        json.dumps(
            {
                "valid": valid,
                "input_errors": input_result.error_payload(),
                "config_errors": config_result.error_payload(),
            },
            indent=2,
        )
    )
    if not valid:
        raise typer.Exit(code=1)


@cli.command("serve", help="Run a tool as an HTTP server.")
def serve(
    target: str = typer.Argument(..., help="Tool to serve, as module:attribute."),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (TOOLSMITH_HOST)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (TOOLSMITH_PORT)."),
) -> None:
    from toolsmith.server import serve as run_server

    tool = load_tool(target)
    run_server(tool, get_settings(), host=host, port=port)


if __name__ == "__main__":
    cli()
