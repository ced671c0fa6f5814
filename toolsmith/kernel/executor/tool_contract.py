"""ToolContract: tool metadata, schemas, handler and lifecycle hooks."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveFloat,
    ValidationError,
    field_validator,
    model_validator,
)

from toolsmith.kernel.executor.errors import ToolDefinitionError
from toolsmith.kernel.executor.output_validator import OutputSchemaError, OutputSchemaValidator
from toolsmith.kernel.schema import Schema, to_json_schema
from toolsmith.kernel.validation import verify_schema

Handler = Callable[..., Awaitable[Any]]
SetupHook = Callable[[dict[str, Any]], Awaitable[None]]
CleanupHook = Callable[[], Awaitable[None]]
HealthHook = Callable[[], Awaitable[Any]]

_NAME_RE = re.compile(r"[a-z][a-z0-9_-]*")


class ToolMetadata(BaseModel):
    """Descriptive metadata advertised by a tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str  # SemVer string
    description: str
    capabilities: list[str] = Field(default_factory=list)
    author: str | None = None
    license: str | None = None
    homepage: str | None = None
    repository: str | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _NAME_RE.fullmatch(value):
            raise ValueError("must be a lowercase slug (letters, digits, '-' or '_')")
        return value

    @field_validator("version", "description")
    @classmethod
    def _check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value


class ToolContract(BaseModel):
    """Everything the dispatcher needs to run one tool.

    Schemas may be given as ``Schema`` objects or as plain mappings of field
    name to field definition. Every declared default is checked against its
    own field when the contract is built.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    metadata: ToolMetadata
    input_schema: Schema = Field(default_factory=Schema)
    config_schema: Schema = Field(default_factory=Schema)
    handler: Handler
    output_schema: dict[str, Any] | None = None  # JSON Schema
    timeout_seconds: PositiveFloat | None = None

    # Lifecycle hooks
    setup: SetupHook | None = None
    cleanup: CleanupHook | None = None
    health_check: HealthHook | None = None

    @field_validator("input_schema", "config_schema", mode="before")
    @classmethod
    def _coerce_schema(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return Schema.define(value)
        return value

    @model_validator(mode="after")
    def _check_schemas(self) -> ToolContract:
        verify_schema(self.input_schema)
        verify_schema(self.config_schema)
        if self.output_schema is not None:
            try:
                OutputSchemaValidator.check_schema(self.output_schema)
            except OutputSchemaError as exc:
                raise ToolDefinitionError(
                    f"Invalid output_schema for tool '{self.metadata.name}'", [exc.message]
                ) from exc
        return self

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def tool_id(self) -> str:
        return f"{self.name}@{self.version}"


def describe_tool(contract: ToolContract) -> dict[str, Any]:
    """Return the discovery document served on ``/schema``.

    Tool metadata plus the Draft 7 projections of the input and configuration
    schemas; the output schema and optional metadata only when declared.
    """
    metadata = contract.metadata
    doc: dict[str, Any] = {
        "name": metadata.name,
        "version": metadata.version,
        "description": metadata.description,
        "capabilities": list(metadata.capabilities),
        "input_schema": to_json_schema(contract.input_schema),
        "config_schema": to_json_schema(contract.config_schema),
    }
    if contract.output_schema is not None:
        doc["output_schema"] = contract.output_schema
    doc.update(
        metadata.model_dump(
            include={"author", "license", "homepage", "repository"}, exclude_none=True
        )
    )
    return doc


def create_tool(
    *,
    metadata: ToolMetadata | Mapping[str, Any],
    handler: Handler,
    input_schema: Schema | Mapping[str, Any] | None = None,
    config_schema: Schema | Mapping[str, Any] | None = None,
    **options: Any,
) -> ToolContract:
    """Build a ToolContract, reporting every definition problem at once.

    Args:
        metadata: ToolMetadata or a mapping of its attributes
        handler: ``async handler(input, config, context)``
        input_schema: Input fields
        config_schema: Configuration fields
        **options: ``output_schema``, ``timeout_seconds`` and the lifecycle
            hooks ``setup``, ``cleanup`` and ``health_check``

    Raises:
        ToolDefinitionError: If metadata, handler or options are malformed
        SchemaDefinitionError: If a schema or a declared default is malformed
    """
    values: dict[str, Any] = {"metadata": metadata, "handler": handler, **options}
    if input_schema is not None:
        values["input_schema"] = input_schema
    if config_schema is not None:
        values["config_schema"] = config_schema
    try:
        return ToolContract(**values)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ToolDefinitionError("Invalid tool definition", problems) from exc
