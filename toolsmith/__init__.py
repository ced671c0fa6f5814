"""toolsmith: build schema-validated HTTP tool services."""

from toolsmith.kernel.executor import (
    ExecutionContext,
    ToolContract,
    ToolDispatcher,
    ToolExecutionError,
    ToolMetadata,
    ToolRegistry,
    ToolResult,
    create_tool,
)
from toolsmith.kernel.schema import (
    Schema,
    SchemaDefinitionError,
    api_key_field,
    array_field,
    boolean_field,
    date_field,
    datetime_field,
    email_field,
    enum_field,
    file_field,
    integer_field,
    number_field,
    object_field,
    secret_field,
    string_field,
    time_field,
    url_field,
    uuid_field,
)
from toolsmith.kernel.validation import SchemaValidator, ValidationIssue, ValidationResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ExecutionContext",
    "ToolContract",
    "ToolDispatcher",
    "ToolExecutionError",
    "ToolMetadata",
    "ToolRegistry",
    "ToolResult",
    "create_tool",
    "Schema",
    "SchemaDefinitionError",
    "api_key_field",
    "array_field",
    "boolean_field",
    "date_field",
    "datetime_field",
    "email_field",
    "enum_field",
    "file_field",
    "integer_field",
    "number_field",
    "object_field",
    "secret_field",
    "string_field",
    "time_field",
    "url_field",
    "uuid_field",
    "SchemaValidator",
    "ValidationIssue",
    "ValidationResult",
]
