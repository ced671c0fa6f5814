"""OutputSchemaValidator: JSON Schema validation for handler output.

Tools may declare an ``output_schema`` (Draft 7 JSON Schema). Successful
handler data is checked against it before it is returned to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import jsonschema
from jsonschema import Draft7Validator


class OutputErrorCode(str, Enum):
    """Standardized output schema error codes."""

    SCHEMA_INVALID = "SCHEMA_INVALID"  # Output violates the JSON Schema
    SCHEMA_MALFORMED = "SCHEMA_MALFORMED"  # Schema itself is invalid


class OutputSchemaError(Exception):
    """Raised when output schema validation fails.

    Attributes:
        code: Standardized error code
        message: Human-readable description of the first violation
        path: Dotted path to the first invalid value (if applicable)
        schema_path: Path within the schema that was violated
        violations: Every violation, as ``{"path", "message"}`` dicts
    """

    def __init__(
        self,
        code: OutputErrorCode,
        message: str,
        path: str = "",
        schema_path: str = "",
        violations: list[dict[str, str]] | None = None,
    ) -> None:
        """Initialize output schema error.

        Args:
            code: Standardized error code
            message: Human-readable error description
            path: Dotted path to the invalid value
            schema_path: Path within the schema that was violated
            violations: Every violation found
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.path = path
        self.schema_path = schema_path
        self.violations = violations or []


def _dotted(parts: Any) -> str:
    return ".".join(str(part) for part in parts)


class OutputSchemaValidator:
    """Validates handler output against a Draft 7 JSON Schema."""

    @staticmethod
    def check_schema(schema: dict[str, Any]) -> None:
        """Check that a schema is itself valid Draft 7.

        Raises:
            OutputSchemaError: With code SCHEMA_MALFORMED if it is not
        """
        try:
            Draft7Validator.check_schema(schema)
        except jsonschema.exceptions.SchemaError as e:
            raise OutputSchemaError(
                code=OutputErrorCode.SCHEMA_MALFORMED,
                message=f"Schema is malformed: {e.message}",
            ) from e

    def validate(self, data: Any, schema: dict[str, Any]) -> None:
        """Validate data against JSON Schema.

        Args:
            data: Handler output
            schema: JSON Schema to validate against

        Raises:
            OutputSchemaError: If validation fails with code SCHEMA_INVALID, or
                SCHEMA_MALFORMED if the schema itself is invalid

        Returns:
            None if validation succeeds
        """
        self.check_schema(schema)
        validator = Draft7Validator(schema)

        # Report every violation, ordered by location.
        errors = sorted(validator.iter_errors(data), key=lambda error: list(map(str, error.path)))
        if not errors:
            return

        first_error = errors[0]
        raise OutputSchemaError(
            code=OutputErrorCode.SCHEMA_INVALID,
            message=first_error.message,
            path=_dotted(first_error.path),
            schema_path=_dotted(first_error.schema_path),
            violations=[
                {"path": _dotted(error.path), "message": error.message} for error in errors
            ],
        )
