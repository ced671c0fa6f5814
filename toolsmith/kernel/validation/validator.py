"""Recursive payload validator.

Walks a Schema and a raw JSON object, applies the per-kind checkers and
aggregates every issue into one ValidationResult. It never stops at the
first failure, so a caller sees every problem in a single round trip.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping
from typing import Any

import structlog

from toolsmith.kernel.schema.fields import (
    ArrayField,
    FieldDefinition,
    FieldKind,
    ObjectField,
    Schema,
    SchemaDefinitionError,
)
from toolsmith.kernel.validation.checkers import (
    CHECKERS,
    check_properties,
    index_path,
    join_path,
)
from toolsmith.kernel.validation.issues import (
    ValidationErrorCode,
    ValidationIssue,
    ValidationResult,
)

logger = structlog.get_logger(__name__)


class SchemaValidator:
    """Validate raw payloads against field schemas.

    The validator holds no state between calls; one instance may be shared by
    every request of a process.
    """

    def validate(
        self,
        data: Any,
        schema: Schema,
        *,
        passthrough: Collection[str] = (),
    ) -> ValidationResult:
        """Validate and normalize one payload.

        Args:
            data: Parsed JSON payload (expected to be an object)
            schema: Schema to validate against
            passthrough: Undeclared keys that are tolerated silently and left
                out of the normalized value

        Returns:
            ValidationResult with every issue, in declaration order
        """
        if not isinstance(data, Mapping):
            issue = ValidationIssue(
                field_path="",
                message="Payload must be a JSON object",
                code=ValidationErrorCode.TYPE_MISMATCH,
                received_value=data,
            )
            return ValidationResult(valid=False, errors=[issue])

        outcome = check_properties(
            data,
            schema.properties,
            "",
            strict=schema.strict,
            passthrough=frozenset(passthrough),
        )
        if outcome.errors:
            logger.debug(
                "Payload failed validation",
                schema=schema.name or None,
                error_count=len(outcome.errors),
            )
        return ValidationResult(
            valid=outcome.ok,
            errors=outcome.errors,
            normalized_value=outcome.value,
        )


def iter_fields(
    properties: Mapping[str, FieldDefinition], prefix: str = ""
) -> Iterator[tuple[str, FieldDefinition]]:
    """Yield ``(path, field)`` for every field, nested ones included."""
    for name, field in properties.items():
        path = join_path(prefix, name)
        yield path, field
        yield from _iter_nested(field, path)


def _iter_nested(field: FieldDefinition, path: str) -> Iterator[tuple[str, FieldDefinition]]:
    if isinstance(field, ObjectField):
        yield from iter_fields(field.properties, path)
    elif isinstance(field, ArrayField):
        item_path = index_path(path, 0)
        yield item_path, field.items
        yield from _iter_nested(field.items, item_path)


def verify_schema(schema: Schema) -> Schema:
    """Check that every declared default passes its own field's checker.

    Args:
        schema: Schema to verify

    Returns:
        The same schema, for chaining

    Raises:
        SchemaDefinitionError: If any default is invalid for its field
    """
    problems = []
    for path, field in iter_fields(schema.properties):
        if not field.has_default:
            continue
        outcome = CHECKERS[FieldKind(field.kind)](field.default, field, path)
        problems.extend(
            f"{path}: default {issue.message.lower()}" for issue in outcome.errors
        )
    if problems:
        raise SchemaDefinitionError(
            f"Invalid default value in {schema.name or 'schema'}", problems
        )
    return schema
