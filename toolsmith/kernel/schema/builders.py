"""Factory helpers that return fully populated field definitions.

Each helper takes keyword options and applies the documented defaults:
fields are optional unless ``required=True`` is passed, except secret and
API-key fields which are required and secret by default.

Example:
    >>> schema = Schema.define({
    ...     "city": string_field(required=True, min_length=2),
    ...     "units": enum_field(["metric", "imperial"], default="metric"),
    ...     "days": integer_field(minimum=1, maximum=10, default=3),
    ... })
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from toolsmith.kernel.schema.fields import (
    ArrayField,
    BooleanField,
    DateField,
    DatetimeField,
    EnumField,
    FieldDefinition,
    FileField,
    NumberField,
    ObjectField,
    SchemaDefinitionError,
    SecretKeyField,
    StringField,
    StringFormat,
    TimeField,
    TimezonePolicy,
)

_F = TypeVar("_F", bound=BaseModel)


def _build(model: type[_F], **options: Any) -> _F:
    try:
        return model(**{key: value for key, value in options.items() if value is not None})
    except ValidationError as exc:
        raise SchemaDefinitionError.from_pydantic(model.__name__, exc) from exc


def string_field(
    *,
    required: bool = False,
    default: str | None = None,
    description: str | None = None,
    example: Any = None,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    format: StringFormat | str | None = None,
    enum_values: Sequence[str] | None = None,
) -> StringField:
    """Create a string field.

    Args:
        required: Whether the field must be present
        default: Value used when the field is absent
        description: Human-readable description for schema documentation
        example: Example value for schema documentation
        min_length: Inclusive lower bound on length
        max_length: Inclusive upper bound on length
        pattern: Regular expression the whole value must match
        format: One of email, url, uuid, hostname, ipv4
        enum_values: Exact set of accepted values

    Raises:
        SchemaDefinitionError: If the options are inconsistent
    """
    return _build(
        StringField,
        required=required,
        default=default,
        description=description,
        example=example,
        min_length=min_length,
        max_length=max_length,
        pattern=pattern,
        format=format,
        enum_values=list(enum_values) if enum_values is not None else None,
    )


def email_field(**options: Any) -> StringField:
    return string_field(format=StringFormat.EMAIL, **options)


def url_field(**options: Any) -> StringField:
    return string_field(format=StringFormat.URL, **options)


def uuid_field(**options: Any) -> StringField:
    return string_field(format=StringFormat.UUID, **options)


def number_field(
    *,
    required: bool = False,
    default: int | float | None = None,
    description: str | None = None,
    example: Any = None,
    minimum: int | float | None = None,
    maximum: int | float | None = None,
    integer_only: bool = False,
) -> NumberField:
    """Create a number field with inclusive ``minimum``/``maximum`` bounds."""
    return _build(
        NumberField,
        required=required,
        default=default,
        description=description,
        example=example,
        minimum=minimum,
        maximum=maximum,
        integer_only=integer_only,
    )


def integer_field(**options: Any) -> NumberField:
    return number_field(integer_only=True, **options)


def boolean_field(
    *,
    required: bool = False,
    default: bool | None = None,
    description: str | None = None,
    example: Any = None,
) -> BooleanField:
    return _build(
        BooleanField, required=required, default=default, description=description, example=example
    )


def date_field(
    *,
    required: bool = False,
    default: str | None = None,
    description: str | None = None,
    example: Any = None,
    min_date: date | str | None = None,
    max_date: date | str | None = None,
) -> DateField:
    """Create a ``YYYY-MM-DD`` date field with optional inclusive bounds."""
    return _build(
        DateField,
        required=required,
        default=default,
        description=description,
        example=example,
        min_date=min_date,
        max_date=max_date,
    )


def time_field(
    *,
    required: bool = False,
    default: str | None = None,
    description: str | None = None,
    example: Any = None,
) -> TimeField:
    return _build(
        TimeField, required=required, default=default, description=description, example=example
    )


def datetime_field(
    *,
    required: bool = False,
    default: str | None = None,
    description: str | None = None,
    example: Any = None,
    timezone: TimezonePolicy | str = TimezonePolicy.OPTIONAL,
) -> DatetimeField:
    """Create an ISO-8601 datetime field.

    Args:
        timezone: ``optional`` accepts naive values, ``required`` demands an
            offset, ``utc-only`` demands a zero offset
    """
    return _build(
        DatetimeField,
        required=required,
        default=default,
        description=description,
        example=example,
        timezone=timezone,
    )


def array_field(
    items: FieldDefinition | Mapping[str, Any],
    *,
    required: bool = False,
    default: list[Any] | None = None,
    description: str | None = None,
    example: Any = None,
    min_items: int | None = None,
    max_items: int | None = None,
) -> ArrayField:
    """Create an array field whose elements all follow ``items``.

    Raises:
        SchemaDefinitionError: If ``items`` is missing or malformed
    """
    if items is None:
        raise SchemaDefinitionError("array_field requires an item definition")
    return _build(
        ArrayField,
        items=items,
        required=required,
        default=default,
        description=description,
        example=example,
        min_items=min_items,
        max_items=max_items,
    )


def object_field(
    properties: Mapping[str, FieldDefinition | Mapping[str, Any]],
    *,
    required: bool = False,
    default: dict[str, Any] | None = None,
    description: str | None = None,
    example: Any = None,
    required_properties: Sequence[str] | None = None,
    additional_properties: bool = False,
) -> ObjectField:
    """Create a nested object field.

    Nested objects are strict unless ``additional_properties`` is set.

    Raises:
        SchemaDefinitionError: If ``properties`` is missing or malformed
    """
    if properties is None:
        raise SchemaDefinitionError("object_field requires a properties mapping")
    return _build(
        ObjectField,
        properties=dict(properties),
        required=required,
        default=default,
        description=description,
        example=example,
        required_properties=list(required_properties) if required_properties else None,
        additional_properties=additional_properties,
    )


def enum_field(
    values: Sequence[Any],
    *,
    required: bool = False,
    default: Any = None,
    description: str | None = None,
    example: Any = None,
) -> EnumField:
    """Create an enum field. ``values`` must be a non-empty list of scalars."""
    if not values:
        raise SchemaDefinitionError("enum_field requires at least one value")
    return _build(
        EnumField,
        values=list(values),
        required=required,
        default=default,
        description=description,
        example=example,
    )


def file_field(
    *,
    required: bool = False,
    description: str | None = None,
    allowed_mime_types: Sequence[str] | None = None,
    max_file_size_bytes: int | None = None,
) -> FileField:
    return _build(
        FileField,
        required=required,
        description=description,
        allowed_mime_types=list(allowed_mime_types) if allowed_mime_types is not None else None,
        max_file_size_bytes=max_file_size_bytes,
    )


def secret_field(
    *,
    required: bool = True,
    default: str | None = None,
    description: str | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    env_var: str | None = None,
) -> SecretKeyField:
    """Create a secret field. Values are redacted from errors and logs."""
    return _build(
        SecretKeyField,
        required=required,
        default=default,
        description=description,
        min_length=min_length,
        max_length=max_length,
        pattern=pattern,
        env_var=env_var,
    )


def api_key_field(
    *,
    required: bool = True,
    description: str | None = None,
    min_length: int = 1,
    max_length: int | None = None,
    pattern: str | None = None,
    env_var: str | None = None,
) -> SecretKeyField:
    """Create an API-key config field: required, secret, non-empty.

    Args:
        env_var: Environment variable consulted when the key is not
            supplied in configuration
    """
    return secret_field(
        required=required,
        description=description,
        min_length=min_length,
        max_length=max_length,
        pattern=pattern,
        env_var=env_var,
    )
