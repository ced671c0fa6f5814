"""Schema module: field definitions, builders and JSON Schema projection."""

from toolsmith.kernel.schema.builders import (
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
from toolsmith.kernel.schema.fields import (
    FieldDefinition,
    FieldKind,
    Schema,
    SchemaDefinitionError,
    StringFormat,
    TimezonePolicy,
    parse_field,
)
from toolsmith.kernel.schema.introspection import field_to_json_schema, to_json_schema

__all__ = [
    "FieldDefinition",
    "FieldKind",
    "Schema",
    "SchemaDefinitionError",
    "StringFormat",
    "TimezonePolicy",
    "parse_field",
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
    "field_to_json_schema",
    "to_json_schema",
]
