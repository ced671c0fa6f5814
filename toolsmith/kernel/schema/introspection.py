"""Projection of schemas into Draft 7 JSON Schema documents.

Used by the ``/schema`` discovery endpoint and the ``toolsmith schema``
command. The projection is pure: it never changes validation behaviour.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from toolsmith.kernel.schema.fields import (
    ArrayField,
    DateField,
    DatetimeField,
    EnumField,
    FieldDefinition,
    FileField,
    NumberField,
    ObjectField,
    Schema,
    SecretKeyField,
    StringField,
    TimezonePolicy,
)

_FILE_DESCRIPTOR_PROPERTIES: dict[str, Any] = {
    "name": {"type": "string"},
    "size": {"type": "integer", "minimum": 0},
    "mime_type": {"type": "string"},
    "content": {"type": "string", "contentEncoding": "base64"},
}


def field_to_json_schema(field: FieldDefinition) -> dict[str, Any]:
    """Return the JSON Schema fragment describing one field."""
    doc: dict[str, Any] = {"x-kind": field.kind}
    if field.description:
        doc["description"] = field.description
    if field.example is not None and not field.sensitive:
        doc["examples"] = [field.example]
    if field.default is not None and not field.sensitive:
        doc["default"] = field.default

    if isinstance(field, StringField):
        doc["type"] = "string"
        _copy(doc, minLength=field.min_length, maxLength=field.max_length, pattern=field.pattern)
        if field.format is not None:
            doc["format"] = field.format.value
        if field.enum_values is not None:
            doc["enum"] = list(field.enum_values)
    elif isinstance(field, NumberField):
        doc["type"] = "integer" if field.integer_only else "number"
        _copy(doc, minimum=field.minimum, maximum=field.maximum)
    elif isinstance(field, DateField):
        doc.update(type="string", format="date")
        _copy(
            doc,
            formatMinimum=field.min_date.isoformat() if field.min_date else None,
            formatMaximum=field.max_date.isoformat() if field.max_date else None,
        )
    elif isinstance(field, DatetimeField):
        doc.update(type="string", format="date-time")
        if field.timezone is not TimezonePolicy.OPTIONAL:
            doc["x-timezone"] = field.timezone.value
    elif isinstance(field, ArrayField):
        doc["type"] = "array"
        doc["items"] = field_to_json_schema(field.items)
        _copy(doc, minItems=field.min_items, maxItems=field.max_items)
    elif isinstance(field, ObjectField):
        doc.update(
            _object_document(
                field.properties,
                required=[name for name in field.properties if field.is_required(name)],
                strict=not field.additional_properties,
            )
        )
    elif isinstance(field, EnumField):
        doc["enum"] = list(field.values)
    elif isinstance(field, FileField):
        doc.update(
            type="object",
            properties=dict(_FILE_DESCRIPTOR_PROPERTIES),
            required=["name", "size", "mime_type"],
        )
        if field.allowed_mime_types is not None:
            doc["x-allowed-mime-types"] = list(field.allowed_mime_types)
        _copy(doc, **{"x-max-file-size": field.max_file_size_bytes})
    elif isinstance(field, SecretKeyField):
        doc.update(type="string", writeOnly=True)
        doc["x-secret"] = True
        _copy(doc, minLength=field.min_length, maxLength=field.max_length, pattern=field.pattern)
        _copy(doc, **{"x-env-var": field.env_var})
    elif field.kind == "time":
        doc.update(type="string", format="time")
    else:
        doc["type"] = "boolean"
    return doc


def to_json_schema(schema: Schema) -> dict[str, Any]:
    """Return a Draft 7 JSON Schema document for a whole schema.

    Raises:
        jsonschema.exceptions.SchemaError: If the projection is not a valid
            Draft 7 document
    """
    doc: dict[str, Any] = {"$schema": "http://json-schema.org/draft-07/schema#"}
    if schema.name:
        doc["title"] = schema.name
    doc.update(
        _object_document(
            schema.properties,
            required=[name for name, field in schema.items() if field.required],
            strict=schema.strict,
        )
    )
    Draft7Validator.check_schema(doc)
    return doc


def _object_document(
    properties: dict[str, FieldDefinition], *, required: list[str], strict: bool
) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "type": "object",
        "properties": {name: field_to_json_schema(field) for name, field in properties.items()},
        "additionalProperties": not strict,
    }
    if required:
        doc["required"] = required
    return doc


def _copy(doc: dict[str, Any], **values: Any) -> None:
    for key, value in values.items():
        if value is not None:
            doc[key] = value
