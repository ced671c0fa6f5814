"""JSON Schema projection tests."""

import pytest
from jsonschema import Draft7Validator

from toolsmith.kernel.schema import (
    Schema,
    array_field,
    datetime_field,
    enum_field,
    file_field,
    integer_field,
    object_field,
    secret_field,
    string_field,
    to_json_schema,
)


@pytest.mark.unit
@pytest.mark.P0
@pytest.mark.oracle_schema
class TestJsonSchemaProjection:
    """Schemas project into valid Draft 7 documents."""

    def test_document_shape(self) -> None:
        """Required names, strictness and constraints carry over."""
        schema = Schema.define(
            {
                "city": string_field(required=True, min_length=2, description="City name"),
                "days": integer_field(minimum=1, maximum=10, default=3),
                "units": enum_field(["metric", "imperial"]),
            },
            name="input",
        )

        doc = to_json_schema(schema)

        assert doc["title"] == "input"
        assert doc["type"] == "object"
        assert doc["required"] == ["city"]
        assert doc["additionalProperties"] is False
        assert doc["properties"]["city"]["minLength"] == 2
        assert doc["properties"]["city"]["description"] == "City name"
        assert doc["properties"]["days"] == {
            "x-kind": "number",
            "type": "integer",
            "minimum": 1,
            "maximum": 10,
            "default": 3,
        }
        assert doc["properties"]["units"]["enum"] == ["metric", "imperial"]
        Draft7Validator.check_schema(doc)

    def test_nested_containers(self) -> None:
        """Arrays and objects nest their item and property documents."""
        schema = Schema.define(
            {
                "tags": array_field(string_field(), max_items=5),
                "address": object_field(
                    {"zip": string_field(pattern="[0-9]{5}")}, required_properties=["zip"]
                ),
            },
            strict=False,
        )

        doc = to_json_schema(schema)

        assert doc["additionalProperties"] is True
        assert "required" not in doc
        assert doc["properties"]["tags"]["items"]["type"] == "string"
        assert doc["properties"]["tags"]["maxItems"] == 5
        assert doc["properties"]["address"]["required"] == ["zip"]
        assert doc["properties"]["address"]["properties"]["zip"]["pattern"] == "[0-9]{5}"

    def test_secret_default_hidden(self) -> None:
        """Secret defaults and examples never appear in the document."""
        schema = Schema.define(
            {"token": secret_field(default="sk-live", env_var="SERVICE_TOKEN")}
        )

        prop = to_json_schema(schema)["properties"]["token"]

        assert "default" not in prop
        assert prop["writeOnly"] is True
        assert prop["x-secret"] is True
        assert prop["x-env-var"] == "SERVICE_TOKEN"

    def test_file_and_datetime_extensions(self) -> None:
        """File and datetime constraints surface as extension keywords."""
        schema = Schema.define(
            {
                "upload": file_field(allowed_mime_types=["image/png"], max_file_size_bytes=1024),
                "when": datetime_field(timezone="utc-only"),
            }
        )

        props = to_json_schema(schema)["properties"]

        assert props["upload"]["required"] == ["name", "size", "mime_type"]
        assert props["upload"]["x-allowed-mime-types"] == ["image/png"]
        assert props["upload"]["x-max-file-size"] == 1024
        assert props["when"]["format"] == "date-time"
        assert props["when"]["x-timezone"] == "utc-only"
