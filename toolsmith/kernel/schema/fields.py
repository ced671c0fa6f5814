"""Field definitions: the declarative contract for one input or config value.

Every kind of field is its own immutable pydantic model, and
``FieldDefinition`` is the closed union of them, discriminated on ``kind``.
Models forbid unknown attributes, so a constraint that makes no sense for a
kind (``min_length`` on a number) is rejected when the definition is built,
not when a request arrives.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    model_validator,
)

JsonScalar = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class FieldKind(str, Enum):
    """Tag identifying each field variant."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    ARRAY = "array"
    OBJECT = "object"
    ENUM = "enum"
    FILE = "file"
    SECRET_KEY = "secret-key"


class StringFormat(str, Enum):
    """Named string formats checked by dedicated matchers."""

    EMAIL = "email"
    URL = "url"
    UUID = "uuid"
    HOSTNAME = "hostname"
    IPV4 = "ipv4"


class TimezonePolicy(str, Enum):
    """How a datetime field treats UTC offsets."""

    OPTIONAL = "optional"
    REQUIRED = "required"
    UTC_ONLY = "utc-only"


class SchemaDefinitionError(Exception):
    """Raised when a field or schema definition is malformed.

    This is a programmer error surfaced at registration time; it is never
    produced while validating a request.

    Attributes:
        code: Machine-readable category, always ``CONFIGURATION_ERROR``
        message: Human-readable summary
        problems: One entry per offending attribute
    """

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        """Initialize schema definition error.

        Args:
            message: Human-readable summary
            problems: One entry per offending attribute
        """
        self.message = message
        self.problems = problems or []
        detail = f"{message}: {'; '.join(self.problems)}" if self.problems else message
        super().__init__(detail)

    @classmethod
    def from_pydantic(cls, subject: str, exc: ValidationError) -> SchemaDefinitionError:
        """Translate a pydantic error raised while building a definition."""
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or subject
            problems.append(f"{location}: {error['msg']}")
        return cls(f"Invalid definition for {subject}", problems)


def _check_bounds(low: Any, high: Any, label: str) -> None:
    if low is not None and high is not None and low > high:
        raise ValueError(f"{label} lower bound {low} exceeds upper bound {high}")


def _check_pattern(pattern: str | None) -> None:
    if pattern is None:
        return
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"pattern {pattern!r} does not compile: {exc}") from exc


class _FieldBase(BaseModel):
    """Attributes shared by every field kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    required: bool = False
    default: Any = None
    description: str | None = None
    example: Any = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def sensitive(self) -> bool:
        """Whether values of this field (or anything nested in it) are secret."""
        return False


class StringField(_FieldBase):
    kind: Literal["string"] = "string"
    min_length: NonNegativeInt | None = None
    max_length: NonNegativeInt | None = None
    pattern: str | None = None
    format: StringFormat | None = None
    enum_values: list[str] | None = None

    @model_validator(mode="after")
    def _check_constraints(self) -> StringField:
        _check_bounds(self.min_length, self.max_length, "length")
        _check_pattern(self.pattern)
        if self.enum_values is not None and not self.enum_values:
            raise ValueError("enum_values must not be empty")
        return self


class NumberField(_FieldBase):
    kind: Literal["number"] = "number"
    minimum: StrictInt | StrictFloat | None = None
    maximum: StrictInt | StrictFloat | None = None
    integer_only: bool = False

    @model_validator(mode="after")
    def _check_constraints(self) -> NumberField:
        _check_bounds(self.minimum, self.maximum, "range")
        return self


class BooleanField(_FieldBase):
    kind: Literal["boolean"] = "boolean"


class DateField(_FieldBase):
    kind: Literal["date"] = "date"
    min_date: date | None = None
    max_date: date | None = None

    @model_validator(mode="after")
    def _check_constraints(self) -> DateField:
        _check_bounds(self.min_date, self.max_date, "date")
        return self


class TimeField(_FieldBase):
    kind: Literal["time"] = "time"


class DatetimeField(_FieldBase):
    kind: Literal["datetime"] = "datetime"
    timezone: TimezonePolicy = TimezonePolicy.OPTIONAL


class ArrayField(_FieldBase):
    kind: Literal["array"] = "array"
    items: FieldDefinition
    min_items: NonNegativeInt | None = None
    max_items: NonNegativeInt | None = None

    @model_validator(mode="after")
    def _check_constraints(self) -> ArrayField:
        _check_bounds(self.min_items, self.max_items, "item count")
        return self

    @property
    def sensitive(self) -> bool:
        return self.items.sensitive


class ObjectField(_FieldBase):
    kind: Literal["object"] = "object"
    properties: dict[str, FieldDefinition]
    required_properties: list[str] = Field(default_factory=list)
    additional_properties: bool = False

    @model_validator(mode="after")
    def _check_constraints(self) -> ObjectField:
        undeclared = [name for name in self.required_properties if name not in self.properties]
        if undeclared:
            raise ValueError(f"required_properties not declared in properties: {undeclared}")
        return self

    @property
    def sensitive(self) -> bool:
        return any(prop.sensitive for prop in self.properties.values())

    def is_required(self, name: str) -> bool:
        return self.properties[name].required or name in self.required_properties


class EnumField(_FieldBase):
    kind: Literal["enum"] = "enum"
    values: Annotated[list[JsonScalar], Field(min_length=1)]


class FileField(_FieldBase):
    kind: Literal["file"] = "file"
    allowed_mime_types: list[str] | None = None
    max_file_size_bytes: NonNegativeInt | None = None


class SecretKeyField(_FieldBase):
    """API key or other credential; never echoed, never logged."""

    kind: Literal["secret-key"] = "secret-key"
    required: bool = True
    min_length: NonNegativeInt | None = None
    max_length: NonNegativeInt | None = None
    pattern: str | None = None
    env_var: str | None = None

    @model_validator(mode="after")
    def _check_constraints(self) -> SecretKeyField:
        _check_bounds(self.min_length, self.max_length, "length")
        _check_pattern(self.pattern)
        return self

    @property
    def sensitive(self) -> bool:
        return True


FieldDefinition = Annotated[
    Union[
        StringField,
        NumberField,
        BooleanField,
        DateField,
        TimeField,
        DatetimeField,
        ArrayField,
        ObjectField,
        EnumField,
        FileField,
        SecretKeyField,
    ],
    Field(discriminator="kind"),
]

ArrayField.model_rebuild()
ObjectField.model_rebuild()

_FIELD_ADAPTER: TypeAdapter[Any] = TypeAdapter(FieldDefinition)


def parse_field(definition: Any, subject: str = "field") -> FieldDefinition:
    """Build a FieldDefinition from a model instance or a plain dict.

    Raises:
        SchemaDefinitionError: If the definition is malformed
    """
    try:
        return _FIELD_ADAPTER.validate_python(definition)
    except ValidationError as exc:
        raise SchemaDefinitionError.from_pydantic(subject, exc) from exc


class Schema(BaseModel):
    """Named, ordered mapping of field name to FieldDefinition.

    Declaration order is preserved and is the order in which validation
    errors are reported. Schemas are strict by default: keys that are not
    declared are reported as unknown fields.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    properties: dict[str, FieldDefinition] = Field(default_factory=dict)
    strict: bool = True
    name: str = ""

    @classmethod
    def define(
        cls,
        properties: Mapping[str, Any] | None = None,
        *,
        strict: bool = True,
        name: str = "",
    ) -> Schema:
        """Build a schema from builder output or plain dict definitions.

        Args:
            properties: Mapping of field name to field definition
            strict: Whether undeclared keys are reported as unknown fields
            name: Label used in error messages

        Raises:
            SchemaDefinitionError: If any definition is malformed
        """
        try:
            return cls(properties=dict(properties or {}), strict=strict, name=name)
        except ValidationError as exc:
            raise SchemaDefinitionError.from_pydantic(name or "schema", exc) from exc

    def __getitem__(self, name: str) -> FieldDefinition:
        return self.properties[name]

    def __contains__(self, name: object) -> bool:
        return name in self.properties

    def __len__(self) -> int:
        return len(self.properties)

    def names(self) -> list[str]:
        return list(self.properties)

    def items(self) -> Iterator[tuple[str, FieldDefinition]]:
        return iter(self.properties.items())
