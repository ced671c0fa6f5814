"""Per-kind checkers that validate and normalize one raw value.

Contract for every checker::

    check(raw_value, field, path) -> CheckOutcome(value, errors)

Checkers never raise for bad input; problems come back as
``ValidationIssue`` data. Errors are accumulated by returning them up the
recursive walk, so ordering is deterministic: declaration order first, then
nested-path order.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Collection, Mapping
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any, NamedTuple

from pydantic import SecretStr

from toolsmith.kernel.schema.fields import (
    ArrayField,
    BooleanField,
    DateField,
    DatetimeField,
    EnumField,
    FieldDefinition,
    FieldKind,
    FileField,
    NumberField,
    ObjectField,
    SecretKeyField,
    StringField,
    TimeField,
    TimezonePolicy,
)
from toolsmith.kernel.validation.formats import FORMAT_DESCRIPTIONS, FORMAT_MATCHERS
from toolsmith.kernel.validation.issues import (
    REDACTED,
    ValidationErrorCode,
    ValidationIssue,
    is_secret_key,
)

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_TIME_RE = re.compile(r"([01]\d|2[0-3]):[0-5]\d(:[0-5]\d(\.\d{1,6})?)?", re.ASCII)
_DATETIME_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d{1,6})?)?(Z|[+-]\d{2}:\d{2})?",
    re.ASCII,
)


class CheckOutcome(NamedTuple):
    """Coerced value (``None`` when absent) and the issues found."""

    value: Any
    errors: list[ValidationIssue]

    @property
    def ok(self) -> bool:
        return not self.errors


def join_path(parent: str, name: str) -> str:
    return f"{parent}.{name}" if parent else name


def index_path(parent: str, index: int) -> str:
    return f"{parent}[{index}]"


def _issue(
    field: FieldDefinition,
    path: str,
    code: ValidationErrorCode,
    message: str,
    received: Any,
) -> ValidationIssue:
    return ValidationIssue(
        field_path=path,
        message=message,
        code=code,
        received_value=REDACTED if field.sensitive else received,
    )


def _type_mismatch(field: FieldDefinition, path: str, raw: Any, expected: str) -> CheckOutcome:
    return CheckOutcome(
        None,
        [
            _issue(
                field,
                path,
                ValidationErrorCode.TYPE_MISMATCH,
                f"Expected {expected}, got {_json_type(raw)}",
                raw,
            )
        ],
    )


def _json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _is_member(value: Any, candidates: Collection[Any]) -> bool:
    """Exact membership: ``True`` never matches ``1`` and ``"1"`` never matches ``1``."""
    for candidate in candidates:
        if isinstance(candidate, bool) != isinstance(value, bool):
            continue
        if isinstance(candidate, str) != isinstance(value, str):
            continue
        if candidate == value:
            return True
    return False


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _length_and_pattern(
    raw: str,
    field: StringField | SecretKeyField,
    path: str,
) -> list[ValidationIssue]:
    errors = []
    length = len(raw)
    if field.min_length is not None and length < field.min_length:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must be at least {field.min_length} characters",
                raw,
            )
        )
    if field.max_length is not None and length > field.max_length:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must be at most {field.max_length} characters",
                raw,
            )
        )
    if field.pattern is not None and _compiled(field.pattern).fullmatch(raw) is None:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.PATTERN_MISMATCH,
                "Does not match the required pattern",
                raw,
            )
        )
    return errors


def check_field(
    raw: Any,
    field: FieldDefinition,
    path: str,
    *,
    required: bool | None = None,
) -> CheckOutcome:
    """Check one raw value, resolving absence, defaults and the kind checker.

    Args:
        raw: Raw JSON value; ``None`` means absent
        field: Definition to check against
        path: Field path used in issues
        required: Overrides ``field.required`` (object ``required_properties``)
    """
    if raw is None:
        if field.required if required is None else required:
            return CheckOutcome(
                None,
                [
                    _issue(
                        field,
                        path,
                        ValidationErrorCode.MISSING_REQUIRED,
                        f"Required field '{path}' is missing" if path else "Required value is missing",
                        None,
                    )
                ],
            )
        if field.has_default:
            default = copy.deepcopy(field.default)
            if isinstance(field, SecretKeyField) and isinstance(default, str):
                default = SecretStr(default)
            return CheckOutcome(default, [])
        return CheckOutcome(None, [])
    return CHECKERS[FieldKind(field.kind)](raw, field, path)


def check_string(raw: Any, field: StringField, path: str) -> CheckOutcome:
    if not isinstance(raw, str):
        return _type_mismatch(field, path, raw, "a string")
    errors = _length_and_pattern(raw, field, path)
    if field.format is not None and not FORMAT_MATCHERS[field.format](raw):
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.FORMAT_MISMATCH,
                f"Must be {FORMAT_DESCRIPTIONS[field.format]}",
                raw,
            )
        )
    if field.enum_values is not None and not _is_member(raw, field.enum_values):
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.ENUM_MISMATCH,
                f"Must be one of: {', '.join(field.enum_values)}",
                raw,
            )
        )
    return CheckOutcome(raw, errors)


def check_secret(raw: Any, field: SecretKeyField, path: str) -> CheckOutcome:
    if isinstance(raw, SecretStr):
        raw = raw.get_secret_value()
    if not isinstance(raw, str):
        return _type_mismatch(field, path, raw, "a string")
    return CheckOutcome(SecretStr(raw), _length_and_pattern(raw, field, path))


def check_number(raw: Any, field: NumberField, path: str) -> CheckOutcome:
    # bool is an int subclass; it is never a number here.
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return _type_mismatch(field, path, raw, "a number")
    if isinstance(raw, float) and not math.isfinite(raw):
        return _type_mismatch(field, path, raw, "a finite number")

    value: int | float = raw
    errors = []
    if field.integer_only and isinstance(raw, float):
        if raw.is_integer():
            value = int(raw)
        else:
            errors.append(
                _issue(field, path, ValidationErrorCode.TYPE_MISMATCH, "Must be an integer", raw)
            )
    if field.minimum is not None and value < field.minimum:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must be at least {field.minimum}",
                raw,
            )
        )
    if field.maximum is not None and value > field.maximum:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must be at most {field.maximum}",
                raw,
            )
        )
    return CheckOutcome(value, errors)


def check_boolean(raw: Any, field: BooleanField, path: str) -> CheckOutcome:
    if not isinstance(raw, bool):
        return _type_mismatch(field, path, raw, "a boolean")
    return CheckOutcome(raw, [])


def check_date(raw: Any, field: DateField, path: str) -> CheckOutcome:
    if not isinstance(raw, str) or _DATE_RE.fullmatch(raw) is None:
        return _type_mismatch(field, path, raw, "an ISO-8601 date (YYYY-MM-DD)")
    try:
        parsed = date.fromisoformat(raw)
    except ValueError:
        return CheckOutcome(
            None,
            [_issue(field, path, ValidationErrorCode.TYPE_MISMATCH, "Not a valid calendar date", raw)],
        )
    errors = []
    if field.min_date is not None and parsed < field.min_date:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must be on or after {field.min_date.isoformat()}",
                raw,
            )
        )
    if field.max_date is not None and parsed > field.max_date:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must be on or before {field.max_date.isoformat()}",
                raw,
            )
        )
    return CheckOutcome(parsed.isoformat(), errors)


def check_time(raw: Any, field: TimeField, path: str) -> CheckOutcome:
    if not isinstance(raw, str) or _TIME_RE.fullmatch(raw) is None:
        return _type_mismatch(field, path, raw, "an ISO-8601 time (HH:MM[:SS])")
    try:
        parsed = time.fromisoformat(raw)
    except ValueError:
        return CheckOutcome(
            None,
            [_issue(field, path, ValidationErrorCode.TYPE_MISMATCH, "Not a valid time", raw)],
        )
    return CheckOutcome(parsed.isoformat(), [])


def check_datetime(raw: Any, field: DatetimeField, path: str) -> CheckOutcome:
    if not isinstance(raw, str) or _DATETIME_RE.fullmatch(raw) is None:
        return _type_mismatch(field, path, raw, "an ISO-8601 datetime")
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return CheckOutcome(
            None,
            [_issue(field, path, ValidationErrorCode.TYPE_MISMATCH, "Not a valid calendar datetime", raw)],
        )
    offset = parsed.utcoffset()
    errors = []
    if field.timezone is TimezonePolicy.REQUIRED and offset is None:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.FORMAT_MISMATCH,
                "Must include a UTC offset",
                raw,
            )
        )
    elif field.timezone is TimezonePolicy.UTC_ONLY and (offset is None or offset.total_seconds()):
        errors.append(
            _issue(field, path, ValidationErrorCode.FORMAT_MISMATCH, "Must be in UTC", raw)
        )
    return CheckOutcome(parsed.isoformat(), errors)


def check_array(raw: Any, field: ArrayField, path: str) -> CheckOutcome:
    if not isinstance(raw, (list, tuple)):
        return _type_mismatch(field, path, raw, "an array")
    errors = []
    count = len(raw)
    if field.min_items is not None and count < field.min_items:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must contain at least {field.min_items} items",
                raw,
            )
        )
    if field.max_items is not None and count > field.max_items:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"Must contain at most {field.max_items} items",
                raw,
            )
        )
    # None placeholders keep element indexes stable.
    values = []
    for index, item in enumerate(raw):
        outcome = check_field(item, field.items, index_path(path, index))
        values.append(outcome.value)
        errors.extend(outcome.errors)
    return CheckOutcome(values, errors)


def check_object(raw: Any, field: ObjectField, path: str) -> CheckOutcome:
    if not isinstance(raw, Mapping):
        return _type_mismatch(field, path, raw, "an object")
    return check_properties(
        raw,
        field.properties,
        path,
        strict=not field.additional_properties,
        required_names=field.required_properties,
    )


def check_enum(raw: Any, field: EnumField, path: str) -> CheckOutcome:
    if not _is_member(raw, field.values):
        allowed = ", ".join(str(value) for value in field.values)
        return CheckOutcome(
            None,
            [_issue(field, path, ValidationErrorCode.ENUM_MISMATCH, f"Must be one of: {allowed}", raw)],
        )
    return CheckOutcome(raw, [])


def check_file(raw: Any, field: FileField, path: str) -> CheckOutcome:
    """Check a file descriptor.

    The declared ``size`` is trusted; it is not recomputed from ``content``.
    """
    if not isinstance(raw, Mapping):
        return _type_mismatch(field, path, raw, "a file descriptor object")
    name = raw.get("name")
    size = raw.get("size")
    mime_type = raw.get("mime_type")
    content = raw.get("content")
    if (
        not isinstance(name, str)
        or isinstance(size, bool)
        or not isinstance(size, int)
        or size < 0
        or not isinstance(mime_type, str)
        or (content is not None and not isinstance(content, str))
    ):
        summary = {key: value for key, value in raw.items() if key != "content"}
        return CheckOutcome(
            None,
            [
                _issue(
                    field,
                    path,
                    ValidationErrorCode.TYPE_MISMATCH,
                    "File descriptor needs name (string), size (non-negative integer) "
                    "and mime_type (string)",
                    summary,
                )
            ],
        )
    errors = []
    if field.allowed_mime_types is not None and mime_type not in field.allowed_mime_types:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.ENUM_MISMATCH,
                f"MIME type must be one of: {', '.join(field.allowed_mime_types)}",
                mime_type,
            )
        )
    if field.max_file_size_bytes is not None and size > field.max_file_size_bytes:
        errors.append(
            _issue(
                field,
                path,
                ValidationErrorCode.OUT_OF_RANGE,
                f"File must be at most {field.max_file_size_bytes} bytes",
                size,
            )
        )
    normalized: dict[str, Any] = {"name": name, "size": size, "mime_type": mime_type}
    if content is not None:
        normalized["content"] = content
    return CheckOutcome(normalized, errors)


def check_properties(
    raw: Mapping[str, Any],
    properties: Mapping[str, FieldDefinition],
    path: str,
    *,
    strict: bool,
    required_names: Collection[str] = (),
    passthrough: Collection[str] = (),
) -> CheckOutcome:
    """Walk declared properties in order, then report undeclared keys.

    Args:
        raw: Raw JSON object
        properties: Declared fields, in declaration order
        path: Path of the object itself (empty for the payload root)
        strict: Report undeclared keys as unknown fields; when false they are
            copied into the normalized object untouched
        required_names: Properties required by the enclosing object
        passthrough: Undeclared keys that are neither reported nor copied
    """
    normalized: dict[str, Any] = {}
    errors: list[ValidationIssue] = []
    for name, prop in properties.items():
        outcome = check_field(
            raw.get(name),
            prop,
            join_path(path, name),
            required=prop.required or name in required_names,
        )
        errors.extend(outcome.errors)
        if outcome.value is not None:
            normalized[name] = outcome.value

    for key, value in raw.items():
        if key in properties or key in passthrough:
            continue
        if strict:
            errors.append(
                ValidationIssue(
                    field_path=join_path(path, str(key)),
                    message=f"Unknown field '{key}'",
                    code=ValidationErrorCode.UNKNOWN_FIELD,
                    received_value=REDACTED if is_secret_key(str(key)) else value,
                )
            )
        else:
            normalized[key] = value
    return CheckOutcome(normalized, errors)


CHECKERS: dict[FieldKind, Callable[[Any, Any, str], CheckOutcome]] = {
    FieldKind.STRING: check_string,
    FieldKind.NUMBER: check_number,
    FieldKind.BOOLEAN: check_boolean,
    FieldKind.DATE: check_date,
    FieldKind.TIME: check_time,
    FieldKind.DATETIME: check_datetime,
    FieldKind.ARRAY: check_array,
    FieldKind.OBJECT: check_object,
    FieldKind.ENUM: check_enum,
    FieldKind.FILE: check_file,
    FieldKind.SECRET_KEY: check_secret,
}
