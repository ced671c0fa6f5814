"""Validation issues and results returned by the validator."""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

REDACTED = "***REDACTED***"

SECRET_KEY_PATTERN = re.compile(r"api[_-]?key|secret|token|password|private[_-]?key", re.IGNORECASE)


def is_secret_key(key: str) -> bool:
    """True when a mapping key looks like it holds a credential."""
    return SECRET_KEY_PATTERN.search(key) is not None


class ValidationErrorCode(str, Enum):
    """Machine-readable category of a validation issue."""

    MISSING_REQUIRED = "missing_required"
    TYPE_MISMATCH = "type_mismatch"
    OUT_OF_RANGE = "out_of_range"
    PATTERN_MISMATCH = "pattern_mismatch"
    FORMAT_MISMATCH = "format_mismatch"
    ENUM_MISMATCH = "enum_mismatch"
    UNKNOWN_FIELD = "unknown_field"


class ValidationIssue(BaseModel):
    """One problem with one field of a payload.

    Attributes:
        field_path: Dotted/bracketed path (``address.zip``, ``tags[2]``);
            empty for the payload root
        message: Human-readable description
        code: Machine-readable category
        received_value: Offending value, or the redaction marker for secrets
    """

    model_config = ConfigDict(frozen=True)

    field_path: str
    message: str
    code: ValidationErrorCode
    received_value: Any = None


class ValidationResult(BaseModel):
    """Outcome of validating one payload against one schema.

    ``normalized_value`` is complete only when ``valid`` is true; otherwise it
    holds a best-effort partial object that callers must not rely on.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    normalized_value: dict[str, Any] = Field(default_factory=dict)

    def messages(self) -> list[str]:
        return [
            f"{issue.field_path}: {issue.message}" if issue.field_path else issue.message
            for issue in self.errors
        ]

    def error_payload(self) -> list[dict[str, Any]]:
        """Errors as JSON-ready dicts for response envelopes."""
        return [issue.model_dump(mode="json") for issue in self.errors]
