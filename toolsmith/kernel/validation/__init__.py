"""Validation module: per-kind checkers and the recursive payload validator."""

from toolsmith.kernel.validation.checkers import CHECKERS, CheckOutcome, check_field
from toolsmith.kernel.validation.issues import (
    REDACTED,
    ValidationErrorCode,
    ValidationIssue,
    ValidationResult,
    is_secret_key,
)
from toolsmith.kernel.validation.validator import SchemaValidator, iter_fields, verify_schema

__all__ = [
    "CHECKERS",
    "CheckOutcome",
    "check_field",
    "REDACTED",
    "ValidationErrorCode",
    "ValidationIssue",
    "ValidationResult",
    "is_secret_key",
    "SchemaValidator",
    "iter_fields",
    "verify_schema",
]
