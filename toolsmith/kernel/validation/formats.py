"""Matchers for the named string formats.

uuid, hostname and ipv4 use jsonschema's format checkers; email and url use
pydantic's network types.
"""

from __future__ import annotations

from collections.abc import Callable

from jsonschema import FormatChecker
from pydantic import AnyUrl, EmailStr, TypeAdapter, ValidationError

from toolsmith.kernel.schema.fields import StringFormat

# hostname is registered only when fqdn is installed (jsonschema[format-nongpl])
_FORMAT_CHECKER = FormatChecker(formats=("uuid", "hostname", "ipv4"))
_EMAIL_ADAPTER = TypeAdapter(EmailStr)
_URL_ADAPTER = TypeAdapter(AnyUrl)


def _plain(value: str) -> bool:
    return value.isascii() and not any(char.isspace() for char in value)


def is_email(value: str) -> bool:
    """Bare address only; the ``Name <addr>`` form is rejected."""
    if "<" in value:
        return False
    try:
        _EMAIL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def is_url(value: str) -> bool:
    """Absolute URL with a scheme and a host."""
    if any(char.isspace() for char in value):
        return False
    try:
        url = _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return bool(url.host)


def is_uuid(value: str) -> bool:
    """Dashed hex form, any case."""
    return _plain(value) and _FORMAT_CHECKER.conforms(value, "uuid")


def is_hostname(value: str) -> bool:
    """RFC 1123 host name; a single trailing dot is allowed."""
    return bool(value) and _plain(value) and _FORMAT_CHECKER.conforms(value, "hostname")


def is_ipv4(value: str) -> bool:
    return _FORMAT_CHECKER.conforms(value, "ipv4")


FORMAT_MATCHERS: dict[StringFormat, Callable[[str], bool]] = {
    StringFormat.EMAIL: is_email,
    StringFormat.URL: is_url,
    StringFormat.UUID: is_uuid,
    StringFormat.HOSTNAME: is_hostname,
    StringFormat.IPV4: is_ipv4,
}

FORMAT_DESCRIPTIONS: dict[StringFormat, str] = {
    StringFormat.EMAIL: "a valid email address",
    StringFormat.URL: "a valid absolute URL",
    StringFormat.UUID: "a valid UUID",
    StringFormat.HOSTNAME: "a valid host name",
    StringFormat.IPV4: "a valid IPv4 address",
}
