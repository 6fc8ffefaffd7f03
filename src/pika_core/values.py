from __future__ import annotations

from datetime import date, datetime
from urllib.parse import urlparse

from pika_core.errors import InvalidValue

_TEXT_TYPES = {"name", "string", "text"}
_TRUE = {"true"}
_FALSE = {"false"}


def validate_value(type_name: str, value: str) -> str:
    """
    Checks a text value against a property type tag and returns the text to store.

    Tags this module does not know are treated as opaque text interpreted by the caller.
    """
    tag = type_name.strip().lower()
    if tag in _TEXT_TYPES:
        return value
    if tag == "number":
        try:
            float(value)
        except ValueError:
            raise InvalidValue(type_name, value) from None
        return value
    if tag == "integer":
        try:
            int(value)
        except ValueError:
            raise InvalidValue(type_name, value) from None
        return value
    if tag == "boolean":
        lowered = value.strip().lower()
        if lowered in _TRUE or lowered in _FALSE:
            return lowered
        raise InvalidValue(type_name, value)
    if tag == "date":
        try:
            date.fromisoformat(value)
        except ValueError:
            raise InvalidValue(type_name, value) from None
        return value
    if tag == "datetime":
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise InvalidValue(type_name, value) from None
        return value
    if tag == "url":
        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise InvalidValue(type_name, value)
        return value
    return value


def render_value(value: object) -> str:
    """
    Renders a scalar parsed from a data file as property text.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)
