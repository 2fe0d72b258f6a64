# fastapi_querybuilder/utils.py

import re
from typing import Any

from sqlalchemy import Enum, String

_WORD_SEPARATORS = re.compile(r"[-_\s]+")
_BEFORE_UPPER = re.compile(r"(.)(?=[A-Z])")


def camel_case(value: str) -> str:
    """
    Convert a single name to camelCase.

    ``author-profile``, ``author_profile``, ``AuthorProfile`` and
    ``authorProfile`` all become ``authorProfile``.
    """
    words = [w for w in _WORD_SEPARATORS.split(value.strip()) if w]
    studly = "".join(w[:1].upper() + w[1:] for w in words)
    return studly[:1].lower() + studly[1:]


def snake_case(value: str, delimiter: str = "_") -> str:
    """Convert a camelCase name to snake_case (or any other delimiter)."""
    if value.islower():
        return value
    return _BEFORE_UPPER.sub(rf"\1{delimiter}", re.sub(r"\s+", "", value)).lower()


def kebab_case(value: str) -> str:
    return snake_case(value, "-")


def map_path(value: str, convert) -> str:
    """Apply ``convert`` to every segment of a dotted relation path."""
    return ".".join(convert(segment) for segment in value.split("."))


def split_list(value: Any, delimiter: str = ",") -> list[str]:
    """
    Split a delimited directive into its non-blank, stripped parts.

    Lists (repeated query parameters) are flattened. Anything that is not a
    string or list yields an empty list.
    """
    if isinstance(value, (list, tuple)):
        parts = []
        for item in value:
            parts.extend(split_list(item, delimiter))
        return parts
    if not isinstance(value, str):
        return []
    return [part.strip() for part in value.split(delimiter) if part.strip()]


def is_enum_column(column):
    """Check if a column is an enum type"""
    return isinstance(column.type, Enum)


def is_string_column(column):
    """Check if a column is a string type"""
    return isinstance(column.type, String)


def is_boolean_column(column):
    """Check if a column is a boolean type"""
    try:
        return column.type.python_type is bool
    except NotImplementedError:
        return False
